# Overview: The closed set of capabilities and their display definitions.
# Each definition is: (capability, name, description, category)

from __future__ import annotations

import enum

from .categories import PermissionCategory


class Capability(str, enum.Enum):
    """
    Named boolean flags that gate one class of action each.

    The value is the wire name used by the API; `column` is the User
    attribute that stores the flag.
    """
    VIEW_PRODUCTS = "canViewProducts"
    ADD_PRODUCTS = "canAddProducts"
    EDIT_PRODUCTS = "canEditProducts"
    DELETE_PRODUCTS = "canDeleteProducts"
    VIEW_USERS = "canViewUsers"
    ADD_USERS = "canAddUsers"
    EDIT_USERS = "canEditUsers"
    DELETE_USERS = "canDeleteUsers"
    PROCESS_SALES = "canProcessSales"
    VIEW_TRANSACTIONS = "canViewTransactions"
    VIEW_REPORTS = "canViewReports"

    @property
    def column(self) -> str:
        return "can_" + self.name.lower()

    @classmethod
    def from_code(cls, code: str) -> "Capability":
        """Resolve a wire name ("canProcessSales") or member name ("PROCESS_SALES")."""
        try:
            return cls(code)
        except ValueError:
            pass
        try:
            return cls[code.upper()]
        except KeyError:
            raise ValueError(f"Unknown capability: {code}") from None


# -- PRODUCTS --

PRODUCT_PERMISSIONS = [
    (
        Capability.VIEW_PRODUCTS,
        "View Products",
        "List products, stock levels and low-stock alerts",
        PermissionCategory.PRODUCTS,
    ),
    (
        Capability.ADD_PRODUCTS,
        "Add Products",
        "Create new products with an initial stock level",
        PermissionCategory.PRODUCTS,
    ),
    (
        Capability.EDIT_PRODUCTS,
        "Edit Products",
        "Edit product details and add, subtract or set stock",
        PermissionCategory.PRODUCTS,
    ),
    (
        Capability.DELETE_PRODUCTS,
        "Delete Products",
        "Remove products from the catalog (soft delete)",
        PermissionCategory.PRODUCTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        Capability.VIEW_USERS,
        "View Users",
        "List staff accounts",
        PermissionCategory.USERS,
    ),
    (
        Capability.ADD_USERS,
        "Add Users",
        "Create staff accounts",
        PermissionCategory.USERS,
    ),
    (
        Capability.EDIT_USERS,
        "Edit Users",
        "Edit staff accounts, roles and activation",
        PermissionCategory.USERS,
    ),
    (
        Capability.DELETE_USERS,
        "Delete Users",
        "Remove staff accounts (soft delete)",
        PermissionCategory.USERS,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        Capability.PROCESS_SALES,
        "Process Sales",
        "Ring up sales at the point of sale",
        PermissionCategory.SALES,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        Capability.VIEW_TRANSACTIONS,
        "View Transactions",
        "Browse the audit log and sales history",
        PermissionCategory.REPORTS,
    ),
    (
        Capability.VIEW_REPORTS,
        "View Reports",
        "Daily and period sales reports",
        PermissionCategory.REPORTS,
    ),
]


PERMISSION_DEFINITIONS = (
    PRODUCT_PERMISSIONS
    + USER_PERMISSIONS
    + SALES_PERMISSIONS
    + REPORT_PERMISSIONS
)
