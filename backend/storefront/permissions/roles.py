# Overview: Staff roles and the capability flags each role starts with.

from __future__ import annotations

import enum

from .definitions import Capability


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"


DEFAULT_ROLE_PERMISSIONS: dict[Role, frozenset[Capability]] = {
    # Admin always passes the gate; the flags are kept in sync for display
    Role.ADMIN: frozenset(Capability),
    Role.MANAGER: frozenset({
        Capability.VIEW_PRODUCTS,
        Capability.ADD_PRODUCTS,
        Capability.EDIT_PRODUCTS,
        Capability.VIEW_USERS,
        Capability.PROCESS_SALES,
        Capability.VIEW_TRANSACTIONS,
        Capability.VIEW_REPORTS,
    }),
    Role.CASHIER: frozenset({
        Capability.VIEW_PRODUCTS,
        Capability.PROCESS_SALES,
    }),
}


def default_flags(role: Role | str) -> dict[Capability, bool]:
    """Full flag map for a role; unknown roles fall back to CASHIER."""
    try:
        role = Role(role)
    except ValueError:
        role = Role.CASHIER
    granted = DEFAULT_ROLE_PERMISSIONS[role]
    return {cap: cap in granted for cap in Capability}
