# Overview: Permission category constants for grouping related capabilities.


class PermissionCategory:
    """Capability categories for organization and UI display."""
    PRODUCTS = "PRODUCTS"
    USERS = "USERS"
    SALES = "SALES"
    REPORTS = "REPORTS"
