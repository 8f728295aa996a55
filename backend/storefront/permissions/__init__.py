# Overview: Capability system package.
# Re-exports all public APIs for short imports.

from .categories import PermissionCategory
from .definitions import (
    Capability,
    PERMISSION_DEFINITIONS,
    PRODUCT_PERMISSIONS,
    USER_PERMISSIONS,
    SALES_PERMISSIONS,
    REPORT_PERMISSIONS,
)
from .roles import Role, DEFAULT_ROLE_PERMISSIONS, default_flags
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "Capability",
    "PERMISSION_DEFINITIONS",
    "PRODUCT_PERMISSIONS",
    "USER_PERMISSIONS",
    "SALES_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "Role",
    "DEFAULT_ROLE_PERMISSIONS",
    "default_flags",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
]
