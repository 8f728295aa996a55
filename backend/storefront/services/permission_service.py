# Overview: Service-layer operations for permission; encapsulates the capability gate.

"""
Capability Checking

WHY: Enforce role-based access control at every protected entry point.

DESIGN PRINCIPLES:
- Fail closed: unknown capabilities and unknown roles are denied
- ADMIN always passes; other roles pass iff their flag is set
- Only an ADMIN may hand out individual flags
"""

from typing import Mapping

from ..models import User
from ..permissions import Capability, Role
from ..validation import ValidationError


class PermissionDeniedError(Exception):
    """Raised when user lacks required capability."""
    pass


def has_capability(role: str, flags: Mapping[Capability, bool], capability: Capability) -> bool:
    """
    Pure gate: ADMIN is always allowed; otherwise the flag decides.

    A missing flag counts as False.
    """
    if role == Role.ADMIN.value:
        return True
    return bool(flags.get(capability, False))


def user_has_capability(user: User, capability: Capability) -> bool:
    if user is None:
        return False
    return has_capability(user.role, user.permission_flags, capability)


def require_capability(user: User, capability: Capability) -> None:
    """
    Raise PermissionDeniedError unless user holds capability.

    Usage:
        require_capability(g.current_user, Capability.PROCESS_SALES)
    """
    if not user_has_capability(user, capability):
        raise PermissionDeniedError(f"Permission denied: {capability.value}")


def require_admin(user: User, action: str) -> None:
    """Flag overrides and similar privileged edits are ADMIN-only."""
    if user is None or not user.is_admin:
        raise PermissionDeniedError(f"Only administrators can {action}")


def parse_permission_overrides(payload) -> dict[Capability, bool]:
    """
    Validate a `permissions` object from a user create/update body.

    Keys are capability wire names ("canViewReports") or member names;
    values must be booleans. Returns {Capability: bool}.
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            "Validation failed",
            [{"field": "permissions", "message": "permissions must be an object"}],
        )

    errors: list[dict] = []
    flags: dict[Capability, bool] = {}
    for code, value in payload.items():
        try:
            cap = Capability.from_code(str(code))
        except ValueError:
            errors.append({"field": f"permissions.{code}", "message": f"Unknown permission: {code}"})
            continue
        if not isinstance(value, bool):
            errors.append({"field": f"permissions.{code}", "message": "Permission values must be booleans"})
            continue
        flags[cap] = value

    if errors:
        raise ValidationError("Validation failed", errors)
    return flags
