# Overview: Utility functions for capability lookups and validation.

from .definitions import Capability, PERMISSION_DEFINITIONS


def get_all_permission_codes():
    """Get list of all capability wire names."""
    return [perm[0].value for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    """Get all capabilities in a category."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permission_definition(code):
    """Get full definition for a capability code."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0].value == code:
            return {
                "code": perm[0].value,
                "name": perm[1],
                "description": perm[2],
                "category": perm[3],
            }
    return None


def validate_permission_code(code):
    """Check if a capability code is valid."""
    try:
        Capability.from_code(code)
    except ValueError:
        return False
    return True
