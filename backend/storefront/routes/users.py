# Overview: Flask API routes for user management; parses input and returns JSON responses.

# backend/storefront/routes/users.py
"""
Staff account management routes.

SECURITY:
- canViewUsers / canAddUsers / canEditUsers / canDeleteUsers gate each route
- `permissions` (individual capability flags), the ADMIN role and ADMIN
  accounts may only be changed by an ADMIN; anyone else gets 403
- Self-delete is rejected with 400
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..models import User
from ..permissions import Capability
from ..services import users_service
from ..services.auth_service import PasswordValidationError
from ..services.permission_service import PermissionDeniedError, parse_permission_overrides
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_user,
    parse_pagination,
    parse_sort,
    parse_flag,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

USER_POLICY = ModelValidationPolicy(
    fields={
        "username": "username",
        "email": "email",
        "role": "role",
        "isActive": "is_active",
    },
    required_on_create=frozenset({"username", "email", "role"}),
    min_lengths={"username": 3},
)

USER_SORT_COLUMNS = {
    "username": User.username,
    "email": User.email,
    "role": User.role,
    "createdAt": User.created_at,
    "lastLogin": User.last_login_at,
}

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _split_payload(payload) -> tuple[dict, str | None, dict | None]:
    """Separate password and permissions from the column fields."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    password = payload.pop("password", None)
    raw_permissions = payload.pop("permissions", None)
    permissions = parse_permission_overrides(raw_permissions) if raw_permissions is not None else None
    return payload, password, permissions


def _forbidden(e: PermissionDeniedError):
    current_app.logger.warning(
        "Permission denied: user=%s (%s)",
        g.current_user.username, e,
    )
    return jsonify({"error": "Permission denied", "message": str(e)}), 403


@users_bp.get("")
@require_auth
@require_permission(Capability.VIEW_USERS)
def list_users_route():
    """
    Query params: page, limit, search (username/email), role, includeDeleted,
    sortBy (username | email | role | createdAt | lastLogin), sortOrder.
    """
    try:
        page, per_page = parse_pagination(
            request.args,
            default_per_page=current_app.config["DEFAULT_PAGE_SIZE"],
            max_per_page=current_app.config["MAX_PAGE_SIZE"],
        )
        sort_column, descending = parse_sort(request.args, USER_SORT_COLUMNS, "createdAt")
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    return jsonify(users_service.list_users(
        page=page,
        per_page=per_page,
        search=(request.args.get("search") or "").strip() or None,
        role=request.args.get("role") or None,
        include_deleted=parse_flag(request.args.get("includeDeleted")),
        sort_column=sort_column,
        descending=descending,
    ))


@users_bp.get("/<int:user_id>")
@require_auth
@require_permission(Capability.VIEW_USERS)
def get_user_route(user_id: int):
    try:
        return jsonify(users_service.get_user_detail(user_id))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@users_bp.post("")
@require_auth
@require_permission(Capability.ADD_USERS)
def create_user_route():
    """
    Create a staff account: {"username", "email", "password", "role", "permissions"?}.

    Flags start from the role defaults; `permissions` overrides them (ADMIN only).
    """
    try:
        fields, password, permissions = _split_payload(request.get_json(silent=True) or {})
        patch = validate_payload(model=User, payload=fields, policy=USER_POLICY, partial=False)
        enforce_rules_user(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        user = users_service.create_user(
            g.session_context,
            patch=patch,
            password=password,
            permissions=permissions,
        )
    except PermissionDeniedError as e:
        return _forbidden(e)
    except (ValidationError, ConflictError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User created successfully", "user": user.to_dict()}), 201


@users_bp.put("/<int:user_id>")
@require_auth
@require_permission(Capability.EDIT_USERS)
def update_user_route(user_id: int):
    """
    Partial update: username, email, role, isActive, password, permissions.

    A role change resets flags to the new role's defaults first.
    """
    try:
        fields, password, permissions = _split_payload(request.get_json(silent=True) or {})
        patch = validate_payload(model=User, payload=fields, policy=USER_POLICY, partial=True)
        enforce_rules_user(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        user = users_service.update_user(
            g.session_context,
            user_id,
            patch=patch,
            password=password,
            permissions=permissions,
        )
    except PermissionDeniedError as e:
        return _forbidden(e)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ConflictError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User updated successfully", "user": user.to_dict()}), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission(Capability.DELETE_USERS)
def delete_user_route(user_id: int):
    """Soft delete; sessions of the removed user are revoked."""
    try:
        users_service.delete_user(g.session_context, user_id)
    except PermissionDeniedError as e:
        return _forbidden(e)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User deleted successfully"}), 200
