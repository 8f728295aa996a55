# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/storefront/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on registration and password change
- Session management with token-based auth
- Self-registration closed unless ALLOW_SELF_REGISTRATION is set
- LOGIN / LOGOUT / USER_CREATE / USER_UPDATE audit rows
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import User
from ..services import auth_service
from ..services.auth_service import AuthenticationError, PasswordValidationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_user,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth


REGISTER_POLICY = ModelValidationPolicy(
    fields={"username": "username", "email": "email"},
    required_on_create=frozenset({"username", "email"}),
    min_lengths={"username": 3},
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration.

    Disabled (403) unless ALLOW_SELF_REGISTRATION is set. When enabled the
    new account is always a CASHIER; staff with other roles are created by
    administrators via POST /api/users or `flask users create`.
    """
    if not current_app.config.get("ALLOW_SELF_REGISTRATION"):
        return jsonify({
            "error": "Self-registration is disabled. Contact an administrator to create an account."
        }), 403

    payload = request.get_json(silent=True) or {}
    password = payload.pop("password", None) if isinstance(payload, dict) else None

    try:
        patch = validate_payload(model=User, payload=payload, policy=REGISTER_POLICY, partial=False)
        enforce_rules_user(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        user, token = auth_service.register_user(
            username=patch["username"],
            email=patch["email"],
            password=password,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "User registered successfully",
        "user": user.to_dict(),
        "token": token,
    }), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Accepts {"username" | "email", "password"}.
    Token must be included in Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    identifier = data.get("username") or data.get("email")
    password = data.get("password")

    if not isinstance(identifier, str) or not isinstance(password, str) or not identifier or not password:
        return jsonify({"error": "username/email and password required"}), 400

    try:
        user, token = auth_service.login(
            identifier.strip(),
            password,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict(),
        "token": token,
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """
    Revoke the current session token (logout).

    WHY: Explicit logout prevents token reuse.
    """
    try:
        auth_service.logout(g.session_context)
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, capability flags included."""
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.put("/password")
@require_auth
def change_password_route():
    """
    Change own password: {"currentPassword", "newPassword"}.

    Every other session of the user is revoked; the current one stays valid.
    """
    data = request.get_json(silent=True) or {}
    current_password = data.get("currentPassword")
    new_password = data.get("newPassword")

    if not current_password or not new_password:
        return jsonify({"error": "currentPassword and newPassword required"}), 400

    try:
        auth_service.change_password(g.session_context, current_password, new_password)
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 400
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Password changed successfully"}), 200
