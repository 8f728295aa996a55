# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .permissions import Capability
from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'session_context')


def require_auth(f):
    """
    Require authentication and establish the acting SessionContext.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext (user, session, IP, user agent)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated or deleted
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        # Extract token from Authorization header
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(
            token,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(capability: Capability):
    """
    Require a specific capability. Must be stacked under @require_auth.

    Denials are logged at WARNING and answered with 403.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            try:
                permission_service.require_capability(user, capability)
            except PermissionDeniedError as e:
                current_app.logger.warning(
                    "Permission denied: user=%s role=%s capability=%s path=%s ip=%s",
                    user.username, user.role, capability.value, request.path, request.remote_addr,
                )
                return jsonify({
                    "error": "Permission denied",
                    "requiredPermission": capability.value,
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
