# Overview: Service-layer operations for staff accounts; encapsulates business logic and database work.

"""
User Management Service

WHY: Administrators create, edit and remove staff accounts. Every change is
attributable: each write records USER_CREATE / USER_UPDATE / USER_DELETE in
the same commit.

RULES:
- Role defaults are applied on create and whenever the role changes,
  before any explicit flag overrides
- Only an ADMIN may set individual capability flags, grant the ADMIN role,
  or modify or delete an ADMIN account
- Users are soft-deleted; a user may not delete themselves
- Deactivating or deleting a user revokes all of their sessions
"""

from __future__ import annotations

from ..extensions import db
from ..models import User, TransactionType
from ..permissions import Capability, Role
from ..validation import NotFoundError, ValidationError
from . import session_service
from .auth_service import ensure_unique_identity, hash_password
from .ledger_service import log_for_actor, recent_transactions
from .pagination import paginate
from .permission_service import require_admin
from .session_service import SessionContext
from storefront.time_utils import utcnow

USER_MUTABLE_FIELDS = {"username", "email", "role", "is_active"}


def _get_live_user(user_id: int) -> User:
    user = User.live().filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(
    *,
    page: int,
    per_page: int,
    search: str | None = None,
    role: str | None = None,
    include_deleted: bool = False,
    sort_column=None,
    descending: bool = True,
) -> dict:
    """Paginated staff listing. Soft-deleted accounts only with include_deleted."""
    q = db.session.query(User) if include_deleted else User.live()

    if search:
        pattern = f"%{search}%"
        q = q.filter(db.or_(User.username.ilike(pattern), User.email.ilike(pattern)))
    if role:
        q = q.filter(User.role == role.upper())

    column = sort_column if sort_column is not None else User.created_at
    q = q.order_by(column.desc() if descending else column.asc(), User.id.asc())

    rows, pagination = paginate(q, page, per_page)
    return {
        "items": [u.to_dict() for u in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def get_user_detail(user_id: int) -> dict:
    """User plus their 10 most recent audit rows (as actor)."""
    user = _get_live_user(user_id)
    data = user.to_dict()
    data["recentTransactions"] = recent_transactions(user_id=user.id, limit=10)
    return data


def create_user(
    actor: SessionContext,
    *,
    patch: dict,
    password: str,
    permissions: dict[Capability, bool] | None = None,
) -> User:
    """
    Create a staff account from a validated patch.

    Raises ConflictError (duplicate username/email), PasswordValidationError,
    PermissionDeniedError (non-admin supplying permissions).
    """
    if permissions is not None:
        require_admin(actor.user, "set individual permissions")
    if patch.get("role") == Role.ADMIN.value:
        require_admin(actor.user, "assign the ADMIN role")

    for name in ("username", "email", "role"):
        if not patch.get(name):
            raise ValidationError("Validation failed", [{"field": name, "message": f"{name} is required"}])

    ensure_unique_identity(patch["username"], patch["email"])
    password_hash = hash_password(password)

    try:
        user = User(password_hash=password_hash)
        for k, v in patch.items():
            if k in USER_MUTABLE_FIELDS:
                setattr(user, k, v)
        user.apply_role_defaults()
        if permissions:
            user.set_permission_flags(permissions)

        db.session.add(user)
        db.session.flush()

        log_for_actor(
            actor,
            TransactionType.USER_CREATE,
            f"User created: {user.username} ({user.role}) by {actor.username}",
            metadata={
                "createdUserId": user.id,
                "role": user.role,
                "email": user.email,
                "permissions": {cap.value: value for cap, value in user.permission_flags.items()},
                "createdBy": actor.username,
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return user


def update_user(
    actor: SessionContext,
    user_id: int,
    *,
    patch: dict,
    password: str | None = None,
    permissions: dict[Capability, bool] | None = None,
) -> User:
    """
    Apply a validated partial update.

    Order matters: a role change resets flags to that role's defaults, then
    explicit overrides (ADMIN only) are applied on top.
    """
    if permissions is not None:
        require_admin(actor.user, "set individual permissions")
    if patch.get("role") == Role.ADMIN.value:
        require_admin(actor.user, "assign the ADMIN role")

    user = _get_live_user(user_id)
    if user.is_admin:
        require_admin(actor.user, "modify an administrator")

    username = patch.get("username")
    email = patch.get("email")
    ensure_unique_identity(
        username if username and username != user.username else None,
        email if email and email != user.email else None,
        exclude_user_id=user.id,
    )

    password_hash = hash_password(password) if password is not None else None

    changes: dict = {}
    try:
        for k, v in patch.items():
            if k not in USER_MUTABLE_FIELDS or getattr(user, k) == v:
                continue
            changes[k] = {"old": getattr(user, k), "new": v}
            setattr(user, k, v)

        if "role" in changes:
            user.apply_role_defaults()

        if permissions:
            before = user.permission_flags
            user.set_permission_flags(permissions)
            flag_changes = {
                cap.value: value
                for cap, value in permissions.items()
                if before[cap] != value
            }
            if flag_changes:
                changes["permissions"] = flag_changes

        if password_hash is not None:
            user.password_hash = password_hash
            changes["password"] = "changed"

        deactivated = "is_active" in changes and not user.is_active
        if deactivated or password_hash is not None:
            session_service.revoke_all_user_sessions(
                user.id,
                reason="User deactivated" if deactivated else "Password reset by administrator",
                keep_session_id=actor.session.id if actor.session is not None and actor.user_id == user.id else None,
                commit=False,
            )

        log_for_actor(
            actor,
            TransactionType.USER_UPDATE,
            f"User updated: {user.username} by {actor.username}",
            metadata={
                "updatedUserId": user.id,
                "updates": changes,
                "updatedBy": actor.username,
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return user


def delete_user(actor: SessionContext, user_id: int) -> None:
    """
    Soft delete: mark deleted_at, deactivate, revoke sessions.

    Raises ValidationError on self-delete, NotFoundError if absent.
    """
    user = _get_live_user(user_id)
    if user.id == actor.user_id:
        raise ValidationError("Cannot delete your own account")
    if user.is_admin:
        require_admin(actor.user, "delete an administrator")

    try:
        user.deleted_at = utcnow()
        user.is_active = False
        session_service.revoke_all_user_sessions(user.id, reason="User deleted", commit=False)

        log_for_actor(
            actor,
            TransactionType.USER_DELETE,
            f"User deleted: {user.username} by {actor.username}",
            metadata={
                "deletedUserId": user.id,
                "deletedUsername": user.username,
                "deletedBy": actor.username,
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def bootstrap_user(*, username: str, email: str, password: str, role: str) -> User:
    """
    Create a user outside any HTTP session (CLI).

    The new user is the actor of its own USER_CREATE row.
    """
    ensure_unique_identity(username, email.lower())
    password_hash = hash_password(password)

    try:
        user = User(
            username=username,
            email=email.lower(),
            password_hash=password_hash,
            role=Role(role.upper()).value,
        )
        user.apply_role_defaults()
        db.session.add(user)
        db.session.flush()

        log_for_actor(
            SessionContext(user=user),
            TransactionType.USER_CREATE,
            f"User created: {user.username} ({user.role}) by cli",
            metadata={
                "createdUserId": user.id,
                "role": user.role,
                "email": user.email,
                "createdBy": "cli",
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return user
