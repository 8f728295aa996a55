# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

Login, logout, registration and password changes each write their audit row
(LOGIN, LOGOUT, USER_CREATE, USER_UPDATE) in the same commit as the change.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_LOG_ROUNDS, default 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User, TransactionType
from ..permissions import Role
from ..validation import ConflictError
from . import session_service
from .ledger_service import log_transaction
from .session_service import SessionContext
from storefront.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthenticationError(Exception):
    """Raised when a credential check fails."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password is required")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if len(password.encode('utf-8')) > 72:
        raise PasswordValidationError("Password must be at most 72 bytes long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _log_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_log_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in storage
        return False


def authenticate(identifier: str, password: str) -> User | None:
    """
    Check username-or-email and password.

    Returns the User if credentials are valid and the account is active and
    not deleted, None otherwise. Does not commit.
    """
    user = User.live().filter(
        db.or_(User.username == identifier, User.email == identifier.lower()),
    ).first()

    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


def login(
    identifier: str,
    password: str,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[User, str]:
    """
    Authenticate, open a session and record LOGIN in one commit.

    Returns (user, plaintext_token). Raises AuthenticationError.
    """
    user = authenticate(identifier, password)
    if user is None:
        raise AuthenticationError("Invalid credentials")

    try:
        user.last_login_at = utcnow()
        _, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
            commit=False,
        )
        log_transaction(
            user_id=user.id,
            transaction_type=TransactionType.LOGIN,
            description=f"User logged in: {user.username}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return user, token


def logout(actor: SessionContext) -> None:
    """Revoke the actor's session and record LOGOUT in one commit."""
    try:
        if actor.session is not None:
            session_service.mark_revoked(actor.session, "User logout")
        log_transaction(
            user_id=actor.user_id,
            transaction_type=TransactionType.LOGOUT,
            description=f"User logged out: {actor.username}",
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def ensure_unique_identity(username: str | None, email: str | None, *, exclude_user_id: int | None = None) -> None:
    """
    Raise ConflictError if username or email is taken.

    Soft-deleted accounts keep their identity so audit rows stay unambiguous.
    """
    checks = []
    if username is not None:
        checks.append(User.username == username)
    if email is not None:
        checks.append(User.email == email)
    if not checks:
        return

    q = db.session.query(User).filter(db.or_(*checks))
    if exclude_user_id is not None:
        q = q.filter(User.id != exclude_user_id)
    existing = q.first()
    if existing is None:
        return
    if username is not None and existing.username == username:
        raise ConflictError("Username already exists")
    raise ConflictError("Email already exists")


def register_user(
    *,
    username: str,
    email: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[User, str]:
    """
    Self-registration: always creates a CASHIER with default flags.

    The new user is the actor of its own USER_CREATE row.
    Returns (user, plaintext_token).
    """
    ensure_unique_identity(username, email)
    password_hash = hash_password(password)

    try:
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            role=Role.CASHIER.value,
        )
        user.apply_role_defaults()
        db.session.add(user)
        db.session.flush()

        log_transaction(
            user_id=user.id,
            transaction_type=TransactionType.USER_CREATE,
            description=f"User account created: {username} ({user.role})",
            metadata={"role": user.role, "email": email, "selfRegistered": True},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        _, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
            commit=False,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return user, token


def change_password(actor: SessionContext, current_password: str, new_password: str) -> None:
    """
    Change the actor's own password.

    Revokes every other session of the user and records USER_UPDATE.
    Raises AuthenticationError if current_password is wrong.
    """
    user = actor.user
    if not verify_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")

    password_hash = hash_password(new_password)

    try:
        user.password_hash = password_hash
        session_service.revoke_all_user_sessions(
            user.id,
            reason="Password changed",
            keep_session_id=actor.session.id if actor.session is not None else None,
            commit=False,
        )
        log_transaction(
            user_id=user.id,
            transaction_type=TransactionType.USER_UPDATE,
            description=f"Password changed: {user.username}",
            metadata={"updatedUserId": user.id, "updates": {"password": "changed"}, "updatedBy": user.username},
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
