from __future__ import annotations

from ..extensions import db
from ..permissions import Capability, Role, default_flags
from storefront.time_utils import to_utc_z, utcnow


class User(db.Model):
    """
    Staff accounts for authentication and attribution.

    WHY: Every action must be attributable. No shared logins.

    CAPABILITIES: One boolean column per Capability. Defaults come from the
    role; an ADMIN may override individual flags on other users.

    SOFT DELETE: Users are never hard-deleted. deleted_at marks removal so
    the audit trail keeps a valid actor for every Transaction.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role", "role"),
        db.Index("ix_users_deleted_at", "deleted_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(50), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=Role.CASHIER.value)

    can_view_products = db.Column(db.Boolean, nullable=False, default=True)
    can_add_products = db.Column(db.Boolean, nullable=False, default=False)
    can_edit_products = db.Column(db.Boolean, nullable=False, default=False)
    can_delete_products = db.Column(db.Boolean, nullable=False, default=False)
    can_view_users = db.Column(db.Boolean, nullable=False, default=False)
    can_add_users = db.Column(db.Boolean, nullable=False, default=False)
    can_edit_users = db.Column(db.Boolean, nullable=False, default=False)
    can_delete_users = db.Column(db.Boolean, nullable=False, default=False)
    can_process_sales = db.Column(db.Boolean, nullable=False, default=True)
    can_view_transactions = db.Column(db.Boolean, nullable=False, default=False)
    can_view_reports = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @classmethod
    def live(cls):
        """Query over users that have not been soft-deleted."""
        return db.session.query(cls).filter(cls.deleted_at.is_(None))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def permission_flags(self) -> dict[Capability, bool]:
        return {cap: bool(getattr(self, cap.column)) for cap in Capability}

    def set_permission_flags(self, flags: dict[Capability, bool]) -> None:
        for cap, value in flags.items():
            setattr(self, cap.column, bool(value))

    def apply_role_defaults(self) -> None:
        self.set_permission_flags(default_flags(self.role))

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "permissions": {cap.value: value for cap, value in self.permission_flags.items()},
            "isActive": self.is_active,
            "deletedAt": to_utc_z(self.deleted_at),
            "lastLogin": to_utc_z(self.last_login_at),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_summary(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role}


class SessionToken(db.Model):
    """
    Secure session token management.

    WHY: Opaque bearer tokens with timeout and revocation support.
    Tokens are cryptographically secure random strings (32 bytes = 64 hex chars).

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout, password change or account removal
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Session metadata
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Revocation support
    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    # Client context
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "createdAt": to_utc_z(self.created_at),
            "lastUsedAt": to_utc_z(self.last_used_at),
            "expiresAt": to_utc_z(self.expires_at),
            "isRevoked": self.is_revoked,
            "revokedAt": to_utc_z(self.revoked_at),
            "revokedReason": self.revoked_reason,
        }
