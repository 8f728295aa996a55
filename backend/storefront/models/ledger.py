from __future__ import annotations

import enum

from sqlalchemy import event

from ..extensions import db
from storefront.money import cents_to_float
from storefront.time_utils import to_utc_z, utcnow


class TransactionType(str, enum.Enum):
    PRODUCT_ADD = "PRODUCT_ADD"
    PRODUCT_UPDATE = "PRODUCT_UPDATE"
    PRODUCT_DELETE = "PRODUCT_DELETE"
    STOCK_UPDATE = "STOCK_UPDATE"
    SALE = "SALE"
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"


class Transaction(db.Model):
    """
    Audit ledger entry: one accountable action.

    IMMUTABLE: Append-only. No updated_at column; updates and deletes are
    rejected at flush time.

    quantity is signed and its meaning depends on the kind:
    - SALE: units sold on this line
    - STOCK_UPDATE: +q for add, -q for subtract, the new level for set
    - PRODUCT_ADD: initial stock
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents IS NULL OR amount_cents >= 0", name="ck_transactions_amount_non_negative"),
        db.Index("ix_transactions_user_type", "user_id", "transaction_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)

    amount_cents = db.Column(db.Integer, nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    quantity = db.Column(db.Integer, nullable=True)

    # "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    user = db.relationship("User", backref=db.backref("transactions", lazy="dynamic"))
    product = db.relationship("Product", backref=db.backref("transactions", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.transaction_type} user_id={self.user_id}>"

    def to_dict(self, include_relations: bool = True) -> dict:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "transactionType": self.transaction_type,
            "description": self.description,
            "amount": cents_to_float(self.amount_cents),
            "productId": self.product_id,
            "quantity": self.quantity,
            "metadata": self.meta or {},
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_relations:
            data["user"] = self.user.to_summary() if self.user else None
            data["product"] = self.product.to_summary() if self.product else None
        return data


@event.listens_for(Transaction, "before_update")
def _reject_transaction_update(mapper, connection, target):
    raise ValueError("Audit transactions are immutable")


@event.listens_for(Transaction, "before_delete")
def _reject_transaction_delete(mapper, connection, target):
    raise ValueError("Audit transactions are append-only")
