from __future__ import annotations

from ..extensions import db
from storefront.money import cents_to_float
from storefront.time_utils import to_utc_z, utcnow


STOCK_OPERATIONS = ("add", "subtract", "set")


class Product(db.Model):
    """
    Product master data and on-hand stock.

    STOCK LEDGER RULE:
    stock_quantity only changes through apply_stock_operation(), called by
    the stock update and sale services which write the matching audit rows.
    The column is never negative (CHECK constraint plus clamping).

    SKU: optional, unique among products that are not soft-deleted
    (partial unique index), so a removed product's SKU can be reused.

    Authoritative price storage is in cents (API formats as currency).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.CheckConstraint("min_stock_level >= 0", name="ck_products_min_stock_non_negative"),
        db.Index(
            "uq_products_sku_live",
            "sku",
            unique=True,
            sqlite_where=db.text("deleted_at IS NULL"),
            postgresql_where=db.text("deleted_at IS NULL"),
        ),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category"),
        db.Index("ix_products_is_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    sku = db.Column(db.String(100), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)

    min_stock_level = db.Column(db.Integer, nullable=False, default=10)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @classmethod
    def live(cls):
        """Query over products that have not been soft-deleted."""
        return db.session.query(cls).filter(cls.deleted_at.is_(None))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_in_stock(self) -> bool:
        return self.stock_quantity > 0

    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_level

    def apply_stock_operation(self, quantity: int, operation: str) -> tuple[int, int]:
        """
        add -> stock + quantity
        subtract -> max(0, stock - quantity)
        set -> max(0, quantity)

        Returns (old_stock, new_stock). Does not flush or write audit rows.
        """
        if operation not in STOCK_OPERATIONS:
            raise ValueError(f"Unknown stock operation: {operation}")

        old_stock = self.stock_quantity
        if operation == "add":
            new_stock = old_stock + quantity
        elif operation == "subtract":
            new_stock = max(0, old_stock - quantity)
        else:
            new_stock = max(0, quantity)

        self.stock_quantity = new_stock
        return old_stock, new_stock

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": cents_to_float(self.price_cents),
            "stockQuantity": self.stock_quantity,
            "sku": self.sku,
            "category": self.category,
            "supplier": self.supplier,
            "minStockLevel": self.min_stock_level,
            "isActive": self.is_active,
            "isLowStock": self.is_low_stock(),
            "isInStock": self.is_in_stock(),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": cents_to_float(self.price_cents),
            "sku": self.sku,
        }
