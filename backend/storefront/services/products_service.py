# backend/storefront/services/products_service.py
"""
Products Service

STOCK LEDGER RULE: stock_quantity changes only here (create, update_stock)
and in the sale processor. Each change writes its audit row in the same
commit as the change.

- list_products / list_low_stock / list_categories are read-only
- create_product records PRODUCT_ADD with the initial stock
- update_product records PRODUCT_UPDATE with old and new values; it never
  touches stock
- update_stock locks the row and records STOCK_UPDATE
- delete_product soft-deletes and records PRODUCT_DELETE
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, TransactionType
from ..validation import MAX_DB_INT, ConflictError, NotFoundError, ValidationError
from .concurrency import begin_write, lock_for_update
from .ledger_service import log_for_actor, recent_transactions
from .pagination import paginate
from .session_service import SessionContext
from storefront.money import cents_to_float
from storefront.time_utils import utcnow

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "price_cents",
    "sku",
    "category",
    "supplier",
    "min_stock_level",
    "is_active",
}

# Column key -> wire name, for audit metadata
_WIRE_NAMES = {
    "name": "name",
    "description": "description",
    "price_cents": "price",
    "sku": "sku",
    "category": "category",
    "supplier": "supplier",
    "min_stock_level": "minStockLevel",
    "is_active": "isActive",
    "stock_quantity": "stockQuantity",
}


def _wire_value(key: str, value):
    if key == "price_cents":
        return cents_to_float(value)
    return value


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(sku: str | None, *, exclude_product_id: int | None = None) -> None:
    if not sku:
        return
    q = Product.live().filter(Product.sku == sku)
    if exclude_product_id is not None:
        q = q.filter(Product.id != exclude_product_id)
    if q.first() is not None:
        raise ConflictError("SKU already exists")


def get_product(product_id: int) -> Product:
    """Live product by id; soft-deleted counts as missing."""
    p = Product.live().filter(Product.id == product_id).first()
    if p is None:
        raise NotFoundError("Product not found")
    return p


def get_product_detail(product_id: int) -> dict:
    """Product plus its 10 most recent audit rows."""
    p = get_product(product_id)
    data = p.to_dict()
    data["recentTransactions"] = recent_transactions(product_id=p.id, limit=10)
    return data


def list_products(
    *,
    page: int,
    per_page: int,
    search: str | None = None,
    category: str | None = None,
    include_inactive: bool = False,
    sort_column=None,
    descending: bool = True,
) -> dict:
    """
    Paginated catalog listing.

    search matches name, description or SKU (case-insensitive substring).
    Inactive products are hidden unless include_inactive.
    """
    q = Product.live()

    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))

    if search:
        pattern = f"%{search}%"
        q = q.filter(db.or_(
            Product.name.ilike(pattern),
            Product.description.ilike(pattern),
            Product.sku.ilike(pattern),
        ))

    if category:
        q = q.filter(Product.category == category)

    column = sort_column if sort_column is not None else Product.created_at
    q = q.order_by(column.desc() if descending else column.asc(), Product.id.asc())

    rows, pagination = paginate(q, page, per_page)
    return {
        "items": [p.to_dict() for p in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def list_low_stock() -> dict:
    """Active products at or below their minimum stock level, emptiest first."""
    rows = (
        Product.live()
        .filter(Product.is_active.is_(True))
        .filter(Product.stock_quantity <= Product.min_stock_level)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )
    return {"items": [p.to_dict() for p in rows], "count": len(rows)}


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.deleted_at.is_(None))
        .filter(Product.category.isnot(None))
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [r[0] for r in rows]


def create_product(actor: SessionContext, *, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    The initial stock is part of creation and is recorded as the
    PRODUCT_ADD row's quantity.

    Raises ConflictError if the SKU is taken by a live product.
    """
    _ensure_sku_available(patch.get("sku"))

    try:
        p = Product()
        apply_product_patch(p, patch)
        p.stock_quantity = patch.get("stock_quantity") or 0

        db.session.add(p)
        db.session.flush()  # ensure p.id exists before the audit row

        log_for_actor(
            actor,
            TransactionType.PRODUCT_ADD,
            f"Product added: {p.name} (ID: {p.id})",
            product_id=p.id,
            quantity=p.stock_quantity,
            metadata={
                "price": cents_to_float(p.price_cents),
                "sku": p.sku,
                "category": p.category,
                "supplier": p.supplier,
                "addedBy": actor.username,
            },
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU already exists")
    except Exception:
        db.session.rollback()
        raise

    return p


def update_product(actor: SessionContext, product_id: int, *, patch: dict) -> Product:
    """
    Apply a validated partial update (stock excluded).

    Only fields whose value actually changes are recorded.
    """
    p = get_product(product_id)

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_sku_available(patch["sku"], exclude_product_id=p.id)

    old_values: dict = {}
    new_values: dict = {}
    try:
        for k, v in patch.items():
            if k not in PRODUCT_MUTABLE_FIELDS or getattr(p, k) == v:
                continue
            wire = _WIRE_NAMES[k]
            old_values[wire] = _wire_value(k, getattr(p, k))
            new_values[wire] = _wire_value(k, v)
            setattr(p, k, v)

        db.session.flush()

        log_for_actor(
            actor,
            TransactionType.PRODUCT_UPDATE,
            f"Product updated: {p.name} (ID: {p.id})",
            product_id=p.id,
            metadata={
                "oldValues": old_values,
                "newValues": new_values,
                "updatedBy": actor.username,
            },
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU already exists")
    except Exception:
        db.session.rollback()
        raise

    return p


def update_stock(actor: SessionContext, product_id: int, *, quantity: int, operation: str) -> Product:
    """
    add -> stock + q; subtract -> max(0, stock - q); set -> max(0, q).

    The product row is locked for the whole unit. Writes exactly one
    STOCK_UPDATE row whose quantity is q for add/set and -q for subtract.
    """
    try:
        begin_write()
        p = lock_for_update(Product.live().filter(Product.id == product_id)).first()
        if p is None:
            raise NotFoundError("Product not found")

        if operation == "add" and p.stock_quantity + quantity > MAX_DB_INT:
            raise ValidationError(
                "Validation failed",
                [{"field": "quantity", "message": f"Resulting stock cannot exceed {MAX_DB_INT}"}],
            )

        old_stock, new_stock = p.apply_stock_operation(quantity, operation)

        log_for_actor(
            actor,
            TransactionType.STOCK_UPDATE,
            f"Stock updated for {p.name}: {old_stock} -> {new_stock} ({operation} {quantity})",
            product_id=p.id,
            quantity=-quantity if operation == "subtract" else quantity,
            metadata={
                "operation": operation,
                "oldStock": old_stock,
                "newStock": new_stock,
                "quantityChanged": quantity,
                "updatedBy": actor.username,
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return p


def delete_product(actor: SessionContext, product_id: int) -> None:
    """Soft delete; the SKU becomes reusable."""
    p = get_product(product_id)

    try:
        p.deleted_at = utcnow()
        p.is_active = False

        log_for_actor(
            actor,
            TransactionType.PRODUCT_DELETE,
            f"Product deleted: {p.name} (ID: {p.id})",
            product_id=p.id,
            metadata={
                "productName": p.name,
                "sku": p.sku,
                "stockAtDeletion": p.stock_quantity,
                "deletedBy": actor.username,
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
