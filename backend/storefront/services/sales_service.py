# Overview: Service-layer operations for sales; encapsulates the atomic sale unit of work.

"""
Sale Transaction Processor

WHY: A sale either happens completely or not at all. Stock checks, stock
decrements and the SALE audit rows share one database transaction.

ORDER OF WORK (single unit):
1. Lock and validate every line in input order. The first failure aborts
   before any stock is touched. Repeated products are checked against their
   cumulative requested quantity.
2. Price the cart: subtotal from the prices read in step 1, then discount,
   then tax on the discounted amount.
3. Decrement stock per line.
4. One SALE row per line, all sharing the same saleId.
5. Commit. Any exception rolls every effect back.

CONCURRENCY: product rows are read with SELECT ... FOR UPDATE; on SQLite the
unit starts with BEGIN IMMEDIATE so a second sale waits for the first to
commit and then sees the decremented stock. Nothing is retried.
"""

from __future__ import annotations

import time
from decimal import Decimal

from ..extensions import db
from ..models import Product, Transaction, TransactionType, User
from ..validation import NotFoundError
from .concurrency import begin_write, lock_for_update
from .ledger_service import log_for_actor
from .pagination import paginate
from .session_service import SessionContext
from storefront.money import from_cents, money_to_float, round_rate, to_cents
from storefront.time_utils import to_utc_z, utcnow


class SaleError(Exception):
    """Sale precondition failure; `details` is returned to the client."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(SaleError):
    pass


class InvalidStateError(SaleError):
    pass


def make_sale_id(user_id: int) -> str:
    """
    SALE_<epoch-ms>_<user id>.

    NOTE: Two sales by the same user within one millisecond share an id,
    and their SALE rows then group as one sale.
    """
    return f"SALE_{int(time.time() * 1000)}_{user_id}"


def process_sale(
    actor: SessionContext,
    *,
    items: list[tuple[int, int]],
    tax_rate: Decimal = Decimal("0"),
    discount: Decimal = Decimal("0"),
    payment_method: str = "CASH",
) -> dict:
    """
    Run one sale for `actor`.

    items: ordered (product_id, quantity) pairs, quantity >= 1.

    Raises NotFoundError, InvalidStateError, InsufficientStockError. On any
    error no stock changes and no rows are written.
    """
    try:
        begin_write()

        lines: list[tuple[Product, int, Decimal]] = []
        requested: dict[int, int] = {}
        subtotal = Decimal("0")

        for product_id, quantity in items:
            product = lock_for_update(Product.live().filter(Product.id == product_id)).first()
            if product is None:
                raise NotFoundError(f"Product with ID {product_id} not found")

            if not product.is_active:
                raise InvalidStateError(
                    f"Product {product.name} is not active",
                    {"productId": product.id, "productName": product.name},
                )

            requested[product.id] = requested.get(product.id, 0) + quantity
            if product.stock_quantity < requested[product.id]:
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name}",
                    {
                        "productId": product.id,
                        "productName": product.name,
                        "available": product.stock_quantity,
                        "requested": requested[product.id],
                    },
                )

            unit_price = from_cents(product.price_cents)
            line_total = unit_price * quantity
            subtotal += line_total
            lines.append((product, quantity, line_total))

        discount_amount = discount
        taxable_amount = subtotal - discount_amount
        tax_amount = taxable_amount * tax_rate
        total = taxable_amount + tax_amount

        sale_id = make_sale_id(actor.user_id)
        totals = {
            "subtotal": money_to_float(subtotal),
            "discount": money_to_float(discount_amount),
            "taxRate": float(round_rate(tax_rate)),
            "taxAmount": money_to_float(tax_amount),
            "total": money_to_float(total),
        }

        sold_items = []
        for line_number, (product, quantity, line_total) in enumerate(lines, start=1):
            product.apply_stock_operation(quantity, "subtract")

            unit_price = from_cents(product.price_cents)
            log_for_actor(
                actor,
                TransactionType.SALE,
                f"Sale: {quantity}x {product.name} @ ${unit_price:.2f}",
                amount_cents=to_cents(line_total),
                product_id=product.id,
                quantity=quantity,
                metadata={
                    "saleId": sale_id,
                    "productName": product.name,
                    "unitPrice": money_to_float(unit_price),
                    "paymentMethod": payment_method,
                    "cashier": actor.username,
                    "lineNumber": line_number,
                    **totals,
                },
            )

            sold_items.append({
                "productId": product.id,
                "productName": product.name,
                "price": money_to_float(unit_price),
                "quantity": quantity,
                "itemTotal": money_to_float(line_total),
            })

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return {
        "saleId": sale_id,
        "items": sold_items,
        **totals,
        "paymentMethod": payment_method,
        "cashier": actor.username,
        "timestamp": to_utc_z(utcnow()),
    }


def sales_history(
    *,
    page: int,
    per_page: int,
    start=None,
    end=None,
    cashier: str | None = None,
    descending: bool = True,
) -> dict:
    """
    Paginated SALE rows with actor and product summaries.

    An unknown cashier username yields an empty page rather than an
    unfiltered one.
    """
    q = db.session.query(Transaction).filter(
        Transaction.transaction_type == TransactionType.SALE.value,
    )

    if start is not None:
        q = q.filter(Transaction.created_at >= start)
    if end is not None:
        q = q.filter(Transaction.created_at <= end)

    if cashier:
        user = db.session.query(User).filter(User.username == cashier).first()
        q = q.filter(Transaction.user_id == (user.id if user else -1))

    order = Transaction.created_at.desc() if descending else Transaction.created_at.asc()
    tie = Transaction.id.desc() if descending else Transaction.id.asc()
    rows, pagination = paginate(q.order_by(order, tie), page, per_page)

    return {
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "pagination": pagination,
    }
