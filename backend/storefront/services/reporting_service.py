# Overview: Service-layer operations for reporting; read-only aggregates over the audit ledger.

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Transaction, TransactionType, User
from storefront.money import cents_to_float
from storefront.time_utils import day_bounds


class ReportError(Exception):
    """Raised when report parameters are unusable."""
    pass


def _sale_rows(start: datetime | None, end: datetime | None, *, end_exclusive: bool = False):
    q = db.session.query(Transaction).filter(
        Transaction.transaction_type == TransactionType.SALE.value,
    )
    if start is not None:
        q = q.filter(Transaction.created_at >= start)
    if end is not None:
        q = q.filter(Transaction.created_at < end if end_exclusive else Transaction.created_at <= end)
    return q


def _summary(query) -> dict:
    row = query.with_entities(
        func.coalesce(func.sum(Transaction.amount_cents), 0).label("amount_cents"),
        func.coalesce(func.sum(Transaction.quantity), 0).label("quantity"),
        func.count(Transaction.id).label("rows"),
    ).one()
    return {
        "totalSales": cents_to_float(int(row.amount_cents)),
        "totalQuantity": int(row.quantity),
        "totalTransactions": int(row.rows),
    }


def _date_key(value) -> str:
    # func.date returns a string on SQLite and a date elsewhere
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)


def daily_sales_report(day: date) -> dict:
    """Totals for one UTC calendar day plus the top 10 products by units sold."""
    start, end = day_bounds(day)
    base = _sale_rows(start, end, end_exclusive=True)

    qty = func.sum(Transaction.quantity)
    top = (
        base.join(Product, Product.id == Transaction.product_id)
        .with_entities(
            Transaction.product_id,
            Product.name,
            Product.price_cents,
            qty.label("total_quantity"),
            func.sum(Transaction.amount_cents).label("total_amount_cents"),
        )
        .group_by(Transaction.product_id, Product.name, Product.price_cents)
        .order_by(qty.desc(), Transaction.product_id.asc())
        .limit(10)
        .all()
    )

    return {
        "date": day.isoformat(),
        "summary": _summary(base),
        "topProducts": [
            {
                "productId": r.product_id,
                "productName": r.name,
                "price": cents_to_float(r.price_cents),
                "totalQuantity": int(r.total_quantity or 0),
                "totalAmount": cents_to_float(int(r.total_amount_cents or 0)),
            }
            for r in top
        ],
    }


def period_sales_report(start: datetime, end: datetime) -> dict:
    """Totals over [start, end] plus a per-day breakdown, oldest first."""
    if start > end:
        raise ReportError("startDate must be on or before endDate")

    base = _sale_rows(start, end)
    day = func.date(Transaction.created_at)
    daily = (
        base.with_entities(
            day.label("day"),
            func.coalesce(func.sum(Transaction.amount_cents), 0).label("amount_cents"),
            func.coalesce(func.sum(Transaction.quantity), 0).label("quantity"),
            func.count(Transaction.id).label("rows"),
        )
        .group_by(day)
        .order_by(day.asc())
        .all()
    )

    return {
        "period": {"startDate": start.isoformat(), "endDate": end.isoformat()},
        "summary": _summary(base),
        "dailyBreakdown": [
            {
                "date": _date_key(r.day),
                "totalSales": cents_to_float(int(r.amount_cents)),
                "totalQuantity": int(r.quantity),
                "totalTransactions": int(r.rows),
            }
            for r in daily
        ],
    }


def transaction_stats(start: datetime | None = None, end: datetime | None = None) -> dict:
    """Audit activity: counts by kind, counts per day, 10 most active users."""
    base = db.session.query(Transaction)
    if start is not None:
        base = base.filter(Transaction.created_at >= start)
    if end is not None:
        base = base.filter(Transaction.created_at <= end)

    by_type = (
        base.with_entities(Transaction.transaction_type, func.count(Transaction.id))
        .group_by(Transaction.transaction_type)
        .order_by(Transaction.transaction_type.asc())
        .all()
    )

    day = func.date(Transaction.created_at)
    daily = (
        base.with_entities(day.label("day"), func.count(Transaction.id).label("count"))
        .group_by(day)
        .order_by(day.asc())
        .all()
    )

    count = func.count(Transaction.id)
    active = (
        base.join(User, User.id == Transaction.user_id)
        .with_entities(User.id, User.username, User.role, count.label("count"))
        .group_by(User.id, User.username, User.role)
        .order_by(count.desc(), User.id.asc())
        .limit(10)
        .all()
    )

    return {
        "transactionsByType": [
            {"transactionType": t, "count": int(c)} for t, c in by_type
        ],
        "dailyTransactions": [
            {"date": _date_key(r.day), "count": int(r.count)} for r in daily
        ],
        "activeUsers": [
            {"userId": r.id, "username": r.username, "role": r.role, "transactionCount": int(r.count)}
            for r in active
        ],
    }
