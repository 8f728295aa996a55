# Overview: Service-layer operations for the audit ledger; append and read Transaction rows.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import Transaction, TransactionType
from ..validation import NotFoundError
from .pagination import paginate
"""
Audit Ledger Invariants (authoritative)

- Append-only: rows are never updated or deleted (enforced by model events).
- Rows are written inside the same DB transaction as the action they record;
  a failed write fails the action.
- Read endpoints never write rows.
- created_at is system time (UTC-naive).
"""


def log_transaction(
    *,
    user_id: int,
    transaction_type: TransactionType,
    description: str,
    amount_cents: int | None = None,
    product_id: int | None = None,
    quantity: int | None = None,
    metadata: Optional[dict] = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Transaction:
    """
    Append one audit row to the current unit of work.

    - No domain logic here.
    - Does not commit: the caller commits (or rolls back) together with the action.
    """
    tx = Transaction(
        user_id=user_id,
        transaction_type=TransactionType(transaction_type).value,
        description=description,
        amount_cents=amount_cents,
        product_id=product_id,
        quantity=quantity,
        meta=metadata or {},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(tx)
    db.session.flush()  # ensures tx.id is assigned without committing
    return tx


def log_for_actor(actor, transaction_type: TransactionType, description: str, **fields) -> Transaction:
    """log_transaction() with user and client details taken from a SessionContext."""
    return log_transaction(
        user_id=actor.user_id,
        transaction_type=transaction_type,
        description=description,
        ip_address=actor.ip_address,
        user_agent=actor.user_agent,
        **fields,
    )


def list_transactions(
    *,
    page: int,
    per_page: int,
    transaction_type: str | None = None,
    user_id: int | None = None,
    product_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    sort_column=None,
    descending: bool = True,
) -> dict:
    """Filtered, paginated audit listing, newest first by default."""
    q = db.session.query(Transaction)

    if transaction_type:
        q = q.filter(Transaction.transaction_type == TransactionType(transaction_type).value)
    if user_id is not None:
        q = q.filter(Transaction.user_id == user_id)
    if product_id is not None:
        q = q.filter(Transaction.product_id == product_id)
    if start is not None:
        q = q.filter(Transaction.created_at >= start)
    if end is not None:
        q = q.filter(Transaction.created_at <= end)

    column = sort_column if sort_column is not None else Transaction.created_at
    order = column.desc() if descending else column.asc()
    tie = Transaction.id.desc() if descending else Transaction.id.asc()
    q = q.order_by(order, tie)

    rows, pagination = paginate(q, page, per_page)
    return {
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def get_transaction(transaction_id: int) -> Transaction:
    tx = db.session.get(Transaction, transaction_id)
    if tx is None:
        raise NotFoundError("Transaction not found")
    return tx


def recent_transactions(*, product_id: int | None = None, user_id: int | None = None, limit: int = 10) -> list[dict]:
    q = db.session.query(Transaction)
    if product_id is not None:
        q = q.filter(Transaction.product_id == product_id)
    if user_id is not None:
        q = q.filter(Transaction.user_id == user_id)
    rows = q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()
    return [r.to_dict(include_relations=False) for r in rows]
