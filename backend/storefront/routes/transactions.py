# Overview: Flask API routes for the audit ledger; read-only listings and statistics.

# backend/storefront/routes/transactions.py
"""
Audit ledger routes (canViewTransactions).

Read-only: none of these endpoints write audit rows.
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Transaction, TransactionType
from ..permissions import Capability
from ..services import ledger_service, reporting_service
from ..validation import (
    parse_pagination,
    parse_sort,
    parse_datetime_arg,
    parse_id_arg,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

TRANSACTION_SORT_COLUMNS = {
    "createdAt": Transaction.created_at,
    "transactionType": Transaction.transaction_type,
    "amount": Transaction.amount_cents,
}

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _list_args() -> dict:
    page, per_page = parse_pagination(
        request.args,
        default_per_page=current_app.config["DEFAULT_PAGE_SIZE"],
        max_per_page=current_app.config["MAX_PAGE_SIZE"],
    )
    sort_column, descending = parse_sort(request.args, TRANSACTION_SORT_COLUMNS, "createdAt")
    return {
        "page": page,
        "per_page": per_page,
        "start": parse_datetime_arg(request.args, "startDate"),
        "end": parse_datetime_arg(request.args, "endDate", end_of_day=True),
        "sort_column": sort_column,
        "descending": descending,
    }


def _transaction_type_arg() -> str | None:
    raw = (request.args.get("type") or "").strip().upper()
    if not raw:
        return None
    if raw not in TransactionType.__members__:
        raise ValidationError(
            "Validation failed",
            [{"field": "type", "message": f"Unknown transaction type: {raw}"}],
        )
    return raw


@transactions_bp.get("")
@require_auth
@require_permission(Capability.VIEW_TRANSACTIONS)
def list_transactions_route():
    """
    Query params: page, limit, type, userId, productId, startDate, endDate,
    sortBy (createdAt | transactionType | amount), sortOrder.
    """
    try:
        args = _list_args()
        transaction_type = _transaction_type_arg()
        user_id = parse_id_arg(request.args, "userId")
        product_id = parse_id_arg(request.args, "productId")
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    return jsonify(ledger_service.list_transactions(
        transaction_type=transaction_type,
        user_id=user_id,
        product_id=product_id,
        **args,
    ))


@transactions_bp.get("/types")
@require_auth
@require_permission(Capability.VIEW_TRANSACTIONS)
def transaction_types_route():
    return jsonify({"types": [t.value for t in TransactionType]})


@transactions_bp.get("/<int:transaction_id>")
@require_auth
@require_permission(Capability.VIEW_TRANSACTIONS)
def get_transaction_route(transaction_id: int):
    try:
        tx = ledger_service.get_transaction(transaction_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(tx.to_dict())


@transactions_bp.get("/user/<int:user_id>")
@require_auth
@require_permission(Capability.VIEW_TRANSACTIONS)
def user_transactions_route(user_id: int):
    """Rows where the given user is the actor."""
    try:
        args = _list_args()
        transaction_type = _transaction_type_arg()
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    return jsonify(ledger_service.list_transactions(
        transaction_type=transaction_type,
        user_id=user_id,
        **args,
    ))


@transactions_bp.get("/product/<int:product_id>")
@require_auth
@require_permission(Capability.VIEW_TRANSACTIONS)
def product_transactions_route(product_id: int):
    """Rows that reference the given product."""
    try:
        args = _list_args()
        transaction_type = _transaction_type_arg()
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    return jsonify(ledger_service.list_transactions(
        transaction_type=transaction_type,
        product_id=product_id,
        **args,
    ))


@transactions_bp.get("/stats/summary")
@require_auth
@require_permission(Capability.VIEW_TRANSACTIONS)
def transaction_stats_route():
    """Counts by type, daily counts and the 10 most active users."""
    try:
        start = parse_datetime_arg(request.args, "startDate")
        end = parse_datetime_arg(request.args, "endDate", end_of_day=True)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        return jsonify(reporting_service.transaction_stats(start, end))
    except Exception:
        current_app.logger.exception("Failed to build transaction statistics")
        return jsonify({"error": "Internal server error"}), 500
