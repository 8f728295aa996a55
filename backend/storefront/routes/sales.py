# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/storefront/routes/sales.py
"""
Sales routes.

- POST /api/sales runs one atomic sale (canProcessSales)
- GET /api/sales/history lists SALE audit rows (canViewTransactions)
- GET /api/sales/reports/* aggregate sales (canViewReports)
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..permissions import Capability
from ..services import sales_service, reporting_service
from ..services.sales_service import SaleError
from ..services.reporting_service import ReportError
from ..validation import (
    validate_sale_payload,
    parse_pagination,
    parse_datetime_arg,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission
from storefront.time_utils import parse_iso_date, utcnow

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_permission(Capability.PROCESS_SALES)
def create_sale_route():
    """
    Process a sale.

    Body: {"items": [{"productId", "quantity"}], "taxRate"?, "discount"?, "paymentMethod"?}

    Returns the sale summary. Nothing is persisted unless every line passes.
    """
    try:
        sale = validate_sale_payload(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        result = sales_service.process_sale(
            g.session_context,
            items=sale["items"],
            tax_rate=sale["tax_rate"],
            discount=sale["discount"],
            payment_method=sale["payment_method"],
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to process sale")
        return jsonify({"error": "Internal server error"}), 500

    if result["total"] < 0:
        current_app.logger.warning(
            "Sale %s has a negative total (%s): discount %s exceeds subtotal %s",
            result["saleId"], result["total"], result["discount"], result["subtotal"],
        )
    current_app.logger.info(
        "Sale %s completed by %s: %d line(s), total %.2f",
        result["saleId"], result["cashier"], len(result["items"]), result["total"],
    )

    return jsonify({"message": "Sale completed successfully", "sale": result}), 200


@sales_bp.get("/history")
@require_auth
@require_permission(Capability.VIEW_TRANSACTIONS)
def sales_history_route():
    """
    Paginated SALE rows, newest first.

    Query params: page, limit, startDate, endDate, cashier (username), sortOrder.
    """
    try:
        page, per_page = parse_pagination(
            request.args,
            default_per_page=current_app.config["DEFAULT_PAGE_SIZE"],
            max_per_page=current_app.config["MAX_PAGE_SIZE"],
        )
        start = parse_datetime_arg(request.args, "startDate")
        end = parse_datetime_arg(request.args, "endDate", end_of_day=True)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    sort_order = (request.args.get("sortOrder") or "DESC").upper()
    if sort_order not in ("ASC", "DESC"):
        return jsonify({"error": "sortOrder must be ASC or DESC"}), 400

    return jsonify(sales_service.sales_history(
        page=page,
        per_page=per_page,
        start=start,
        end=end,
        cashier=(request.args.get("cashier") or "").strip() or None,
        descending=sort_order == "DESC",
    ))


@sales_bp.get("/reports/daily")
@require_auth
@require_permission(Capability.VIEW_REPORTS)
def daily_report_route():
    """Sales for one UTC day (date=YYYY-MM-DD, default today)."""
    try:
        day = parse_iso_date(request.args.get("date")) or utcnow().date()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    try:
        return jsonify(reporting_service.daily_sales_report(day))
    except Exception:
        current_app.logger.exception("Failed to build daily sales report")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/reports/period")
@require_auth
@require_permission(Capability.VIEW_REPORTS)
def period_report_route():
    """Sales between startDate and endDate (both required), with a daily breakdown."""
    if not request.args.get("startDate") or not request.args.get("endDate"):
        return jsonify({"error": "Start date and end date are required"}), 400

    try:
        start = parse_datetime_arg(request.args, "startDate")
        end = parse_datetime_arg(request.args, "endDate", end_of_day=True)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        return jsonify(reporting_service.period_sales_report(start, end))
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build period sales report")
        return jsonify({"error": "Internal server error"}), 500
