# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/storefront/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require canViewProducts
- Create requires canAddProducts
- Edit and stock changes require canEditProducts
- Delete requires canDeleteProducts

Stock is never writable through PUT /<id>; it changes only through
PUT /<id>/stock (or a sale) so every change leaves a STOCK_UPDATE row.
"""
from flask import Blueprint, request, g, jsonify, current_app

from ..services import products_service
from ..models import Product
from ..permissions import Capability
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    validate_stock_payload,
    enforce_rules_product,
    parse_pagination,
    parse_sort,
    parse_flag,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

_PRODUCT_FIELDS = {
    "name": "name",
    "description": "description",
    "price": "price_cents",
    "sku": "sku",
    "category": "category",
    "supplier": "supplier",
    "minStockLevel": "min_stock_level",
    "isActive": "is_active",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    fields={**_PRODUCT_FIELDS, "stockQuantity": "stock_quantity"},
    required_on_create=frozenset({"name", "price"}),
    money_fields=frozenset({"price"}),
    non_negative=frozenset({"stockQuantity", "minStockLevel"}),
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    fields=_PRODUCT_FIELDS,
    money_fields=frozenset({"price"}),
    non_negative=frozenset({"minStockLevel"}),
)

PRODUCT_SORT_COLUMNS = {
    "name": Product.name,
    "price": Product.price_cents,
    "stockQuantity": Product.stock_quantity,
    "category": Product.category,
    "sku": Product.sku,
    "createdAt": Product.created_at,
    "updatedAt": Product.updated_at,
}

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission(Capability.VIEW_PRODUCTS)
def list_products():
    """
    List products with pagination, search and filtering.

    Query params:
    - page, limit: pagination (limit defaults to DEFAULT_PAGE_SIZE)
    - search: substring of name, description or SKU
    - category: exact category
    - includeInactive: "true" to include deactivated products
    - sortBy: name | price | stockQuantity | category | sku | createdAt | updatedAt
    - sortOrder: ASC | DESC (default DESC)
    """
    try:
        page, per_page = parse_pagination(
            request.args,
            default_per_page=current_app.config["DEFAULT_PAGE_SIZE"],
            max_per_page=current_app.config["MAX_PAGE_SIZE"],
        )
        sort_column, descending = parse_sort(request.args, PRODUCT_SORT_COLUMNS, "createdAt")
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    return jsonify(products_service.list_products(
        page=page,
        per_page=per_page,
        search=(request.args.get("search") or "").strip() or None,
        category=request.args.get("category") or None,
        include_inactive=parse_flag(request.args.get("includeInactive")),
        sort_column=sort_column,
        descending=descending,
    ))


@products_bp.get("/low-stock")
@require_auth
@require_permission(Capability.VIEW_PRODUCTS)
def low_stock_route():
    """Active products with stock <= minStockLevel."""
    return jsonify(products_service.list_low_stock())


@products_bp.get("/categories")
@require_auth
@require_permission(Capability.VIEW_PRODUCTS)
def categories_route():
    return jsonify({"categories": products_service.list_categories()})


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission(Capability.VIEW_PRODUCTS)
def get_product_route(product_id: int):
    """Product plus its 10 most recent transactions."""
    try:
        return jsonify(products_service.get_product_detail(product_id))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.post("")
@require_auth
@require_permission(Capability.ADD_PRODUCTS)
def create_product_route():
    """
    Create a new product.

    The initial stockQuantity (default 0) is recorded on the PRODUCT_ADD row.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        created = products_service.create_product(g.session_context, patch=patch)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Product created successfully", "product": created.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission(Capability.EDIT_PRODUCTS)
def update_product_route(product_id: int):
    """Update product details. Stock is rejected here."""
    payload = request.get_json(silent=True) or {}

    if isinstance(payload, dict) and "stockQuantity" in payload:
        return jsonify({
            "error": "Validation failed",
            "errors": [{
                "field": "stockQuantity",
                "message": "Stock cannot be edited directly; use PUT /api/products/<id>/stock",
            }],
        }), 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        updated = products_service.update_product(g.session_context, product_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Product updated successfully", "product": updated.to_dict()}), 200


@products_bp.put("/<int:product_id>/stock")
@require_auth
@require_permission(Capability.EDIT_PRODUCTS)
def update_stock_route(product_id: int):
    """
    Adjust stock: {"quantity": int, "operation": "add" | "subtract" | "set"}.

    subtract and set clamp at 0.
    """
    try:
        quantity, operation = validate_stock_payload(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        product = products_service.update_stock(
            g.session_context,
            product_id,
            quantity=quantity,
            operation=operation,
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Stock updated successfully", "product": product.to_dict()}), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission(Capability.DELETE_PRODUCTS)
def delete_product_route(product_id: int):
    """Soft delete a product."""
    try:
        products_service.delete_product(g.session_context, product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Product deleted successfully"}), 200
