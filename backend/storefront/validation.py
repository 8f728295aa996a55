from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
import re
from storefront.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .money import to_decimal, to_cents
from .models.inventory import STOCK_OPERATIONS
from .permissions import Role


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest value a 32-bit INTEGER column holds (ids, quantities, stock levels)
MAX_DB_INT = 2_147_483_647

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """400-level input problem. `errors` is the field-level list."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.errors:
            body["errors"] = self.errors
        return body


class ConflictError(ValueError):
    """Duplicate unique key (SKU, username, email)."""


class NotFoundError(LookupError):
    """Entity absent or soft-deleted."""


class _FieldError(ValueError):
    pass


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - fields: wire name -> model column key (security boundary; anything else is rejected)
    - required_on_create: wire names required for POST
    - money_fields: wire names holding currency, stored as integer cents
    - non_negative: wire names whose value must be >= 0
    """
    fields: dict[str, str]
    required_on_create: frozenset[str] = frozenset()
    money_fields: frozenset[str] = frozenset()
    non_negative: frozenset[str] = frozenset()
    min_lengths: dict[str, int] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, name: str) -> int:
    """
    Strict integer parsing: rejects bools, floats and scientific notation.

    Values outside the INTEGER column range are rejected here so they
    never reach the driver.
    """
    number = _parse_int(value, name)
    if abs(number) > MAX_DB_INT:
        raise _FieldError(f"{name} must be between -{MAX_DB_INT} and {MAX_DB_INT}")
    return number


def _parse_int(value: Any, name: str) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise _FieldError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise _FieldError(f"{name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise _FieldError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise _FieldError(f"{name} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise _FieldError(f"{name} must be an integer, not a decimal")
    raise _FieldError(f"{name} must be an integer")


def coerce_number(value: Any, name: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise _FieldError(f"{name} must be a number")
    try:
        number = to_decimal(value.strip() if isinstance(value, str) else value)
    except InvalidOperation:
        raise _FieldError(f"{name} must be a number")
    if not number.is_finite():
        raise _FieldError(f"{name} must be a finite number")
    return number


def _coerce_value(col, value: Any, name: str):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, name)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise _FieldError(f"{name} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise _FieldError(f"{name} must be an ISO-8601 datetime")
            if dt is None:
                raise _FieldError(f"{name} must be an ISO-8601 datetime")
            return dt
        raise _FieldError(f"{name} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise _FieldError(f"{name} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name.

    All field problems are collected and raised together as one ValidationError.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []

    def fail(name: str, message: str) -> None:
        errors.append({"field": name, "message": message})

    if not partial:
        for name in sorted(policy.required_on_create):
            if payload.get(name) is None:
                fail(name, f"{name} is required")

    cols = _columns_by_key(model)
    patch: dict = {}

    for name, raw in payload.items():
        # Reject unknown / non-writable fields
        if name not in policy.fields:
            fail(name, f"Field not allowed: {name}")
            continue

        key = policy.fields[name]
        col = cols[key]

        # NULL handling
        if raw is None:
            if col.nullable:
                patch[key] = None
            elif partial or name not in policy.required_on_create:
                # required_on_create already reported missing values
                fail(name, f"{name} cannot be null")
            continue

        try:
            if name in policy.money_fields:
                amount = coerce_number(raw, name)
                if amount < 0:
                    raise _FieldError(f"{name} must be >= 0")
                val = to_cents(amount)
            else:
                val = _coerce_value(col, raw, name)
        except _FieldError as e:
            fail(name, str(e))
            continue

        if name in policy.non_negative and isinstance(val, int) and val < 0:
            fail(name, f"{name} must be >= 0")
            continue

        if isinstance(col.type, (String, Text)) and isinstance(val, str):
            # Blank string check for non-nullable text fields
            if not col.nullable and val == "":
                fail(name, f"{name} cannot be blank")
                continue
            # Optional blank strings are stored as NULL
            if col.nullable and val == "":
                val = None
            min_len = policy.min_lengths.get(name)
            if min_len and val is not None and len(val) < min_len:
                fail(name, f"{name} must be at least {min_len} characters")
                continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                fail(name, f"{name} exceeds max length {col.type.length}")
                continue

        patch[key] = val

    if errors:
        raise ValidationError("Validation failed", errors)

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        if patch["price_cents"] > MAX_PRICE_CENTS:
            raise ValidationError(
                "Validation failed",
                [{"field": "price", "message": f"price cannot exceed {MAX_PRICE_CENTS / 100:,.2f}"}],
            )


def enforce_rules_user(patch: dict) -> None:
    errors: list[dict] = []

    email = patch.get("email")
    if email is not None:
        if not EMAIL_RE.match(email):
            errors.append({"field": "email", "message": "Please provide a valid email"})
        else:
            patch["email"] = email.lower()

    role = patch.get("role")
    if role is not None:
        normalized = role.upper()
        if normalized not in {r.value for r in Role}:
            errors.append({"field": "role", "message": "Role must be ADMIN, MANAGER, or CASHIER"})
        else:
            patch["role"] = normalized

    if errors:
        raise ValidationError("Validation failed", errors)


def validate_sale_payload(payload: Any) -> dict:
    """
    Validate a POST /api/sales body.

    Returns {"items": [(product_id, quantity), ...], "tax_rate": Decimal,
    "discount": Decimal, "payment_method": str}.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []

    items = payload.get("items")
    cleaned_items: list[tuple[int, int]] = []
    if not isinstance(items, list) or not items:
        errors.append({
            "field": "items",
            "message": "Items array is required and must contain at least one item",
        })
    else:
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                errors.append({"field": f"items[{i}]", "message": "Each item must be an object"})
                continue
            try:
                product_id = coerce_int(item.get("productId"), "productId")
                if product_id < 1:
                    raise _FieldError("productId must be >= 1")
            except _FieldError:
                errors.append({"field": f"items[{i}].productId", "message": "Each item must have a valid product ID"})
                continue
            try:
                quantity = coerce_int(item.get("quantity"), "quantity")
                if quantity < 1:
                    raise _FieldError("quantity must be >= 1")
            except _FieldError:
                errors.append({"field": f"items[{i}].quantity", "message": "Each item must have a valid quantity"})
                continue
            cleaned_items.append((product_id, quantity))

    tax_rate = Decimal("0")
    if payload.get("taxRate") is not None:
        try:
            tax_rate = coerce_number(payload["taxRate"], "taxRate")
            if tax_rate < 0 or tax_rate > 1:
                raise _FieldError("out of range")
        except _FieldError:
            errors.append({"field": "taxRate", "message": "Tax rate must be between 0 and 1"})

    discount = Decimal("0")
    if payload.get("discount") is not None:
        try:
            discount = coerce_number(payload["discount"], "discount")
            if discount < 0:
                raise _FieldError("negative")
        except _FieldError:
            errors.append({"field": "discount", "message": "Discount must be a positive number"})

    payment_method = payload.get("paymentMethod")
    if payment_method is None or (isinstance(payment_method, str) and not payment_method.strip()):
        payment_method = "CASH"
    elif not isinstance(payment_method, str) or len(payment_method.strip()) > 32:
        errors.append({"field": "paymentMethod", "message": "Payment method must be a string of at most 32 characters"})
    else:
        payment_method = payment_method.strip()

    if errors:
        raise ValidationError("Validation failed", errors)

    return {
        "items": cleaned_items,
        "tax_rate": tax_rate,
        "discount": discount,
        "payment_method": payment_method,
    }


def validate_stock_payload(payload: Any) -> tuple[int, str]:
    """Validate a PUT /api/products/<id>/stock body -> (quantity, operation)."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []

    operation = payload.get("operation")
    if operation not in STOCK_OPERATIONS:
        errors.append({"field": "operation", "message": "Operation must be add, subtract, or set"})

    quantity = None
    try:
        quantity = coerce_int(payload.get("quantity"), "quantity")
    except _FieldError:
        errors.append({"field": "quantity", "message": "Quantity must be an integer"})

    # add/subtract take a magnitude; set takes the absolute level (negatives clamp to 0)
    if quantity is not None and operation in ("add", "subtract") and quantity < 0:
        errors.append({"field": "quantity", "message": f"Quantity must be non-negative for {operation}"})

    if errors:
        raise ValidationError("Validation failed", errors)

    return quantity, operation


def parse_pagination(args, *, default_per_page: int, max_per_page: int) -> tuple[int, int]:
    """Read `page` and `limit` query params. Defaults 1 and default_per_page."""
    page = args.get("page", default=1, type=int) or 1
    per_page = args.get("limit", default=default_per_page, type=int) or default_per_page
    return max(1, min(page, MAX_DB_INT)), max(1, min(per_page, max_per_page))


def parse_sort(args, allowed: dict[str, Any], default: str) -> tuple[Any, bool]:
    """Resolve `sortBy` against an allowlist of columns; returns (column, descending)."""
    sort_by = args.get("sortBy", default)
    if sort_by not in allowed:
        raise ValidationError(
            "Validation failed",
            [{"field": "sortBy", "message": f"sortBy must be one of: {', '.join(sorted(allowed))}"}],
        )
    sort_order = (args.get("sortOrder") or "DESC").upper()
    if sort_order not in ("ASC", "DESC"):
        raise ValidationError(
            "Validation failed",
            [{"field": "sortOrder", "message": "sortOrder must be ASC or DESC"}],
        )
    return allowed[sort_by], sort_order == "DESC"


def parse_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


def parse_datetime_arg(args, name: str, *, end_of_day: bool = False) -> datetime | None:
    """
    Parse an ISO-8601 query param. A bare date used as an upper bound
    is widened to the end of that day.
    """
    raw = args.get(name)
    try:
        dt = parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(
            "Validation failed",
            [{"field": name, "message": f"{name} must be an ISO-8601 date or datetime"}],
        )
    if dt is not None and end_of_day and len(raw.strip()) == 10:
        dt = dt.replace(hour=23, minute=59, second=59, microsecond=999999)
    return dt


def parse_id_arg(args, name: str) -> int | None:
    """Optional integer id query param; garbage or out-of-range values are a 400."""
    raw = args.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return coerce_int(raw, name)
    except _FieldError as e:
        raise ValidationError("Validation failed", [{"field": name, "message": str(e)}])
