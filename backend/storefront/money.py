# Overview: Currency helpers. Amounts are stored as integer cents and computed as Decimal.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
RATE_PRECISION = Decimal("0.0001")


def to_decimal(value) -> Decimal:
    """Convert JSON numbers and strings to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    return value.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    return int(round_money(to_decimal(value)) * 100)


def from_cents(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return Decimal(cents) / 100


def cents_to_float(cents: int | None) -> float | None:
    """Display form of a stored amount (frontend may only format for display)."""
    if cents is None:
        return None
    return float(round_money(Decimal(cents) / 100))


def money_to_float(value: Decimal) -> float:
    return float(round_money(value))
