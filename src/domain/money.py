"""
Money helpers.

Amounts travel through the core as Decimal and are stored as integer
minor units (cents) so that SQL-side arithmetic stays exact.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


def as_decimal(value: Decimal | int | str | float) -> Decimal:
    """Coerce to Decimal; floats go through str() to avoid binary artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def is_cent_precise(value: Decimal) -> bool:
    return value.is_finite() and value == value.quantize(CENT)


def to_cents(value: Decimal) -> int:
    return int(round_cents(value) * 100)


def from_cents(cents: int) -> Decimal:
    return Decimal(cents).scaleb(-2)
