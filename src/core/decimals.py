"""Decimal helpers shared by the fill walk and the comparator."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from core.errors import InvalidAmount

PRECISION_PLACES = 8
QUANTUM = Decimal(1).scaleb(-PRECISION_PLACES)
TOLERANCE = QUANTUM


def to_decimal(value: Any) -> Decimal:
    """Convert text, ints, floats or Decimals to Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")`` and not
    its binary expansion. Raises ``InvalidOperation`` or ``TypeError`` on
    input that is not a number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise TypeError(f"Not a numeric value: {value!r}")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        return Decimal(value.strip())
    raise TypeError(f"Not a numeric value: {value!r}")


def round8(value: Decimal) -> Decimal:
    return value.quantize(QUANTUM, rounding=ROUND_HALF_UP)


def validate_amount(value: Any) -> Decimal:
    """Return ``value`` as a positive finite Decimal or raise InvalidAmount."""
    try:
        amount = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidAmount(f"Amount is not a number: {value!r}") from exc
    if not amount.is_finite():
        raise InvalidAmount(f"Amount must be finite: {value!r}")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be positive: {value!r}")
    return amount


def format_decimal(value: Decimal | None, places: int = PRECISION_PLACES) -> str:
    if value is None:
        return "N/A"
    quantize_value = Decimal(f"1e-{places}")
    return format(
        value.quantize(quantize_value, rounding=ROUND_HALF_UP), f",.{places}f"
    )
