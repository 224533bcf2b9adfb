"""
Fill-cost walk over one side of an order book.

Levels are consumed greedily from the first one onward, so the caller must
pass asks sorted by ascending price (the exchange adapters do this). Sums are
kept at full Decimal precision and only the returned figures are rounded to
8 places.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from core.base_types import FillRequest, FillResult, PriceLevel
from core.decimals import round8
from core.errors import InsufficientLiquidity

_ZERO = Decimal("0")


def compute(levels: Sequence[PriceLevel], request: FillRequest) -> FillResult:
    """
    Cost of filling ``request.target_amount`` against ``levels``.

    Raises InsufficientLiquidity when the levels run out before the target is
    reached and ``request.allow_partial`` is False. With partial fills allowed
    an empty book gives ``filled_amount == 0`` rather than an error; the
    comparator decides what a zero fill means.
    """
    remaining = request.target_amount
    cost = _ZERO
    filled = _ZERO

    for level in levels:
        if remaining <= 0:
            break
        take = min(remaining, level.quantity)
        cost += take * level.price
        filled += take
        remaining -= take

    is_partial = remaining > 0
    if is_partial and not request.allow_partial:
        raise InsufficientLiquidity(
            requested=request.target_amount, available=round8(filled)
        )

    return FillResult(
        quote_cost=round8(cost),
        filled_amount=round8(filled),
        unfilled_amount=round8(remaining),
        is_partial=is_partial,
    )


def available_depth(levels: Iterable[PriceLevel]) -> Decimal:
    """Total quantity across ``levels``."""
    return sum((level.quantity for level in levels), _ZERO)


def is_ascending(levels: Sequence[PriceLevel]) -> bool:
    return all(
        levels[idx].price <= levels[idx + 1].price for idx in range(len(levels) - 1)
    )
