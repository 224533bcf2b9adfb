"""Order book source interface and payload normalization shared by adapters."""

from __future__ import annotations

import time
from decimal import InvalidOperation
from typing import Any, Iterable, Optional, Protocol

from core.base_types import OrderBookSnapshot, PriceLevel
from core.errors import ValidationError


class OrderBookSource(Protocol):
    """Anything that can return a depth snapshot for one venue."""

    venue_id: str

    def fetch(self, symbol: str, depth_limit: int) -> OrderBookSnapshot:
        ...


def parse_levels(
    raw: Optional[Iterable[Any]], side: str, venue_id: Optional[str] = None
) -> tuple[PriceLevel, ...]:
    """
    Convert ``[[price, qty], ...]`` rows into PriceLevels.

    Asks come back sorted ascending and bids descending. Zero-quantity rows are
    dropped. Extra columns (some venues append a count or timestamp) are
    ignored.
    """
    if raw is None:
        return ()
    levels: list[PriceLevel] = []
    for row in raw:
        try:
            price, qty = row[0], row[1]
            level = PriceLevel.from_raw(price, qty)
        except (IndexError, KeyError, TypeError, ValueError, InvalidOperation) as exc:
            raise ValidationError(
                f"Malformed {side} level: {row!r}", venue_id=venue_id
            ) from exc
        if level.quantity > 0:
            levels.append(level)
    levels.sort(key=lambda item: item.price, reverse=(side == "bids"))
    return tuple(levels)


def build_snapshot(
    venue_id: str, symbol: str, payload: Any, timestamp: Optional[int] = None
) -> OrderBookSnapshot:
    """Validate a decoded depth payload and normalize it into a snapshot."""
    if not isinstance(payload, dict):
        raise ValidationError(
            f"Order book payload must be an object, got {type(payload).__name__}",
            venue_id=venue_id,
        )
    raw_asks = payload.get("asks")
    raw_bids = payload.get("bids")
    if raw_asks is None and raw_bids is None:
        raise ValidationError(
            "Order book response has neither asks nor bids", venue_id=venue_id
        )
    for side, raw in (("asks", raw_asks), ("bids", raw_bids)):
        if raw is not None and not isinstance(raw, (list, tuple)):
            raise ValidationError(f"{side} must be a list", venue_id=venue_id)
    if timestamp is None:
        timestamp = payload.get("timestamp") or int(time.time() * 1000)
    return OrderBookSnapshot(
        venue_id=venue_id,
        symbol=symbol,
        asks=parse_levels(raw_asks, "asks", venue_id),
        bids=parse_levels(raw_bids, "bids", venue_id),
        timestamp=timestamp,
    )
