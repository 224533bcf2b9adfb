"""Value objects passed between order book sources, the fill walk and the comparator."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from core.decimals import round8, to_decimal
from core.errors import InvalidAmount


@dataclass(frozen=True)
class PriceLevel:
    """One ``(price, quantity)`` row of an order book side."""

    price: Decimal
    quantity: Decimal

    def __post_init__(self) -> None:
        for name in ("price", "quantity"):
            value = getattr(self, name)
            if isinstance(value, float):
                raise TypeError(f"{name} must be a string or Decimal, not float")
            if not isinstance(value, Decimal):
                object.__setattr__(self, name, to_decimal(value))
        if not self.price.is_finite() or self.price < 0:
            raise ValueError("price must be a non-negative finite number")
        if not self.quantity.is_finite() or self.quantity < 0:
            raise ValueError("quantity must be a non-negative finite number")

    @classmethod
    def from_raw(cls, price: Any, quantity: Any) -> "PriceLevel":
        """Build from exchange payload values (text, ints or floats)."""
        return cls(to_decimal(price), to_decimal(quantity))

    @property
    def notional(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class FillRequest:
    """Amount of base asset to acquire and whether a partial fill is acceptable.

    The amount is validated by the comparator, not here.
    """

    target_amount: Decimal
    allow_partial: bool = False

    @classmethod
    def create(cls, amount: Any, allow_partial: bool = False) -> "FillRequest":
        """Parse ``amount``; sign and finiteness are checked by the comparator."""
        try:
            target = to_decimal(amount)
        except (ArithmeticError, TypeError, ValueError) as exc:
            raise InvalidAmount(f"Amount is not a number: {amount!r}") from exc
        return cls(target_amount=target, allow_partial=allow_partial)


@dataclass(frozen=True)
class FillResult:
    quote_cost: Decimal
    filled_amount: Decimal
    unfilled_amount: Decimal
    is_partial: bool

    @property
    def is_empty(self) -> bool:
        return self.filled_amount <= 0

    @property
    def average_price(self) -> Optional[Decimal]:
        if self.is_empty:
            return None
        return round8(self.quote_cost / self.filled_amount)


@dataclass(frozen=True)
class VenueQuote:
    venue_id: str
    price_per_unit: Decimal
    fill: FillResult


@dataclass(frozen=True)
class ComparisonResult:
    """Venues ranked by unit price, cheapest first."""

    quotes: tuple[VenueQuote, ...]
    best_venue_id: str
    spread_percent: Optional[Decimal]
    request: Optional[FillRequest] = None

    @property
    def best_quote(self) -> VenueQuote:
        return self.quotes[0]

    @property
    def runner_up_venue_id(self) -> Optional[str]:
        if len(self.quotes) < 2:
            return None
        return self.quotes[1].venue_id

    def quote_for(self, venue_id: str) -> VenueQuote:
        for quote in self.quotes:
            if quote.venue_id == venue_id:
                return quote
        raise KeyError(venue_id)

    def to_dict(self) -> dict:
        """JSON-friendly view with decimals rendered as strings."""
        payload: dict[str, object] = {
            "best_venue": self.best_venue_id,
            "runner_up_venue": self.runner_up_venue_id,
            "spread_percent": (
                str(self.spread_percent) if self.spread_percent is not None else None
            ),
            "quotes": [
                {
                    "venue": quote.venue_id,
                    "price_per_unit": str(quote.price_per_unit),
                    "quote_cost": str(quote.fill.quote_cost),
                    "filled_amount": str(quote.fill.filled_amount),
                    "unfilled_amount": str(quote.fill.unfilled_amount),
                    "is_partial": quote.fill.is_partial,
                }
                for quote in self.quotes
            ],
        }
        if self.request is not None:
            payload["target_amount"] = str(self.request.target_amount)
            payload["allow_partial"] = self.request.allow_partial
        return payload


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Normalized depth snapshot: asks ascending, bids descending."""

    venue_id: str
    symbol: str
    asks: tuple[PriceLevel, ...]
    bids: tuple[PriceLevel, ...] = field(default_factory=tuple)
    timestamp: Optional[int] = None

    @property
    def best_ask(self) -> Optional[PriceLevel]:
        return self.asks[0] if self.asks else None

    @property
    def best_bid(self) -> Optional[PriceLevel]:
        return self.bids[0] if self.bids else None

    @property
    def ask_depth(self) -> Decimal:
        return sum((level.quantity for level in self.asks), Decimal("0"))
