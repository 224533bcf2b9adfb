"""Exceptions raised while fetching order books and comparing venues."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional


class ComparisonError(Exception):
    """Base class for comparison failures.

    ``kind`` tags the failure for callers that branch on it; the original
    exception, when there is one, is kept as ``__cause__``.
    """

    kind = "comparison_failed"

    def __init__(self, message: str, venue_id: Optional[str] = None):
        self.venue_id = venue_id
        super().__init__(message)

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__

    def __str__(self) -> str:
        message = super().__str__()
        if self.venue_id:
            return f"[{self.venue_id}] {message}"
        return message


class PricingError(ComparisonError):
    """Raised by the fill walk or the ranking step."""


class InvalidAmount(PricingError):
    """Target amount is non-positive, non-finite or not a number."""

    kind = "invalid_amount"


class InsufficientLiquidity(PricingError):
    """Full fill requested but the book is shallower than the target."""

    kind = "insufficient_liquidity"

    def __init__(
        self,
        requested: Decimal,
        available: Decimal,
        venue_id: Optional[str] = None,
    ):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient liquidity: requested {requested}, available {available}",
            venue_id=venue_id,
        )


class ZeroLiquidity(PricingError):
    """One or more venues filled nothing, so no unit price exists."""

    kind = "zero_liquidity"

    def __init__(self, venue_ids: Iterable[str]):
        self.venue_ids = tuple(venue_ids)
        super().__init__(f"No liquidity at: {', '.join(self.venue_ids)}")


class SourceError(ComparisonError):
    """Raised by order book sources."""


class FetchError(SourceError):
    """Transport failure, timeout or non-success HTTP status."""

    kind = "fetch_failed"

    def __init__(
        self,
        message: str,
        venue_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(message, venue_id=venue_id)


class ValidationError(SourceError):
    """Response does not have the expected order book shape."""

    kind = "invalid_response"
