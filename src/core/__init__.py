from .base_types import (
    ComparisonResult,
    FillRequest,
    FillResult,
    OrderBookSnapshot,
    PriceLevel,
    VenueQuote,
)
from .errors import (
    ComparisonError,
    FetchError,
    InsufficientLiquidity,
    InvalidAmount,
    PricingError,
    SourceError,
    ValidationError,
    ZeroLiquidity,
)

__all__ = [
    "PriceLevel",
    "FillRequest",
    "FillResult",
    "VenueQuote",
    "ComparisonResult",
    "OrderBookSnapshot",
    "ComparisonError",
    "PricingError",
    "InvalidAmount",
    "InsufficientLiquidity",
    "ZeroLiquidity",
    "SourceError",
    "FetchError",
    "ValidationError",
]
