from .client import ExchangeClient, RateLimiter
from .rest_client import RestDepthClient, VenueEndpoint
from .source import OrderBookSource, build_snapshot, parse_levels

__all__ = [
    "OrderBookSource",
    "ExchangeClient",
    "RateLimiter",
    "RestDepthClient",
    "VenueEndpoint",
    "build_snapshot",
    "parse_levels",
]
