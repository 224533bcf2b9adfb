# exchange/client.py

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Callable, Optional, cast

import ccxt

from config import ccxt_config
from core.base_types import OrderBookSnapshot
from core.errors import FetchError, ValidationError
from exchange.source import build_snapshot

_QUOTE_ASSETS = ("USDT", "USDC", "TRY", "USD", "EUR", "BTC")


class RateLimiter:
    def __init__(
        self,
        max_weight: int,
        window_seconds: float = 60.0,
        time_fn: Callable[[], float] | None = None,
        sleep_fn: Callable[[float], None] | None = None,
    ) -> None:
        self._max_weight = max_weight
        self._window_seconds = window_seconds
        self._events: deque[tuple[float, int]] = deque()
        self._time_fn = time_fn or time.monotonic
        self._sleep_fn = sleep_fn or time.sleep

    def acquire(self, weight: int) -> None:
        while True:
            now = self._time_fn()
            self._expire_old(now)
            current_weight = sum(event_weight for _, event_weight in self._events)
            if current_weight + weight <= self._max_weight:
                self._events.append((now, weight))
                return
            sleep_for = (self._events[0][0] + self._window_seconds) - now
            if sleep_for > 0:
                self._sleep_fn(sleep_for)

    def _expire_old(self, now: float) -> None:
        while self._events and (now - self._events[0][0]) >= self._window_seconds:
            self._events.popleft()


class ExchangeClient:
    """
    Order book source backed by any ccxt exchange (binance, btcturk, kraken...).
    Handles rate limiting, retries, and normalization into OrderBookSnapshot.
    """

    _RETRYABLE_ERRORS = (
        ccxt.DDoSProtection,
        ccxt.ExchangeNotAvailable,
        ccxt.NetworkError,
        ccxt.RateLimitExceeded,
        ccxt.RequestTimeout,
    )

    def __init__(
        self,
        exchange_id: str,
        config: Optional[dict[str, Any]] = None,
        exchange: Any = None,
    ):
        """
        ``config`` defaults to ``config.ccxt_config(exchange_id)``. Pass
        ``exchange`` to reuse an already constructed ccxt instance.
        """
        self.venue_id = exchange_id
        self._logger = logging.getLogger(__name__)
        config = dict(config if config is not None else ccxt_config(exchange_id))
        self._max_retries = int(config.pop("max_retries", 3))
        self._backoff_base = float(config.pop("backoff_base", 0.5))
        max_weight = int(config.pop("max_weight_per_minute", 1200))
        window_seconds = float(config.pop("weight_window_seconds", 60.0))
        validate_on_init = bool(config.pop("validate_on_init", False))
        if exchange is None:
            exchange_cls = getattr(ccxt, exchange_id, None)
            if exchange_cls is None:
                raise ValueError(f"ccxt has no exchange named {exchange_id!r}")
            exchange = exchange_cls(cast(Any, config))
        self._exchange = exchange
        self._rate_limiter = RateLimiter(max_weight, window_seconds)
        if validate_on_init:
            self._validate_connection()

    def _validate_connection(self) -> None:
        if self._exchange.has.get("fetchTime"):
            self._request_with_retries(self._exchange.fetch_time)
        elif self._exchange.has.get("fetchStatus"):
            self._request_with_retries(self._exchange.fetch_status)
        else:
            self._request_with_retries(self._exchange.load_markets)

    def _request_with_retries(
        self, func: Callable[..., Any], *args: Any, weight: int = 1, **kwargs: Any
    ) -> Any:
        attempt = 0
        request_name = getattr(func, "__name__", str(func))
        while True:
            try:
                self._rate_limiter.acquire(weight)
                self._logger.info(
                    "ccxt request: %s.%s args=%s",
                    self.venue_id,
                    request_name,
                    self._summarize_request(args),
                )
                result = func(*args, **kwargs)
                self._logger.info(
                    "ccxt response: %s.%s summary=%s",
                    self.venue_id,
                    request_name,
                    self._summarize_response(result),
                )
                return result
            except self._RETRYABLE_ERRORS as exc:
                attempt += 1
                if attempt > self._max_retries:
                    raise self._wrap_ccxt_error(exc) from exc
                sleep_for = self._backoff_base * (2 ** (attempt - 1))
                self._logger.warning(
                    "ccxt retry %s/%s after %s: %s",
                    attempt,
                    self._max_retries,
                    sleep_for,
                    exc.__class__.__name__,
                )
                time.sleep(sleep_for)
            except ccxt.BadSymbol as exc:
                raise ValidationError(
                    f"Unknown symbol: {exc}", venue_id=self.venue_id
                ) from exc
            except ccxt.ExchangeError as exc:
                raise FetchError("Exchange error", venue_id=self.venue_id) from exc

    def _wrap_ccxt_error(self, exc: Exception) -> FetchError:
        if isinstance(exc, ccxt.RateLimitExceeded):
            message = "Rate limit exceeded"
        elif isinstance(exc, (ccxt.NetworkError, ccxt.RequestTimeout)):
            message = "Network error"
        elif isinstance(exc, ccxt.ExchangeNotAvailable):
            message = "Exchange not available"
        elif isinstance(exc, ccxt.DDoSProtection):
            message = "Exchange under protection"
        else:
            message = "Request failed"
        return FetchError(message, venue_id=self.venue_id)

    @staticmethod
    def _summarize_request(value: Any) -> Any:
        if isinstance(value, dict):
            return {"keys": list(value.keys())}
        if isinstance(value, (list, tuple)):
            return {"len": len(value)}
        return value

    @staticmethod
    def _summarize_response(value: Any) -> Any:
        if isinstance(value, dict):
            return {"keys": list(value.keys())}
        if isinstance(value, (list, tuple)):
            return {"len": len(value)}
        return type(value).__name__

    @staticmethod
    def to_ccxt_symbol(
        symbol: str, quote_assets: tuple[str, ...] = _QUOTE_ASSETS
    ) -> str:
        """``BTCUSDT`` -> ``BTC/USDT``; ``BTC/USDT`` passes through."""
        if "/" in symbol:
            return symbol
        upper = symbol.upper()
        for quote in quote_assets:
            if upper.endswith(quote) and len(upper) > len(quote):
                return f"{upper[: -len(quote)]}/{quote}"
        raise ValueError(f"Cannot split {symbol!r} into base/quote")

    def fetch(self, symbol: str, depth_limit: int = 20) -> OrderBookSnapshot:
        """
        Fetch L2 order book snapshot.
        """
        ccxt_symbol = self.to_ccxt_symbol(symbol)
        raw = self._request_with_retries(
            self._exchange.fetch_order_book, ccxt_symbol, depth_limit, weight=5
        )
        return build_snapshot(self.venue_id, ccxt_symbol, raw)
