from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from config import BACKOFF_BASE, MAX_RETRIES, REQUEST_TIMEOUT_SECONDS, VENUE_ENDPOINTS
from core.base_types import OrderBookSnapshot
from core.errors import FetchError, ValidationError
from exchange.source import build_snapshot

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class VenueEndpoint:
    """Where and how to ask a venue for its public depth snapshot."""

    url: str
    symbol_param: str = "symbol"
    limit_param: str = "limit"
    payload_key: Optional[str] = None  # e.g. BtcTurk wraps the book in "data"

    @classmethod
    def for_venue(cls, venue_id: str) -> "VenueEndpoint":
        try:
            settings = VENUE_ENDPOINTS[venue_id]
        except KeyError as exc:
            known = ", ".join(sorted(VENUE_ENDPOINTS))
            raise ValueError(
                f"Unknown venue {venue_id!r}; configured: {known}"
            ) from exc
        return cls(**settings)


class RestDepthClient:
    """
    Public REST depth client for a single venue.

    Mirrors the retry/backoff ergonomics of ``ExchangeClient`` without ccxt,
    so prices and quantities stay as the exchange's own decimal text.
    """

    def __init__(
        self,
        venue_id: str,
        endpoint: Optional[VenueEndpoint] = None,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.venue_id = venue_id
        self._endpoint = endpoint or VenueEndpoint.for_venue(venue_id)
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._session = session or requests.Session()

    def fetch(self, symbol: str, depth_limit: int) -> OrderBookSnapshot:
        """Fetch an order book snapshot for ``symbol`` (e.g. ``BTCUSDT``)."""
        params = {
            self._endpoint.symbol_param: symbol,
            self._endpoint.limit_param: depth_limit,
        }
        payload = self._get_json(params)
        if self._endpoint.payload_key:
            if not isinstance(payload, dict):
                raise ValidationError(
                    "Order book response is not an object", venue_id=self.venue_id
                )
            payload = payload.get(self._endpoint.payload_key)
            if payload is None:
                raise ValidationError(
                    f"Order book response missing {self._endpoint.payload_key!r}",
                    venue_id=self.venue_id,
                )
        return build_snapshot(self.venue_id, symbol, payload)

    def _get_json(self, params: Dict[str, Any]) -> Any:
        url = self._endpoint.url
        attempt = 0
        while True:
            attempt += 1
            try:
                logger.info(
                    "%s depth request: %s params=%s", self.venue_id, url, params
                )
                resp = self._session.get(url, params=params, timeout=self._timeout)
            except requests.RequestException as exc:
                if attempt > self._max_retries:
                    raise FetchError(
                        f"Network error fetching order book: {exc}",
                        venue_id=self.venue_id,
                    ) from exc
                self._backoff(attempt, exc.__class__.__name__)
                continue

            if resp.status_code in _RETRYABLE_STATUS and attempt <= self._max_retries:
                self._backoff(attempt, f"HTTP {resp.status_code}")
                continue
            if resp.status_code != 200:
                raise FetchError(
                    f"Unexpected HTTP status {resp.status_code}",
                    venue_id=self.venue_id,
                    status_code=resp.status_code,
                )
            try:
                payload = resp.json()
            except ValueError as exc:
                raise ValidationError(
                    "Order book response is not valid JSON", venue_id=self.venue_id
                ) from exc
            logger.info(
                "%s depth response: summary=%s", self.venue_id, _summarize(payload)
            )
            return payload

    def _backoff(self, attempt: int, reason: str) -> None:
        sleep_for = self._backoff_base * (2 ** (attempt - 1))
        logger.warning(
            "%s depth request failed (%s), retry %s/%s in %.1fs",
            self.venue_id,
            reason,
            attempt,
            self._max_retries,
            sleep_for,
        )
        time.sleep(sleep_for)


def _summarize(value: Any) -> Any:
    if isinstance(value, dict):
        return {"keys": list(value.keys())}
    if isinstance(value, (list, tuple)):
        return {"len": len(value)}
    return type(value).__name__
