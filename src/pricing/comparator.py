"""
Cross-venue comparison of fill costs.

``Comparator.compare`` ranks venues from ask levels already in hand;
``Comparator.compare_sources`` fetches the books concurrently first. Either
way the result is all-or-nothing: one failing venue fails the comparison.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from decimal import Decimal
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

from core.base_types import (
    ComparisonResult,
    FillRequest,
    FillResult,
    OrderBookSnapshot,
    PriceLevel,
    VenueQuote,
)
from core.decimals import round8, validate_amount
from core.errors import ComparisonError, FetchError, ZeroLiquidity
from pricing.fill_calculator import available_depth, compute, is_ascending

if TYPE_CHECKING:
    from exchange.source import OrderBookSource

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")


def spread_percent(best_price: Decimal, other_price: Decimal) -> Optional[Decimal]:
    """Relative gap between two unit prices, as a percentage of the lower one."""
    low = min(best_price, other_price)
    if low == 0:
        if best_price == other_price:
            return round8(Decimal("0"))
        return None
    return round8(abs(best_price - other_price) / low * _HUNDRED)


class Comparator:
    """Rank venues by the unit price of filling the same request."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        """
        ``executor`` runs the blocking source fetches; ``None`` uses the event
        loop default.
        """
        self._timeout = timeout
        self._executor = executor

    def compare(
        self,
        request: FillRequest,
        venues: Mapping[str, Sequence[PriceLevel]],
    ) -> ComparisonResult:
        amount = validate_amount(request.target_amount)
        request = FillRequest(target_amount=amount, allow_partial=request.allow_partial)
        if not venues:
            raise ComparisonError("No venues to compare")
        if all(available_depth(levels) <= 0 for levels in venues.values()):
            # Every book is empty: nothing can fill whatever the partial policy.
            raise ZeroLiquidity(venues)

        fills: dict[str, FillResult] = {}
        for venue_id, levels in venues.items():
            if not is_ascending(levels):
                logger.warning(
                    "asks for %s are not sorted by ascending price; fill cost "
                    "will be overstated",
                    venue_id,
                )
            fills[venue_id] = self._fill(venue_id, levels, request)

        empty = [venue_id for venue_id, fill in fills.items() if fill.is_empty]
        if empty:
            raise ZeroLiquidity(empty)

        quotes = sorted(
            (
                VenueQuote(
                    venue_id=venue_id,
                    price_per_unit=round8(fill.quote_cost / fill.filled_amount),
                    fill=fill,
                )
                for venue_id, fill in fills.items()
            ),
            key=lambda quote: (quote.price_per_unit, quote.venue_id),
        )
        best = quotes[0]
        spread = None
        if len(quotes) > 1:
            spread = spread_percent(best.price_per_unit, quotes[1].price_per_unit)

        logger.info(
            "ranked %d venue(s) for %s: best=%s price=%s spread_pct=%s",
            len(quotes),
            amount,
            best.venue_id,
            best.price_per_unit,
            spread,
        )
        return ComparisonResult(
            quotes=tuple(quotes),
            best_venue_id=best.venue_id,
            spread_percent=spread,
            request=request,
        )

    @staticmethod
    def _fill(
        venue_id: str, levels: Sequence[PriceLevel], request: FillRequest
    ) -> FillResult:
        try:
            return compute(levels, request)
        except ComparisonError as exc:
            if exc.venue_id is None:
                exc.venue_id = venue_id
            raise
        except Exception as exc:
            raise ComparisonError(
                f"Fill calculation failed: {exc}", venue_id=venue_id
            ) from exc

    async def compare_sources(
        self,
        request: FillRequest,
        sources: Mapping[str, "OrderBookSource"],
        symbol: str,
        depth_limit: int,
    ) -> ComparisonResult:
        """Fetch every venue's book concurrently, then rank them."""
        validate_amount(request.target_amount)
        if not sources:
            raise ComparisonError("No venues to compare")

        venue_ids = list(sources)
        gathered = asyncio.gather(
            *(
                self._fetch(venue_id, sources[venue_id], symbol, depth_limit)
                for venue_id in venue_ids
            )
        )
        try:
            if self._timeout is None:
                snapshots = await gathered
            else:
                snapshots = await asyncio.wait_for(gathered, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(
                f"Order book fetch timed out after {self._timeout}s"
            ) from exc

        books = {
            venue_id: snapshot.asks for venue_id, snapshot in zip(venue_ids, snapshots)
        }
        return self.compare(request, books)

    async def _fetch(
        self,
        venue_id: str,
        source: "OrderBookSource",
        symbol: str,
        depth_limit: int,
    ) -> OrderBookSnapshot:
        try:
            loop = asyncio.get_running_loop()
            snapshot = await loop.run_in_executor(
                self._executor, source.fetch, symbol, depth_limit
            )
        except ComparisonError as exc:
            if exc.venue_id is None:
                exc.venue_id = venue_id
            raise
        except Exception as exc:
            raise FetchError(
                f"Order book fetch failed: {exc}", venue_id=venue_id
            ) from exc
        logger.debug(
            "fetched %s %s: %d asks, %d bids",
            venue_id,
            symbol,
            len(snapshot.asks),
            len(snapshot.bids),
        )
        return snapshot


def run_comparison(
    request: FillRequest,
    sources: Mapping[str, "OrderBookSource"],
    symbol: str,
    depth_limit: int,
    timeout: Optional[float] = None,
) -> ComparisonResult:
    """
    Blocking wrapper around ``Comparator.compare_sources``.

    Fetches run on a pool owned by this call and the pool is not joined on the
    way out, so a timeout or the first failing venue returns control without
    waiting for the remaining fetches.
    """
    executor = ThreadPoolExecutor(
        max_workers=max(len(sources), 1), thread_name_prefix="orderbook-fetch"
    )
    comparator = Comparator(timeout=timeout, executor=executor)
    try:
        return asyncio.run(
            comparator.compare_sources(request, sources, symbol, depth_limit)
        )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
