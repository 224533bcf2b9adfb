"""
Tests for pricing.comparator: ranking venues from ask levels and fetching
books concurrently from stub sources.
"""

from __future__ import annotations

import asyncio
import time
from decimal import Decimal

import pytest

from core.base_types import FillRequest, OrderBookSnapshot, PriceLevel
from core.errors import (
    ComparisonError,
    FetchError,
    InsufficientLiquidity,
    InvalidAmount,
    ValidationError,
    ZeroLiquidity,
)
from pricing.comparator import Comparator, run_comparison, spread_percent

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

BINANCE_ASKS = [
    ["85813.59", "0.05105"],
    ["85814.00", "0.02500"],
    ["85820.00", "0.10000"],
]
BTCTURK_ASKS = [
    ["85757", "0.02330"],
    ["85758", "0.02330"],
    ["85761", "0.01000"],
]


def _levels(rows) -> list[PriceLevel]:
    return [PriceLevel.from_raw(price, qty) for price, qty in rows]


class StubSource:
    def __init__(self, venue_id, asks=None, error=None, delay=0.0):
        self.venue_id = venue_id
        self._asks = asks or []
        self._error = error
        self._delay = delay
        self.calls = []

    def fetch(self, symbol, depth_limit):
        self.calls.append((symbol, depth_limit))
        if self._delay:
            time.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return OrderBookSnapshot(
            venue_id=self.venue_id,
            symbol=symbol,
            asks=tuple(_levels(self._asks)),
        )


# ---------------------------------------------------------------------------
# compare()
# ---------------------------------------------------------------------------


class TestCompare:
    def test_reference_two_venue_scenario(self):
        result = Comparator().compare(
            FillRequest(Decimal("0.001")),
            {"binance": _levels(BINANCE_ASKS), "btcturk": _levels(BTCTURK_ASKS)},
        )
        assert result.best_venue_id == "btcturk"
        assert result.runner_up_venue_id == "binance"
        assert str(result.spread_percent) == "0.06598878"
        assert result.quote_for("btcturk").price_per_unit == Decimal("85757")
        assert result.quote_for("binance").price_per_unit == Decimal("85813.59")
        assert result.quote_for("binance").fill.quote_cost == Decimal("85.81359")

    def test_partial_fill_scenario(self):
        result = Comparator().compare(
            FillRequest(Decimal("1.5"), allow_partial=True),
            {"a": _levels([["100", "1"], ["101", "1"]]), "b": _levels([["99", "2"]])},
        )
        a = result.quote_for("a")
        b = result.quote_for("b")
        assert a.fill.quote_cost == Decimal("150.5")
        assert a.price_per_unit == Decimal("100.33333333")
        assert b.fill.quote_cost == Decimal("148.5")
        assert b.price_per_unit == Decimal("99")
        assert result.best_venue_id == "b"
        assert result.spread_percent == Decimal("1.34680134")

    def test_quotes_sorted_by_price_for_many_venues(self):
        result = Comparator().compare(
            FillRequest(Decimal("1")),
            {
                "c": _levels([["103", "5"]]),
                "a": _levels([["101", "5"]]),
                "b": _levels([["102", "5"]]),
            },
        )
        assert [quote.venue_id for quote in result.quotes] == ["a", "b", "c"]
        # best vs runner-up only
        assert result.spread_percent == spread_percent(Decimal("101"), Decimal("102"))

    def test_ties_broken_by_venue_id(self):
        result = Comparator().compare(
            FillRequest(Decimal("1")),
            {"zeta": _levels([["100", "1"]]), "alpha": _levels([["100", "1"]])},
        )
        assert result.best_venue_id == "alpha"
        assert result.spread_percent == Decimal("0")

    def test_single_venue_has_no_spread(self):
        result = Comparator().compare(
            FillRequest(Decimal("1")), {"solo": _levels([["100", "2"]])}
        )
        assert result.best_venue_id == "solo"
        assert result.spread_percent is None
        assert result.runner_up_venue_id is None

    @pytest.mark.parametrize(
        "amount", [Decimal("0"), Decimal("-1"), "abc", "NaN", "Infinity", None]
    )
    def test_invalid_amount(self, amount):
        with pytest.raises(InvalidAmount):
            Comparator().compare(
                FillRequest.create(amount), {"a": _levels([["100", "1"]])}
            )

    def test_string_amount_is_accepted(self):
        result = Comparator().compare(
            FillRequest.create("0.5"), {"a": _levels([["100", "1"]])}
        )
        assert result.request.target_amount == Decimal("0.5")

    def test_no_venues(self):
        with pytest.raises(ComparisonError, match="No venues"):
            Comparator().compare(FillRequest(Decimal("1")), {})

    def test_insufficient_liquidity_carries_venue(self):
        with pytest.raises(InsufficientLiquidity) as exc:
            Comparator().compare(
                FillRequest(Decimal("5")),
                {"deep": _levels([["100", "10"]]), "thin": _levels([["99", "1"]])},
            )
        assert exc.value.venue_id == "thin"
        assert isinstance(exc.value, ComparisonError)

    def test_zero_liquidity_even_when_partial_allowed(self):
        with pytest.raises(ZeroLiquidity) as exc:
            Comparator().compare(
                FillRequest(Decimal("1"), allow_partial=True),
                {"a": _levels([["100", "1"]]), "empty": []},
            )
        assert exc.value.venue_ids == ("empty",)

    def test_zero_liquidity_lists_every_empty_venue(self):
        with pytest.raises(ZeroLiquidity) as exc:
            Comparator().compare(
                FillRequest(Decimal("1"), allow_partial=True), {"a": [], "b": []}
            )
        assert set(exc.value.venue_ids) == {"a", "b"}

    def test_every_book_empty_is_zero_liquidity_without_partial(self):
        with pytest.raises(ZeroLiquidity) as exc:
            Comparator().compare(FillRequest(Decimal("1")), {"a": [], "b": []})
        assert set(exc.value.venue_ids) == {"a", "b"}

    def test_one_empty_book_without_partial_is_insufficient(self):
        with pytest.raises(InsufficientLiquidity) as exc:
            Comparator().compare(
                FillRequest(Decimal("1")), {"a": _levels([["100", "1"]]), "b": []}
            )
        assert exc.value.venue_id == "b"

    def test_unsorted_asks_logged(self, caplog):
        levels = _levels([["101", "1"], ["100", "1"]])
        with caplog.at_level("WARNING", logger="pricing.comparator"):
            Comparator().compare(FillRequest(Decimal("1")), {"x": levels})
        assert "not sorted" in caplog.text

    def test_result_to_dict(self):
        result = Comparator().compare(
            FillRequest(Decimal("1")),
            {"a": _levels([["100", "1"]]), "b": _levels([["110", "1"]])},
        )
        payload = result.to_dict()
        assert payload["best_venue"] == "a"
        assert payload["spread_percent"] == "10.00000000"
        assert payload["quotes"][1]["venue"] == "b"
        assert payload["target_amount"] == "1"
        assert payload["allow_partial"] is False


def test_spread_percent_with_zero_prices():
    assert spread_percent(Decimal("0"), Decimal("0")) == Decimal("0")
    assert spread_percent(Decimal("0"), Decimal("1")) is None


# ---------------------------------------------------------------------------
# compare_sources()
# ---------------------------------------------------------------------------


class TestCompareSources:
    @pytest.mark.asyncio
    async def test_fetches_every_venue_and_ranks(self):
        sources = {
            "binance": StubSource("binance", BINANCE_ASKS),
            "btcturk": StubSource("btcturk", BTCTURK_ASKS),
        }
        result = await Comparator().compare_sources(
            FillRequest(Decimal("0.001")), sources, "BTCUSDT", 100
        )
        assert result.best_venue_id == "btcturk"
        assert str(result.spread_percent) == "0.06598878"
        assert sources["binance"].calls == [("BTCUSDT", 100)]
        assert sources["btcturk"].calls == [("BTCUSDT", 100)]

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self):
        sources = {
            venue: StubSource(venue, [["100", "1"]], delay=0.3)
            for venue in ("a", "b", "c")
        }
        started = time.monotonic()
        await Comparator().compare_sources(
            FillRequest(Decimal("1")), sources, "BTCUSDT", 10
        )
        assert time.monotonic() - started < 0.8

    @pytest.mark.asyncio
    async def test_fetch_error_fails_whole_comparison(self):
        sources = {
            "ok": StubSource("ok", [["100", "1"]]),
            "down": StubSource("down", error=FetchError("Unexpected HTTP status 503")),
        }
        with pytest.raises(FetchError) as exc:
            await Comparator().compare_sources(
                FillRequest(Decimal("1")), sources, "BTCUSDT", 10
            )
        assert exc.value.venue_id == "down"

    @pytest.mark.asyncio
    async def test_validation_error_propagates(self):
        sources = {"bad": StubSource("bad", error=ValidationError("no asks"))}
        with pytest.raises(ValidationError):
            await Comparator().compare_sources(
                FillRequest(Decimal("1")), sources, "BTCUSDT", 10
            )

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped_with_cause(self):
        boom = ConnectionResetError("reset by peer")
        sources = {"flaky": StubSource("flaky", error=boom)}
        with pytest.raises(FetchError) as exc:
            await Comparator().compare_sources(
                FillRequest(Decimal("1")), sources, "BTCUSDT", 10
            )
        assert exc.value.cause is boom
        assert exc.value.venue_id == "flaky"

    @pytest.mark.asyncio
    async def test_invalid_amount_checked_before_fetching(self):
        source = StubSource("a", [["100", "1"]])
        with pytest.raises(InvalidAmount):
            await Comparator().compare_sources(
                FillRequest(Decimal("0")), {"a": source}, "BTCUSDT", 10
            )
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_timeout_raises_fetch_error(self):
        sources = {"slow": StubSource("slow", [["100", "1"]], delay=0.5)}
        with pytest.raises(FetchError, match="timed out") as exc:
            await Comparator(timeout=0.05).compare_sources(
                FillRequest(Decimal("1")), sources, "BTCUSDT", 10
            )
        assert isinstance(exc.value.cause, asyncio.TimeoutError)


def test_run_comparison_blocking_wrapper():
    sources = {
        "a": StubSource("a", [["100", "1"], ["101", "1"]]),
        "b": StubSource("b", [["99", "2"]]),
    }
    result = run_comparison(
        FillRequest(Decimal("1.5"), allow_partial=True), sources, "BTCUSDT", 50
    )
    assert result.best_venue_id == "b"
    assert sources["a"].calls == [("BTCUSDT", 50)]


def test_run_comparison_timeout_bounds_wall_time():
    sources = {"slow": StubSource("slow", [["100", "1"]], delay=3.0)}
    started = time.monotonic()
    with pytest.raises(FetchError, match="timed out"):
        run_comparison(
            FillRequest(Decimal("1")), sources, "BTCUSDT", 10, timeout=0.1
        )
    assert time.monotonic() - started < 1.0


def test_run_comparison_first_failure_does_not_wait_for_slow_venue():
    sources = {
        "down": StubSource("down", error=FetchError("Unexpected HTTP status 503")),
        "slow": StubSource("slow", [["100", "1"]], delay=3.0),
    }
    started = time.monotonic()
    with pytest.raises(FetchError) as exc:
        run_comparison(FillRequest(Decimal("1")), sources, "BTCUSDT", 10)
    assert exc.value.venue_id == "down"
    assert time.monotonic() - started < 1.0
