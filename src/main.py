"""CLI entrypoint: compare the cost of buying an amount across venues."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

import config
from core.base_types import ComparisonResult, FillRequest
from core.decimals import format_decimal
from core.errors import ComparisonError, ZeroLiquidity
from exchange.client import ExchangeClient
from exchange.rest_client import RestDepthClient
from exchange.source import OrderBookSource
from pricing.comparator import run_comparison

logger = logging.getLogger(__name__)

BACKENDS = ("rest", "ccxt")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compare the cost of buying an amount of base asset across venues"
    )
    parser.add_argument(
        "amount",
        nargs="?",
        default=config.DEFAULT_TARGET_AMOUNT,
        help=f"Base asset amount to buy (default {config.DEFAULT_TARGET_AMOUNT})",
    )
    parser.add_argument(
        "--allow-partial",
        action="store_true",
        help="Accept a partial fill when a book is too shallow",
    )
    parser.add_argument("--symbol", default=config.DEFAULT_SYMBOL, help="e.g. BTCUSDT")
    parser.add_argument(
        "--venues",
        default=",".join(config.DEFAULT_VENUES),
        help="Comma-separated venue ids (default binance,btcturk)",
    )
    parser.add_argument(
        "--depth", type=int, default=config.DEFAULT_DEPTH, help="Levels to fetch"
    )
    parser.add_argument(
        "--backend",
        default="rest",
        choices=BACKENDS,
        help="Plain REST endpoints or ccxt exchange classes",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline in seconds for fetching all books",
    )
    parser.add_argument("--json", action="store_true", help="Print JSON output")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def build_sources(venue_ids: Sequence[str], backend: str) -> dict[str, OrderBookSource]:
    sources: dict[str, OrderBookSource] = {}
    for venue_id in venue_ids:
        if backend == "ccxt":
            sources[venue_id] = ExchangeClient(venue_id)
        else:
            sources[venue_id] = RestDepthClient(venue_id)
    return sources


def render_result(result: ComparisonResult) -> str:
    lines = []
    for quote in result.quotes:
        fill = quote.fill
        lines.append(f"{quote.venue_id}:")
        lines.append(f"  Unit price:  {format_decimal(quote.price_per_unit)}")
        lines.append(f"  Quote cost:  {format_decimal(fill.quote_cost)}")
        lines.append(f"  Filled:      {format_decimal(fill.filled_amount)}")
        lines.append(f"  Unfilled:    {format_decimal(fill.unfilled_amount)}")
        lines.append(f"  Partial:     {'yes' if fill.is_partial else 'no'}")
    lines.append("-" * 40)
    lines.append(f"Best venue:  {result.best_venue_id}")
    if result.spread_percent is None:
        lines.append("Spread:      N/A (no comparison possible with one venue)")
    else:
        lines.append(
            f"Spread:      {result.spread_percent}% vs {result.runner_up_venue_id}"
        )
    return "\n".join(lines)


def _parse_venues(value: str) -> list[str]:
    venues = [venue.strip().lower() for venue in value.split(",") if venue.strip()]
    return list(dict.fromkeys(venues))


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s |%(levelname)s |%(message)s",
    )

    venue_ids = _parse_venues(args.venues)
    if not venue_ids:
        parser.error("at least one venue is required")

    try:
        request = FillRequest.create(args.amount, allow_partial=args.allow_partial)
        sources = build_sources(venue_ids, args.backend)
        result = run_comparison(
            request, sources, args.symbol, args.depth, timeout=args.timeout
        )
    except ZeroLiquidity as exc:
        if set(exc.venue_ids) == set(venue_ids):
            print(f"No liquidity on any venue for {args.symbol}; nothing to compare.")
            return
        print(f"Comparison failed: {exc}", file=sys.stderr)
        sys.exit(1)
    except ComparisonError as exc:
        logger.debug("comparison failed", exc_info=exc)
        print(f"Comparison failed: {exc}", file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(render_result(result))


if __name__ == "__main__":
    main()
