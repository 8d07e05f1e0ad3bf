"""
Command-line entry point for the Kalshi dashboard analytics.

    python -m kalshi_dashboard.main scan KXNEWPOPE-70 --sort divergence
    python -m kalshi_dashboard.main arbitrage
    python -m kalshi_dashboard.main related KXNEWPOPE-70
    python -m kalshi_dashboard.main serve
"""

import argparse
import asyncio
import sys
from typing import Optional

import pandas as pd

from .clients.kalshi_client import KalshiAPIError, KalshiClient
from .config import Config, load_config
from .scanner import SORT_KEYS, CorrelationScanner, RelatedMarketsFinder, results_frame, sort_results
from .utils.logger import get_logger, setup_logging

logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kalshi-dashboard",
        description="Relatedness scans and mispricing detection over Kalshi markets"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Scan the open-market universe for markets related to a ticker")
    scan.add_argument("ticker", help="Reference ticker (or a fragment of one)")
    scan.add_argument("--sort", choices=SORT_KEYS, default="score")
    scan.add_argument("--ascending", action="store_true", help="Sort smallest first")
    scan.add_argument("--min-score", type=float, default=0.0)

    sub.add_parser("arbitrage", help="List events whose markets are mispriced in aggregate")

    related = sub.add_parser("related", help="Related markets with trade-price correlation")
    related.add_argument("ticker")

    sub.add_parser("serve", help="Run the dashboard JSON API")
    return parser


async def run_scan(config: Config, ticker: str, sort: str, ascending: bool, min_score: float) -> int:
    async with KalshiClient(config.kalshi) as client:
        scanner = CorrelationScanner(client, config.scan)
        await scanner.load_universe()
        state = await scanner.run_scan(ticker)

    print(state.status)
    if state.reference is None:
        return 1

    ref = state.reference
    price = f"{ref.last_price}c" if ref.last_price is not None else "--"
    print(f"REFERENCE: {ref.ticker} | {ref.title} | {price} | VOL {ref.volume or 0:,}")

    results = sort_results(state.results, key=sort, descending=not ascending, min_score=min_score)
    if not results:
        print(f"NO MATCHES FOUND FOR {ref.ticker}")
        return 0
    print(results_frame(results).to_string(index=False))
    return 0


async def run_arbitrage(config: Config) -> int:
    async with KalshiClient(config.kalshi) as client:
        scanner = CorrelationScanner(client, config.scan)
        await scanner.load_universe()

    print(scanner.state.status)
    if not scanner.arbitrage_results:
        print("No mispriced events")
        return 0

    frame = pd.DataFrame([
        {
            "event_ticker": a.event_ticker,
            "title": a.event_title,
            "markets": a.result.market_count,
            "sum_pct": a.result.total_implied_pct,
            "overround": a.result.overround,
            "signal": a.signal.value,
        }
        for a in scanner.arbitrage_results
    ])
    print(frame.to_string(index=False))
    return 0


async def run_related(config: Config, ticker: str) -> int:
    async with KalshiClient(config.kalshi) as client:
        try:
            market = await client.get_market(ticker)
        except KalshiAPIError as e:
            logger.error(f"Could not load reference market: {e}")
            print(f"Market {ticker} could not be loaded")
            return 1

        finder = RelatedMarketsFinder(client, trade_limit=config.scan.trade_limit)
        outcome = await finder.find(market.ticker, title=market.title, event_ticker=market.event_ticker)

    print(outcome.status)
    if outcome.related:
        frame = pd.DataFrame([
            {
                "ticker": r.market.ticker,
                "reason": r.reason,
                "title": r.market.title,
                "score": r.score,
                "price_corr": r.price_corr,
            }
            for r in outcome.related
        ])
        print(frame.to_string(index=False))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 1

    setup_logging(
        level=config.logging.log_level,
        json_format=config.logging.json_logging
    )

    if args.command == "serve":
        from .api.server import run
        run()
        return 0

    try:
        if args.command == "scan":
            return asyncio.run(run_scan(config, args.ticker, args.sort, args.ascending, args.min_score))
        if args.command == "arbitrage":
            return asyncio.run(run_arbitrage(config))
        if args.command == "related":
            return asyncio.run(run_related(config, args.ticker))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130
    return 1


if __name__ == "__main__":
    sys.exit(main())
