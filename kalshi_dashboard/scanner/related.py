"""
Related markets with a normalized price overlay.

Finds the markets most related to one ticker and lines their recent trade
prices up against the target's on a common 0-100 scale.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from ..analytics import compute_relatedness, normalize_series, pearson_correlation
from ..clients.kalshi_client import KalshiClient
from ..models import MarketSnapshot, trade_prices
from ..utils.logger import get_logger
from ..utils.rounding import round_half_up
from .scanner import ScanToken, fetch_trades_or_empty

logger = get_logger("related")

MAX_RELATED = 8
MAX_CHART_LINES = 5
RELATED_MIN_SCORE = 0.05
RELATED_EVENT_PAGES = 3
TRADE_LIMIT = 50
FETCH_BATCH_WIDTH = 5


@dataclass
class RelatedMarket:
    """A related market, with price correlation when enough trades overlap."""
    market: MarketSnapshot
    score: float
    reason: str = ""
    price_corr: Optional[float] = None


@dataclass
class PriceOverlay:
    """Chart-ready points: one dict per target trade index."""
    points: list[dict[str, Any]] = field(default_factory=list)
    series_keys: list[str] = field(default_factory=list)
    correlations: dict[str, float] = field(default_factory=dict)


@dataclass
class RelatedMarkets:
    """Outcome of a related-markets lookup."""
    ticker: str
    related: list[RelatedMarket] = field(default_factory=list)
    overlay: Optional[PriceOverlay] = None
    status: str = ""


def build_price_overlay(
    target_ticker: str,
    target_prices: Sequence[float],
    candidate_prices: dict[str, Sequence[float]]
) -> PriceOverlay:
    """
    Normalize each series and align them on the target's trade index.

    Series must be oldest-first. Candidates with fewer than two prices are
    left out. Each candidate is resampled onto the target's length by
    proportional index.

    Args:
        target_ticker: Key for the target series in each point
        target_prices: Target trade prices
        candidate_prices: Ticker -> trade prices

    Returns:
        PriceOverlay
    """
    overlay = PriceOverlay()
    target_norm = normalize_series(target_prices)
    length = len(target_norm)

    lines: dict[str, list[float]] = {}
    for ticker, prices in candidate_prices.items():
        if len(prices) < 2:
            continue
        lines[ticker] = normalize_series(prices)
        overlay.series_keys.append(ticker)

        corr = pearson_correlation(target_prices, prices)
        if corr is not None:
            overlay.correlations[ticker] = corr

    for i in range(length):
        point: dict[str, Any] = {"idx": i, target_ticker: target_norm[i]}
        for ticker in overlay.series_keys:
            norm = lines[ticker]
            scaled_idx = int(round_half_up(i / length * (len(norm) - 1)))
            point[ticker] = norm[min(scaled_idx, len(norm) - 1)]
        overlay.points.append(point)

    return overlay


class RelatedMarketsFinder:
    """
    Looks up markets related to a ticker and builds their price overlay.

    Loads its own (smaller) universe on every call; nothing is cached.
    """

    def __init__(
        self,
        client: KalshiClient,
        max_related: int = MAX_RELATED,
        max_chart_lines: int = MAX_CHART_LINES,
        min_score: float = RELATED_MIN_SCORE,
        event_pages: int = RELATED_EVENT_PAGES,
        trade_limit: int = TRADE_LIMIT,
        fetch_batch_width: int = FETCH_BATCH_WIDTH
    ):
        self.client = client
        self.max_related = max_related
        self.max_chart_lines = max_chart_lines
        self.min_score = min_score
        self.event_pages = event_pages
        self.trade_limit = trade_limit
        self.fetch_batch_width = fetch_batch_width

    async def find(
        self,
        ticker: str,
        title: str = "",
        event_ticker: Optional[str] = None,
        token: Optional[ScanToken] = None
    ) -> Optional[RelatedMarkets]:
        """
        Find related markets and build the overlay.

        The target's own price is treated as unknown, so price proximity
        does not contribute.

        Args:
            ticker: Target market ticker
            title: Target market title
            event_ticker: Target's event
            token: Optional cancellation token

        Returns:
            RelatedMarkets, or None if cancelled before completion
        """
        _, universe = await self.client.load_universe(max_pages=self.event_pages)
        if token and token.cancelled:
            return None

        target = MarketSnapshot(ticker=ticker, title=title or "", event_ticker=event_ticker)
        scored = []
        for market in universe:
            if market.ticker == ticker:
                continue
            relatedness = compute_relatedness(target, market)
            scored.append(RelatedMarket(market=market, score=relatedness.score, reason=relatedness.reason))

        scored.sort(key=lambda r: r.score, reverse=True)
        related = [r for r in scored if r.score > self.min_score][:self.max_related]
        outcome = RelatedMarkets(ticker=ticker, related=related)

        if not related:
            outcome.status = "No related markets found."
            return outcome

        target_trades = await fetch_trades_or_empty(self.client, ticker, self.trade_limit)
        if token and token.cancelled:
            return None

        candidates = related[:self.max_chart_lines]
        semaphore = asyncio.Semaphore(max(1, self.fetch_batch_width))

        async def fetch_oldest_first(market: MarketSnapshot) -> list[float]:
            async with semaphore:
                trades = await fetch_trades_or_empty(self.client, market.ticker, self.trade_limit)
            return trade_prices(trades[::-1])

        series = await asyncio.gather(*(fetch_oldest_first(r.market) for r in candidates))
        if token and token.cancelled:
            return None

        target_prices = trade_prices(target_trades[::-1])
        if len(target_prices) < 2:
            outcome.status = f"Found {len(related)} related markets (not enough trades for chart)"
            return outcome

        overlay = build_price_overlay(
            ticker,
            target_prices,
            {r.market.ticker: prices for r, prices in zip(candidates, series)}
        )
        for entry in related:
            if entry.market.ticker in overlay.correlations:
                entry.price_corr = overlay.correlations[entry.market.ticker]

        outcome.overlay = overlay
        outcome.status = f"Found {len(related)} related markets"
        logger.debug(
            "Related markets built",
            extra={"ticker": ticker, "related": len(related), "chart_lines": len(overlay.series_keys)}
        )
        return outcome
