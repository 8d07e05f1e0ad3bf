"""
Correlation scanner.

Scores a loaded market universe against a reference market, keeps the
best matches, then enriches the top of the list with spread, momentum and
divergence computed from freshly fetched trades and order books.
"""

import asyncio
import itertools
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Sequence

import pandas as pd

from ..analytics import compute_divergence, compute_momentum, compute_relatedness, compute_spread
from ..arbitrage import ArbitrageDetector, EventArbitrage
from ..clients.kalshi_client import KalshiAPIError, KalshiClient
from ..config import ScanConfig
from ..models import EventGroup, MarketSnapshot, OrderBookSnapshot, TradeRecord
from ..utils.logger import ScanLogger, get_logger

logger = get_logger("scanner")
scan_logger = ScanLogger()

NOT_FOUND_STATUS = 'Market "{ticker}" not found in loaded data. Try a different ticker.'

# Missing spread sorts as very wide so unknown books don't look tight
MISSING_SPREAD_PCT = 999

SORT_KEYS = ("score", "divergence", "spread_pct", "momentum", "volume")

FRAME_COLUMNS = [
    "ticker", "reason", "title", "last_price", "volume", "score",
    "divergence", "spread", "spread_pct", "momentum_dir", "velocity",
]


class ScanPhase(str, Enum):
    """Where a scan currently is."""
    IDLE = "idle"
    LOADING_EVENTS = "loading-events"
    SCORING = "scoring"
    FETCHING_STATS = "fetching-stats"
    DONE = "done"


class ScanToken:
    """
    Cancellation flag for one scan.

    A newer scan cancels the previous scan's token; results arriving for a
    cancelled scan are dropped instead of being published.
    """

    def __init__(self, scan_id: int):
        self.scan_id = scan_id
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class ScanResult:
    """A candidate market with its relatedness score and enrichment."""
    market: MarketSnapshot
    score: float
    reason: str = ""

    # Filled in for the enriched top-K only
    spread: Optional[float] = None
    spread_pct: Optional[float] = None
    depth: Optional[int] = None
    momentum_dir: Optional[str] = None
    momentum_mag: Optional[float] = None
    velocity: Optional[float] = None
    divergence: Optional[float] = None
    div_direction: Optional[str] = None

    @property
    def ticker(self) -> str:
        return self.market.ticker

    def to_dict(self) -> dict[str, Any]:
        """Flatten market fields and derived fields into one record."""
        return {
            "ticker": self.market.ticker,
            "title": self.market.title,
            "event_ticker": self.market.event_ticker,
            "event_title": self.market.event_title,
            "last_price": self.market.last_price,
            "volume": self.market.volume,
            "open_interest": self.market.open_interest,
            "score": self.score,
            "reason": self.reason,
            "spread": self.spread,
            "spread_pct": self.spread_pct,
            "depth": self.depth,
            "momentum_dir": self.momentum_dir,
            "momentum_mag": self.momentum_mag,
            "velocity": self.velocity,
            "divergence": self.divergence,
            "div_direction": self.div_direction,
        }


@dataclass
class ScanState:
    """What the dashboard shows for the current scan."""
    scan_id: int = 0
    phase: ScanPhase = ScanPhase.IDLE
    status: str = ""
    reference: Optional[MarketSnapshot] = None
    results: list[ScanResult] = field(default_factory=list)


async def fetch_trades_or_empty(client: KalshiClient, ticker: str, limit: int) -> list[TradeRecord]:
    """Fetch recent trades (newest first); any failure yields no trades."""
    try:
        page = await client.get_trades(ticker, limit=limit)
        return page.trades
    except KalshiAPIError as e:
        scan_logger.fetch_failed(ticker, "trades", str(e))
        return []
    except Exception as e:
        scan_logger.fetch_failed(ticker, "trades", repr(e))
        return []


async def fetch_orderbook_or_none(client: KalshiClient, ticker: str) -> Optional[OrderBookSnapshot]:
    """Fetch an order book; any failure yields None."""
    try:
        return await client.get_orderbook(ticker)
    except KalshiAPIError as e:
        scan_logger.fetch_failed(ticker, "orderbook", str(e))
        return None
    except Exception as e:
        scan_logger.fetch_failed(ticker, "orderbook", repr(e))
        return None


def enrich_result(
    result: ScanResult,
    trades: Sequence[TradeRecord],
    orderbook: Optional[OrderBookSnapshot],
    reference_trades: Sequence[TradeRecord]
) -> None:
    """Attach spread, momentum and divergence stats to a result where computable."""
    spread = compute_spread(orderbook)
    if spread:
        result.spread = spread.spread
        result.spread_pct = spread.spread_pct
        result.depth = spread.depth

    momentum = compute_momentum(trades)
    if momentum:
        result.momentum_dir = momentum.direction.value
        result.momentum_mag = momentum.magnitude
        result.velocity = momentum.velocity

    divergence = compute_divergence(reference_trades, trades)
    if divergence:
        result.divergence = divergence.divergence
        result.div_direction = divergence.direction.value


def _sort_value(result: ScanResult, key: str) -> float:
    if key == "score":
        return result.score
    if key == "divergence":
        return result.divergence if result.divergence is not None else 0
    if key == "spread_pct":
        return result.spread_pct if result.spread_pct is not None else MISSING_SPREAD_PCT
    if key == "momentum":
        return abs(result.velocity or 0)
    if key == "volume":
        return result.market.volume or 0
    raise ValueError(f"Unknown sort key {key!r}; expected one of {', '.join(SORT_KEYS)}")


def sort_results(
    results: Sequence[ScanResult],
    key: str = "score",
    descending: bool = True,
    min_score: float = 0.0
) -> list[ScanResult]:
    """
    Re-sort scan results by a derived field and drop low scores.

    Args:
        results: Scan results
        key: One of SORT_KEYS
        descending: Largest first
        min_score: Keep results with score >= this

    Returns:
        New sorted, filtered list
    """
    ordered = sorted(results, key=lambda r: _sort_value(r, key), reverse=descending)
    return [r for r in ordered if r.score >= min_score]


def results_frame(results: Sequence[ScanResult]) -> pd.DataFrame:
    """Tabulate scan results for display."""
    return pd.DataFrame([r.to_dict() for r in results], columns=FRAME_COLUMNS)


class CorrelationScanner:
    """
    Orchestrates correlation scans over a loaded market universe.

    Holds one in-memory batch (the universe) and the visible state of the
    latest scan. Starting a scan supersedes the previous one.
    """

    def __init__(
        self,
        client: KalshiClient,
        config: Optional[ScanConfig] = None,
        detector: Optional[ArbitrageDetector] = None
    ):
        """
        Initialize correlation scanner.

        Args:
            client: Fetch collaborator for events, trades and order books
            config: Scan limits; defaults to ScanConfig()
            detector: Arbitrage detector run over the loaded events
        """
        self.client = client
        self.config = config or ScanConfig()
        self.detector = detector or ArbitrageDetector()

        self.events: list[EventGroup] = []
        self.markets: list[MarketSnapshot] = []
        self.arbitrage_results: list[EventArbitrage] = []

        self.state = ScanState()
        self._token: Optional[ScanToken] = None
        self._scan_ids = itertools.count(1)
        self._load_lock: Optional[asyncio.Lock] = None

    async def load_universe(self) -> list[MarketSnapshot]:
        """
        Load open events and their markets, then run the arbitrage scan.

        Returns:
            Flattened market universe
        """
        self.state.phase = ScanPhase.LOADING_EVENTS
        self.state.status = "Loading market universe..."

        events, markets = await self.client.load_universe(
            max_pages=self.config.max_event_pages,
            page_size=self.config.event_page_size
        )
        self.events = events
        self.markets = markets

        self.arbitrage_results = self.detector.check_all_events(events)
        for arb in self.arbitrage_results:
            scan_logger.mispriced_event(arb.event_ticker, arb.result.total_implied_pct, arb.overround)

        scan_logger.universe_loaded(len(markets), len(events), self.config.max_event_pages)
        self.state.phase = ScanPhase.IDLE
        self.state.status = f"Ready: {len(markets)} markets across {len(events)} events"
        return markets

    async def ensure_universe(self) -> list[MarketSnapshot]:
        """Load the universe once; concurrent callers wait for the same load."""
        if self._load_lock is None:
            self._load_lock = asyncio.Lock()
        async with self._load_lock:
            if not self.markets:
                await self.load_universe()
        return self.markets

    def fork(self) -> "CorrelationScanner":
        """
        New scanner over the same loaded universe with its own scan state.

        Each viewer scans through its own fork, so one viewer's newer scan
        never supersedes another's. Scan ids stay unique across forks.
        """
        scanner = CorrelationScanner(self.client, self.config, self.detector)
        scanner.events = self.events
        scanner.markets = self.markets
        scanner.arbitrage_results = self.arbitrage_results
        scanner.state = ScanState(status=self.state.status)
        scanner._scan_ids = self._scan_ids
        return scanner

    def find_reference(self, ticker_input: str) -> Optional[MarketSnapshot]:
        """
        Find a market in the loaded universe.

        Exact ticker match wins; otherwise the first ticker containing the
        input. Matching is case-insensitive on the input.
        """
        wanted = ticker_input.strip().upper()
        if not wanted:
            return None

        for market in self.markets:
            if market.ticker == wanted:
                return market
        for market in self.markets:
            if market.ticker and wanted in market.ticker:
                return market
        return None

    def score_universe(self, reference: MarketSnapshot) -> list[ScanResult]:
        """
        Score every other market against the reference.

        Returns:
            Results above the minimum score, best first, capped at max_results
        """
        scored = []
        for market in self.markets:
            if market.ticker == reference.ticker:
                continue
            relatedness = compute_relatedness(reference, market)
            if relatedness.score > self.config.min_score:
                scored.append(ScanResult(
                    market=market,
                    score=relatedness.score,
                    reason=relatedness.reason
                ))

        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:self.config.max_results]

    def start_scan(self) -> ScanToken:
        """Cancel any scan in flight and issue a token for a new one."""
        if self._token is not None:
            self._token.cancel()
        self._token = ScanToken(next(self._scan_ids))
        return self._token

    def cancel(self) -> None:
        """Cancel the scan in flight, if any."""
        if self._token is not None:
            self._token.cancel()

    def _publish(self, token: ScanToken, **changes: Any) -> bool:
        """Apply state changes unless the scan has been superseded."""
        if token.cancelled:
            return False
        self.state = replace(self.state, scan_id=token.scan_id, **changes)
        return True

    async def _fetch_series(self, ticker: str) -> tuple[list[TradeRecord], Optional[OrderBookSnapshot]]:
        trades = await fetch_trades_or_empty(self.client, ticker, self.config.trade_limit)
        orderbook = await fetch_orderbook_or_none(self.client, ticker)
        return trades, orderbook

    async def run_scan(self, ticker_input: str) -> ScanState:
        """
        Run a full scan for a reference ticker.

        Args:
            ticker_input: Ticker (or fragment of one) typed by the user

        Returns:
            The visible scan state. If this scan was superseded while running,
            that is the newer scan's state.
        """
        token = self.start_scan()
        start_time = time.time()

        reference = self.find_reference(ticker_input)
        if reference is None:
            scan_logger.reference_not_found(token.scan_id, ticker_input)
            self._publish(
                token,
                reference=None,
                results=[],
                phase=ScanPhase.IDLE,
                status=NOT_FOUND_STATUS.format(ticker=ticker_input)
            )
            return self.state

        try:
            self._publish(
                token,
                reference=reference,
                phase=ScanPhase.SCORING,
                status="Scoring relatedness...",
                results=[]
            )

            scored = self.score_universe(reference)
            scan_logger.scan_started(token.scan_id, reference.ticker, len(self.markets))
            self._publish(
                token,
                results=list(scored),
                phase=ScanPhase.FETCHING_STATS,
                status="Fetching trade data and orderbooks..."
            )

            reference_trades = await fetch_trades_or_empty(
                self.client, reference.ticker, self.config.trade_limit
            )
            if token.cancelled:
                scan_logger.scan_superseded(token.scan_id)
                return self.state

            top = scored[:self.config.enrich_top_k]
            enriched = await self._enrich_all(token, top, scored, reference_trades)

            if not self._publish(
                token,
                phase=ScanPhase.DONE,
                status=f"Scan complete: {len(scored)} related markets found"
            ):
                scan_logger.scan_superseded(token.scan_id)
                return self.state

            scan_logger.scan_completed(
                token.scan_id,
                reference.ticker,
                matches=len(scored),
                enriched=enriched,
                duration_ms=(time.time() - start_time) * 1000
            )
        except Exception as e:
            logger.error(f"Scan failed: {e}", extra={"scan_id": token.scan_id})
            self._publish(token, phase=ScanPhase.IDLE, status=f"Error: {e}")
            raise

        return self.state

    async def _enrich_all(
        self,
        token: ScanToken,
        top: list[ScanResult],
        scored: list[ScanResult],
        reference_trades: list[TradeRecord]
    ) -> int:
        """Fetch and attach stats for the top results with bounded concurrency."""
        semaphore = asyncio.Semaphore(max(1, self.config.fetch_batch_width))
        completed = 0

        async def enrich_one(result: ScanResult) -> None:
            nonlocal completed
            async with semaphore:
                if token.cancelled:
                    return
                trades, orderbook = await self._fetch_series(result.ticker)
            if token.cancelled:
                return

            enrich_result(result, trades, orderbook, reference_trades)
            completed += 1
            self._publish(
                token,
                results=list(scored),
                status=f"Analyzed {completed}/{len(top)} markets..."
            )

        await asyncio.gather(*(enrich_one(r) for r in top))
        return completed
