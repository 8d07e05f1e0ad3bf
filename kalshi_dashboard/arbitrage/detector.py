"""
Cross-market mispricing detector for multi-market events.

For a partition-style event (mutually exclusive, exhaustive outcomes) the
YES prices of all markets should sum to roughly 100%. A large overround
points at a pricing anomaly across markets rather than within one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from ..models import EventGroup, MarketSnapshot
from ..utils.logger import get_logger
from ..utils.rounding import round_half_up

logger = get_logger("arbitrage")

FAIR_TOTAL_PCT = 100
MISPRICING_THRESHOLD_PCT = 15
SIGNAL_THRESHOLD_PCT = 10
MIN_PRICED_MARKETS = 2


class ArbitrageSignal(str, Enum):
    """Which way an event's markets are mispriced in aggregate."""
    UNDERPRICED = "UNDERPRICED"
    OVERPRICED = "OVERPRICED"
    MISPRICED = "MISPRICED"


@dataclass(frozen=True)
class ArbitrageResult:
    """Implied-probability summary for one event."""
    total_implied_pct: float
    overround: float  # Positive = too expensive in aggregate, negative = too cheap
    market_count: int
    is_mispriced: bool


@dataclass
class EventArbitrage:
    """A mispriced event with its markets."""
    event_ticker: str
    event_title: str
    result: ArbitrageResult
    markets: list[MarketSnapshot] = field(default_factory=list)

    @property
    def overround(self) -> float:
        return self.result.overround

    @property
    def signal(self) -> ArbitrageSignal:
        """Display label for the mispricing."""
        if self.result.overround < -SIGNAL_THRESHOLD_PCT:
            return ArbitrageSignal.UNDERPRICED
        if self.result.overround > SIGNAL_THRESHOLD_PCT:
            return ArbitrageSignal.OVERPRICED
        return ArbitrageSignal.MISPRICED


def detect_arbitrage(
    event_markets: Optional[Sequence[MarketSnapshot]],
    threshold_pct: float = MISPRICING_THRESHOLD_PCT
) -> Optional[ArbitrageResult]:
    """
    Sum implied probabilities across an event's markets.

    Only markets with a known, positive last price count.

    Args:
        event_markets: All markets of one event
        threshold_pct: |overround| above which the event is flagged

    Returns:
        ArbitrageResult, or None with fewer than two priced markets
    """
    if not event_markets or len(event_markets) < MIN_PRICED_MARKETS:
        return None

    priced = [m for m in event_markets if m.last_price is not None and m.last_price > 0]
    if len(priced) < MIN_PRICED_MARKETS:
        return None

    total_implied_pct = sum(m.last_price for m in priced)
    overround = total_implied_pct - FAIR_TOTAL_PCT

    return ArbitrageResult(
        total_implied_pct=round_half_up(total_implied_pct, 1),
        overround=round_half_up(overround, 1),
        market_count=len(priced),
        is_mispriced=abs(overround) > threshold_pct
    )


class ArbitrageDetector:
    """
    Scans events for aggregate mispricing.

    Stateless apart from its threshold: every call evaluates the events it
    is given.
    """

    def __init__(self, threshold_pct: float = MISPRICING_THRESHOLD_PCT):
        """
        Initialize arbitrage detector.

        Args:
            threshold_pct: |overround| in percentage points above which an
                event is flagged
        """
        self.threshold_pct = threshold_pct

    def check_event(self, event: EventGroup) -> Optional[EventArbitrage]:
        """
        Check a single event for mispricing.

        Returns:
            EventArbitrage if mispriced, None otherwise
        """
        result = detect_arbitrage(event.markets, self.threshold_pct)
        if result is None or not result.is_mispriced:
            return None

        logger.debug(
            "Mispriced event",
            extra={
                "event_ticker": event.event_ticker,
                "total_implied_pct": result.total_implied_pct,
                "overround": result.overround,
                "market_count": result.market_count
            }
        )

        return EventArbitrage(
            event_ticker=event.event_ticker,
            event_title=event.title,
            result=result,
            markets=list(event.markets)
        )

    def check_all_events(self, events: Sequence[EventGroup]) -> list[EventArbitrage]:
        """
        Check all events for mispricing.

        Returns:
            Mispriced events, largest |overround| first
        """
        opportunities = []
        for event in events:
            opp = self.check_event(event)
            if opp:
                opportunities.append(opp)

        opportunities.sort(key=lambda x: abs(x.overround), reverse=True)
        return opportunities
