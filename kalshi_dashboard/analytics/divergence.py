"""
Divergence between two markets' recent price movements.

Two related markets that normally move together but have recently moved
apart get a positive divergence score.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from ..models import TradeRecord, trade_prices
from ..utils.rounding import round_half_up

# Trades averaged at each end of the sequence
DIVERGENCE_WINDOW = 3

MOVE_DEAD_ZONE = 1
DIVERGING_THRESHOLD = 3


class DivergenceDirection(str, Enum):
    """How the target and candidate moved relative to each other."""
    TARGET_UP_MATCH_DOWN = "TARGET UP / MATCH DOWN"
    TARGET_DOWN_MATCH_UP = "TARGET DOWN / MATCH UP"
    BOTH_UP_DIVERGING = "BOTH UP (DIVERGING)"
    BOTH_DOWN_DIVERGING = "BOTH DOWN (DIVERGING)"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class DivergenceStats:
    """Divergence between a target and a candidate market."""
    divergence: float
    direction: DivergenceDirection
    target_delta: float
    candidate_delta: float


def _price_delta(prices: list[float]) -> float:
    recent = sum(prices[:DIVERGENCE_WINDOW]) / DIVERGENCE_WINDOW
    older = sum(prices[-DIVERGENCE_WINDOW:]) / DIVERGENCE_WINDOW
    return recent - older


def classify_divergence(target_delta: float, candidate_delta: float) -> DivergenceDirection:
    """Label a pair of price deltas."""
    gap = abs(target_delta - candidate_delta)

    if target_delta > MOVE_DEAD_ZONE and candidate_delta < -MOVE_DEAD_ZONE:
        return DivergenceDirection.TARGET_UP_MATCH_DOWN
    if target_delta < -MOVE_DEAD_ZONE and candidate_delta > MOVE_DEAD_ZONE:
        return DivergenceDirection.TARGET_DOWN_MATCH_UP
    if target_delta > MOVE_DEAD_ZONE and candidate_delta > MOVE_DEAD_ZONE and gap > DIVERGING_THRESHOLD:
        return DivergenceDirection.BOTH_UP_DIVERGING
    if target_delta < -MOVE_DEAD_ZONE and candidate_delta < -MOVE_DEAD_ZONE and gap > DIVERGING_THRESHOLD:
        return DivergenceDirection.BOTH_DOWN_DIVERGING
    return DivergenceDirection.NEUTRAL


def compute_divergence(
    target_trades: Optional[Sequence[TradeRecord]],
    candidate_trades: Optional[Sequence[TradeRecord]]
) -> Optional[DivergenceStats]:
    """
    Compare recent-vs-older price change of two trade sequences.

    Both sequences are expected newest-first.

    Args:
        target_trades: Trades for the reference market
        candidate_trades: Trades for the compared market

    Returns:
        DivergenceStats, or None if either side has fewer than 3 trades
    """
    if not target_trades or not candidate_trades:
        return None
    if len(target_trades) < DIVERGENCE_WINDOW or len(candidate_trades) < DIVERGENCE_WINDOW:
        return None

    target_delta = _price_delta(trade_prices(list(target_trades)))
    candidate_delta = _price_delta(trade_prices(list(candidate_trades)))

    return DivergenceStats(
        divergence=round_half_up(abs(target_delta - candidate_delta), 1),
        direction=classify_divergence(target_delta, candidate_delta),
        target_delta=round_half_up(target_delta, 1),
        candidate_delta=round_half_up(candidate_delta, 1)
    )
