"""
Price momentum from a sequence of recent trades.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from ..models import TradeRecord, trade_prices
from ..utils.rounding import round_half_up

MIN_MOMENTUM_TRADES = 4

# Cents the half-averages must differ by before a direction is called
DIRECTION_DEAD_ZONE = 1


class MomentumDirection(str, Enum):
    """Direction of recent price movement."""
    UP = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"


@dataclass(frozen=True)
class MomentumStats:
    """Momentum summary for one market."""
    direction: MomentumDirection
    magnitude: float  # |recent_avg - older_avg| in cents
    recent_avg: float
    older_avg: float
    trade_count: int
    velocity: float  # Regression slope, cents per trade


def regression_slope(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of values against their index; 0.0 below two points."""
    n = len(values)
    if n < 2:
        return 0.0
    y = np.asarray(values, dtype=float)
    x = np.arange(n, dtype=float)

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_x2 = (x * x).sum()
    return float((n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x))


def compute_momentum(trades: Optional[Sequence[TradeRecord]]) -> Optional[MomentumStats]:
    """
    Compare the average price of the recent half of trades with the older half.

    Trades are expected newest-first, as the trades endpoint delivers them.
    The velocity regression runs over the sequence in the order given; with
    newest-first input a rising market has a negative slope.

    Args:
        trades: Trade sequence, newest first

    Returns:
        MomentumStats, or None with fewer than MIN_MOMENTUM_TRADES trades
    """
    if not trades or len(trades) < MIN_MOMENTUM_TRADES:
        return None

    prices = trade_prices(list(trades))
    half = len(prices) // 2

    recent_avg = float(np.mean(prices[:half]))
    older_avg = float(np.mean(prices[half:]))

    direction = MomentumDirection.FLAT
    if recent_avg - older_avg > DIRECTION_DEAD_ZONE:
        direction = MomentumDirection.UP
    elif older_avg - recent_avg > DIRECTION_DEAD_ZONE:
        direction = MomentumDirection.DOWN

    return MomentumStats(
        direction=direction,
        magnitude=round_half_up(abs(recent_avg - older_avg), 1),
        recent_avg=round_half_up(recent_avg, 1),
        older_avg=round_half_up(older_avg, 1),
        trade_count=len(trades),
        velocity=round_half_up(regression_slope(prices), 2)
    )
