"""
Volume relative to peer markets, plus a compact per-market summary.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from ..models import MarketSnapshot
from ..utils.rounding import round_half_up

HOT_VOLUME_RATIO = 2.0


@dataclass(frozen=True)
class VolumeAnalysis:
    """How a market's volume compares with its peers."""
    volume: int
    avg_volume: float
    relative_volume: float
    volume_rank: int  # 1-based; 0 if the market itself has no volume
    total_markets: int
    is_hot_volume: bool


@dataclass(frozen=True)
class QuickStats:
    """Headline figures for a market row."""
    implied_prob: str
    volume: int
    open_interest: int


def compute_volume_analysis(
    market: MarketSnapshot,
    all_markets: Sequence[MarketSnapshot]
) -> Optional[VolumeAnalysis]:
    """
    Compare a market's volume with the traded markets in its peer group.

    Args:
        market: Market to analyze
        all_markets: Peer group (usually the event's markets)

    Returns:
        VolumeAnalysis, or None if no peer has any volume
    """
    volumes = [m.volume for m in all_markets if m.volume]
    if not volumes:
        return None

    avg = sum(volumes) / len(volumes)
    volume = market.volume or 0
    relative_volume = volume / avg if avg > 0 else 0

    ranked = sorted(volumes, reverse=True)
    rank = ranked.index(volume) + 1 if volume in ranked else 0

    return VolumeAnalysis(
        volume=volume,
        avg_volume=round_half_up(avg),
        relative_volume=round_half_up(relative_volume, 2),
        volume_rank=rank,
        total_markets=len(volumes),
        is_hot_volume=relative_volume > HOT_VOLUME_RATIO
    )


def quick_stats(market: MarketSnapshot) -> QuickStats:
    """Summarize a market for display."""
    implied = f"{market.last_price}%" if market.last_price is not None else "--"
    return QuickStats(
        implied_prob=implied,
        volume=market.volume or 0,
        open_interest=market.open_interest or 0
    )
