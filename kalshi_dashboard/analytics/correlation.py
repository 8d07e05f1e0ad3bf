"""
Market relatedness scoring and price-series correlation.

Relatedness combines three additive signals:
1. Same event (strongest)
2. Keyword overlap between market + event titles (Jaccard)
3. Price-level proximity (weak tie-breaker)
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..models import MarketSnapshot
from ..utils.rounding import round_half_up
from .keywords import extract_keywords, keyword_similarity

SAME_EVENT_WEIGHT = 0.8
TOPIC_WEIGHT = 0.6
PRICE_PROXIMITY_WEIGHT = 0.1

SAME_EVENT_REASON = "SAME EVENT"

# Correlation below this many aligned points is not reported
MIN_CORRELATION_POINTS = 10

NORMALIZED_MIN = 0.0
NORMALIZED_MAX = 100.0
NORMALIZED_FLAT = 50.0


@dataclass(frozen=True)
class RelatednessResult:
    """Affinity between a target market and a candidate."""
    score: float
    reason: str = ""


def _topic_text(market: MarketSnapshot) -> str:
    return f"{market.title or ''} {market.event_title or ''}"


def compute_relatedness(
    target: MarketSnapshot,
    candidate: MarketSnapshot
) -> RelatednessResult:
    """
    Score how related a candidate market is to the target.

    The "SAME EVENT" reason is assigned first and never overwritten, so it
    wins over a topic reason regardless of magnitude. Missing fields make
    their term contribute nothing.

    Args:
        target: Reference market
        candidate: Market being compared

    Returns:
        RelatednessResult with additive score and display reason
    """
    score = 0.0
    reason = ""

    if target.event_ticker and target.event_ticker == candidate.event_ticker:
        score += SAME_EVENT_WEIGHT
        reason = SAME_EVENT_REASON

    similarity = keyword_similarity(
        extract_keywords(_topic_text(target)),
        extract_keywords(_topic_text(candidate))
    )
    if similarity > 0:
        score += similarity * TOPIC_WEIGHT
        if not reason:
            reason = f"TOPIC {round_half_up(similarity * 100):.0f}%"

    # Same price doesn't mean related, but very different prices are less
    # likely to be substitutes.
    if target.last_price is not None and candidate.last_price is not None:
        price_distance = abs(target.last_price - candidate.last_price) / 100
        score += (1 - price_distance) * PRICE_PROXIMITY_WEIGHT

    return RelatednessResult(score=score, reason=reason)


def normalize_series(prices: Sequence[float]) -> list[float]:
    """
    Rescale a price series linearly onto 0-100.

    A flat series carries no information and maps to 50 everywhere.
    """
    if len(prices) == 0:
        return []

    values = np.asarray(prices, dtype=float)
    low = values.min()
    price_range = values.max() - low
    if price_range == 0:
        return [NORMALIZED_FLAT] * len(values)

    scaled = (values - low) / price_range * (NORMALIZED_MAX - NORMALIZED_MIN) + NORMALIZED_MIN
    return scaled.tolist()


def pearson_correlation(
    series_a: Sequence[float],
    series_b: Sequence[float]
) -> Optional[float]:
    """
    Pearson correlation over the common prefix of two series.

    Returns:
        Coefficient in [-1, 1]; None when fewer than MIN_CORRELATION_POINTS
        points overlap; 0.0 when either series has zero variance
    """
    n = min(len(series_a), len(series_b))
    if n < MIN_CORRELATION_POINTS:
        return None

    a = np.asarray(series_a[:n], dtype=float)
    b = np.asarray(series_b[:n], dtype=float)
    da = a - a.mean()
    db = b - b.mean()

    denom = np.sqrt(np.sum(da * da) * np.sum(db * db))
    if denom == 0:
        return 0.0
    return float(np.sum(da * db) / denom)
