"""
Bid-ask spread from a Kalshi order book.

Kalshi books only hold bids. The best YES ask is implied by the best NO bid:
selling YES is economically the same as buying NO at the complement.
"""

from dataclasses import dataclass
from typing import Optional

from ..models import OrderBookSnapshot

PAYOUT_CENTS = 100


@dataclass(frozen=True)
class SpreadStats:
    """Spread summary. Prices in cents; spread_pct is relative to the midpoint."""
    best_bid: Optional[float]
    best_ask: Optional[float]
    depth: int
    spread: Optional[float] = None
    spread_pct: Optional[float] = None
    midpoint: Optional[float] = None


def compute_spread(orderbook: Optional[OrderBookSnapshot]) -> Optional[SpreadStats]:
    """
    Compute best bid/ask, spread and depth from an order book.

    If either side is empty only that price is unknown; spread, midpoint and
    spread_pct need both.

    Args:
        orderbook: Order book snapshot, or None

    Returns:
        SpreadStats, or None if no order book was given
    """
    if orderbook is None:
        return None

    best_bid = orderbook.yes[0].price if orderbook.yes else None
    best_ask = PAYOUT_CENTS - orderbook.no[0].price if orderbook.no else None

    if best_bid is None or best_ask is None:
        return SpreadStats(best_bid=best_bid, best_ask=best_ask, depth=orderbook.depth)

    spread = best_ask - best_bid
    midpoint = (best_bid + best_ask) / 2
    spread_pct = spread / midpoint * 100 if midpoint > 0 else 0

    return SpreadStats(
        best_bid=best_bid,
        best_ask=best_ask,
        depth=orderbook.depth,
        spread=spread,
        spread_pct=spread_pct,
        midpoint=midpoint
    )
