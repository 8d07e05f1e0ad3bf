"""
Snapshot data models for Kalshi markets, events, trades and order books.

These mirror what the upstream API returns. Analytics never mutate them;
derived values live on separate result records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time state of a single market. Prices are in cents (0-100)."""
    ticker: str
    title: str = ""
    status: str = ""
    event_ticker: Optional[str] = None
    event_title: Optional[str] = None
    last_price: Optional[int] = None
    yes_ask: Optional[int] = None
    no_ask: Optional[int] = None
    volume: Optional[int] = None
    open_interest: Optional[int] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class TradeRecord:
    """A single executed trade."""
    created_time: Optional[datetime] = None
    taker_side: str = "yes"  # "yes" or "no"
    yes_price: Optional[int] = None
    price: Optional[int] = None
    count: Optional[int] = None
    trade_id: Optional[str] = None

    @property
    def effective_price(self) -> float:
        """YES price of the trade, falling back to the generic price, else 0."""
        if self.yes_price is not None:
            return self.yes_price
        if self.price is not None:
            return self.price
        return 0


@dataclass(frozen=True)
class OrderBookLevel:
    """Single resting level: price in cents and contract quantity."""
    price: int
    quantity: int


@dataclass(frozen=True)
class OrderBookSnapshot:
    """
    Order book for one market.

    Both sides are bids, best first: ``yes`` holds bids for YES contracts and
    ``no`` holds bids for NO contracts.
    """
    yes: tuple[OrderBookLevel, ...] = ()
    no: tuple[OrderBookLevel, ...] = ()

    @property
    def depth(self) -> int:
        """Total number of levels across both sides."""
        return len(self.yes) + len(self.no)


@dataclass
class EventGroup:
    """An event and the markets that belong to it."""
    event_ticker: str
    title: str = ""
    markets: list[MarketSnapshot] = field(default_factory=list)
    category: Optional[str] = None


def trade_prices(trades: list[TradeRecord]) -> list[float]:
    """Extract the price series from a sequence of trades, preserving order."""
    return [trade.effective_price for trade in trades]
