"""
Kalshi trade API client.
Fetches events, markets, order books, trades and candlesticks.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

import aiohttp

from ..config import KalshiConfig
from ..models import (
    EventGroup,
    MarketSnapshot,
    OrderBookLevel,
    OrderBookSnapshot,
    TradeRecord,
)
from ..utils.logger import get_logger

logger = get_logger("kalshi")


class KalshiAPIError(Exception):
    """Upstream request failed (transport error or non-success status)."""

    def __init__(self, endpoint: str, status: Optional[int] = None, message: str = ""):
        self.endpoint = endpoint
        self.status = status
        self.message = message
        detail = f"HTTP {status}" if status is not None else "request failed"
        super().__init__(f"{endpoint}: {detail}{': ' + message if message else ''}")


@dataclass
class EventPage:
    """One page of events."""
    events: list[EventGroup] = field(default_factory=list)
    cursor: Optional[str] = None


@dataclass
class MarketPage:
    """One page of markets."""
    markets: list[MarketSnapshot] = field(default_factory=list)
    cursor: Optional[str] = None


@dataclass
class TradePage:
    """One page of trades, newest first."""
    trades: list[TradeRecord] = field(default_factory=list)
    cursor: Optional[str] = None


class KalshiClient:
    """
    Async client for the public Kalshi trade API.

    Market data endpoints need no authentication. Pagination is cursor
    based: an empty or missing cursor means there is no more data.
    """

    def __init__(self, config: Optional[KalshiConfig] = None):
        """
        Initialize Kalshi client.

        Args:
            config: API base URL and timeout; defaults to the public endpoint
        """
        self.config = config or KalshiConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
            )
        logger.info("Kalshi client initialized", extra={"base_url": self.base_url})

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "KalshiClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _request(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Make HTTP GET request to the Kalshi API."""
        if not self._session:
            await self.initialize()

        url = f"{self.base_url}{endpoint}"
        query = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            async with self._session.get(url, params=query) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.error(
                        "Kalshi API returned error status",
                        extra={"endpoint": endpoint, "status": response.status}
                    )
                    raise KalshiAPIError(endpoint, response.status, body[:200])
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Kalshi API request failed: {e!r}", extra={"endpoint": endpoint})
            raise KalshiAPIError(endpoint, None, repr(e)) from e
        except ValueError as e:
            logger.error(f"Kalshi API returned malformed JSON: {e}", extra={"endpoint": endpoint})
            raise KalshiAPIError(endpoint, response.status, f"malformed JSON: {e}") from e

        if not isinstance(data, dict):
            raise KalshiAPIError(endpoint, response.status, f"expected a JSON object, got {type(data).__name__}")
        return data

    async def get_events(
        self,
        cursor: Optional[str] = None,
        limit: int = 20,
        status: Optional[str] = None,
        with_nested_markets: bool = False
    ) -> EventPage:
        """
        Fetch one page of events.

        Args:
            cursor: Cursor from the previous page
            limit: Events per page
            status: Optional status filter (e.g. "open")
            with_nested_markets: Include each event's markets

        Returns:
            EventPage with parsed events and the next cursor
        """
        params: dict[str, Any] = {"cursor": cursor or None, "limit": limit, "status": status}
        if with_nested_markets:
            params["with_nested_markets"] = "true"

        data = await self._request("/events", params=params)
        events = [self._parse_event(e) for e in data.get("events") or []]
        return EventPage(events=events, cursor=data.get("cursor") or None)

    async def get_markets(
        self,
        cursor: Optional[str] = None,
        limit: int = 100,
        status: Optional[str] = None,
        series_ticker: Optional[str] = None,
        event_ticker: Optional[str] = None
    ) -> MarketPage:
        """Fetch one page of markets."""
        data = await self._request(
            "/markets",
            params={
                "cursor": cursor or None,
                "limit": limit,
                "status": status,
                "series_ticker": series_ticker,
                "event_ticker": event_ticker
            }
        )
        markets = [self._parse_market(m) for m in data.get("markets") or []]
        return MarketPage(markets=markets, cursor=data.get("cursor") or None)

    async def get_market(self, ticker: str) -> MarketSnapshot:
        """Fetch a single market by ticker."""
        data = await self._request(f"/markets/{ticker}")
        return self._parse_market(data.get("market") or {})

    async def get_orderbook(self, ticker: str) -> OrderBookSnapshot:
        """Fetch the current order book for a market."""
        data = await self._request(f"/markets/{ticker}/orderbook")
        return self._parse_orderbook(data.get("orderbook") or {})

    async def get_trades(
        self,
        ticker: str,
        cursor: Optional[str] = None,
        limit: int = 50
    ) -> TradePage:
        """
        Fetch recent trades for a market.

        Returns:
            TradePage with trades newest first, as upstream delivers them
        """
        data = await self._request(
            "/markets/trades",
            params={"ticker": ticker, "cursor": cursor or None, "limit": limit}
        )
        trades = [self._parse_trade(t) for t in data.get("trades") or []]
        return TradePage(trades=trades, cursor=data.get("cursor") or None)

    async def get_candlesticks(self, ticker: str, period_interval: int = 60) -> list[dict]:
        """
        Fetch candlesticks for a market.

        Tries the series-scoped endpoint first and falls back to the
        market-level endpoint.
        """
        try:
            data = await self._request(
                f"/series/{ticker}/markets/{ticker}/candlesticks",
                params={"series_ticker": ticker, "period_interval": period_interval}
            )
        except KalshiAPIError:
            logger.debug("Series candlesticks unavailable, using market endpoint",
                         extra={"ticker": ticker})
            data = await self._request(
                f"/markets/{ticker}/candlesticks",
                params={"period_interval": period_interval}
            )
        return data.get("candlesticks") or []

    async def fetch_all_open_markets(self, max_pages: int = 5) -> list[MarketSnapshot]:
        """
        Fetch open markets across pages.

        Args:
            max_pages: Page cap (100 markets per page)

        Returns:
            List of open markets
        """
        markets: list[MarketSnapshot] = []
        cursor = None

        for _ in range(max_pages):
            page = await self.get_markets(cursor=cursor, limit=100, status="open")
            markets.extend(page.markets)
            cursor = page.cursor
            if not cursor:
                break

        logger.info(f"Fetched {len(markets)} open markets")
        return markets

    async def load_universe(
        self,
        max_pages: int = 5,
        page_size: int = 100
    ) -> tuple[list[EventGroup], list[MarketSnapshot]]:
        """
        Load open events with nested markets.

        Each market is annotated with its event's ticker and title. A failing
        page stops pagination; whatever loaded before it is returned.

        Args:
            max_pages: Page cap
            page_size: Events per page

        Returns:
            Tuple of (events, flattened markets)
        """
        events: list[EventGroup] = []
        markets: list[MarketSnapshot] = []
        cursor = None

        for page_number in range(max_pages):
            try:
                page = await self.get_events(
                    cursor=cursor,
                    limit=page_size,
                    status="open",
                    with_nested_markets=True
                )
            except KalshiAPIError as e:
                logger.warning(
                    "Event page failed, keeping partial universe",
                    extra={"page": page_number, "error": str(e)}
                )
                break

            for event in page.events:
                event.markets = [
                    replace(m, event_ticker=event.event_ticker, event_title=event.title)
                    for m in event.markets
                ]
                markets.extend(event.markets)
            events.extend(page.events)

            cursor = page.cursor
            if not cursor:
                break

        return events, markets

    def _parse_event(self, data: dict) -> EventGroup:
        """Parse event from API response."""
        return EventGroup(
            event_ticker=data.get("event_ticker", ""),
            title=data.get("title", ""),
            markets=[self._parse_market(m) for m in data.get("markets") or []],
            category=data.get("category")
        )

    def _parse_market(self, data: dict) -> MarketSnapshot:
        """Parse market from API response."""
        return MarketSnapshot(
            ticker=data.get("ticker", ""),
            title=data.get("title", ""),
            status=data.get("status", ""),
            event_ticker=data.get("event_ticker") or None,
            event_title=data.get("event_title") or None,
            last_price=_as_int(data.get("last_price")),
            yes_ask=_as_int(data.get("yes_ask")),
            no_ask=_as_int(data.get("no_ask")),
            volume=_as_int(data.get("volume")),
            open_interest=_as_int(data.get("open_interest")),
            category=data.get("category")
        )

    def _parse_orderbook(self, data: dict) -> OrderBookSnapshot:
        """Parse order book; a null side is an empty side."""
        def levels(raw) -> tuple[OrderBookLevel, ...]:
            parsed = []
            for level in raw or []:
                try:
                    parsed.append(OrderBookLevel(price=int(level[0]), quantity=int(level[1])))
                except (IndexError, TypeError, ValueError):
                    continue
            return tuple(parsed)

        return OrderBookSnapshot(yes=levels(data.get("yes")), no=levels(data.get("no")))

    def _parse_trade(self, data: dict) -> TradeRecord:
        """Parse trade from API response."""
        created_time = None
        created_raw = data.get("created_time")
        if created_raw:
            try:
                created_time = datetime.fromisoformat(created_raw.replace("Z", "+00:00"))
            except (ValueError, TypeError, AttributeError):
                pass

        return TradeRecord(
            trade_id=data.get("trade_id"),
            created_time=created_time,
            taker_side=data.get("taker_side", "yes"),
            yes_price=_as_int(data.get("yes_price")),
            price=_as_int(data.get("price")),
            count=_as_int(data.get("count"))
        )


def _as_int(value: Any) -> Optional[int]:
    """Coerce a numeric API field, None if absent or malformed."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
