"""
Tests for the Kalshi API client.
"""

import json
from datetime import datetime, timezone

import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from kalshi_dashboard.clients.kalshi_client import KalshiAPIError, KalshiClient
from kalshi_dashboard.config import KalshiConfig


@pytest.fixture
def client():
    return KalshiClient(KalshiConfig(base_url="https://kalshi.test/trade-api/v2/"))


def session_returning(response) -> MagicMock:
    """Session whose get() yields the given response as a context manager."""
    context = MagicMock()
    context.__aenter__.return_value = response
    context.__aexit__.return_value = False
    session = MagicMock()
    session.get.return_value = context
    return session


def event_payload(event_ticker: str, prices: list, cursor: str = "") -> dict:
    """One page holding a single event with nested markets."""
    return {
        "events": [{
            "event_ticker": event_ticker,
            "title": f"Event {event_ticker}",
            "category": "Politics",
            "markets": [
                {"ticker": f"{event_ticker}-{i}", "title": f"Outcome {i}", "last_price": p, "volume": 10}
                for i, p in enumerate(prices)
            ]
        }],
        "cursor": cursor
    }


class TestParsing:
    """Tests for response parsing."""

    def test_parse_market(self, client):
        market = client._parse_market({
            "ticker": "KXPOPE-A",
            "title": "Cardinal A",
            "status": "active",
            "event_ticker": "KXPOPE",
            "last_price": 31,
            "yes_ask": "33",
            "no_ask": None,
            "volume": 1200,
            "open_interest": 400
        })

        assert market.ticker == "KXPOPE-A"
        assert market.last_price == 31
        assert market.yes_ask == 33
        assert market.no_ask is None
        assert market.event_title is None

    def test_malformed_numbers_become_none(self, client):
        market = client._parse_market({"ticker": "T", "last_price": "n/a", "volume": True})

        assert market.last_price is None
        assert market.volume is None

    def test_parse_orderbook_null_side(self, client):
        book = client._parse_orderbook({"yes": [[45, 100], [44, 20]], "no": None})

        assert [level.price for level in book.yes] == [45, 44]
        assert book.no == ()
        assert book.depth == 2

    def test_parse_orderbook_skips_bad_levels(self, client):
        book = client._parse_orderbook({"yes": [[45], [44, 20]], "no": [["x", 1]]})

        assert len(book.yes) == 1
        assert book.no == ()

    def test_parse_trade(self, client):
        trade = client._parse_trade({
            "trade_id": "abc",
            "created_time": "2024-05-01T12:00:00Z",
            "taker_side": "no",
            "yes_price": 62,
            "no_price": 38,
            "count": 5
        })

        assert trade.created_time == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert trade.taker_side == "no"
        assert trade.effective_price == 62
        assert trade.count == 5

    def test_parse_trade_bad_timestamp(self, client):
        trade = client._parse_trade({"created_time": "yesterday", "price": 40})

        assert trade.created_time is None
        assert trade.effective_price == 40


class TestEndpoints:
    """Tests for endpoint wrappers."""

    @pytest.mark.asyncio
    async def test_get_events_empty_cursor_is_none(self, client):
        with patch.object(client, "_request", new=AsyncMock(return_value=event_payload("KXPOPE", [30, 20]))):
            page = await client.get_events(limit=5, status="open", with_nested_markets=True)

            client._request.assert_awaited_once_with(
                "/events",
                params={"cursor": None, "limit": 5, "status": "open", "with_nested_markets": "true"}
            )

        assert page.cursor is None
        assert page.events[0].category == "Politics"
        assert len(page.events[0].markets) == 2

    @pytest.mark.asyncio
    async def test_get_trades(self, client):
        payload = {"trades": [{"yes_price": 55}, {"yes_price": 50}], "cursor": "next"}
        with patch.object(client, "_request", new=AsyncMock(return_value=payload)):
            page = await client.get_trades("KXPOPE-A", limit=2)

            client._request.assert_awaited_once_with(
                "/markets/trades",
                params={"ticker": "KXPOPE-A", "cursor": None, "limit": 2}
            )

        assert [t.yes_price for t in page.trades] == [55, 50]
        assert page.cursor == "next"

    @pytest.mark.asyncio
    async def test_candlesticks_fall_back_to_market_endpoint(self, client):
        request = AsyncMock(side_effect=[
            KalshiAPIError("/series/T/markets/T/candlesticks", 404),
            {"candlesticks": [{"end_period_ts": 1}]}
        ])
        with patch.object(client, "_request", new=request):
            candles = await client.get_candlesticks("T")

        assert candles == [{"end_period_ts": 1}]
        assert request.await_args_list[1].args[0] == "/markets/T/candlesticks"

    @pytest.mark.asyncio
    async def test_fetch_all_open_markets_follows_cursor(self, client):
        pages = [
            {"markets": [{"ticker": "A"}], "cursor": "c1"},
            {"markets": [{"ticker": "B"}], "cursor": ""},
        ]
        with patch.object(client, "_request", new=AsyncMock(side_effect=pages)):
            markets = await client.fetch_all_open_markets(max_pages=5)

        assert [m.ticker for m in markets] == ["A", "B"]


class TestLoadUniverse:
    """Tests for paginated universe loading."""

    @pytest.mark.asyncio
    async def test_annotates_markets_with_event(self, client):
        pages = [
            event_payload("KXPOPE", [30, 20], cursor="page2"),
            event_payload("KXFED", [60]),
        ]
        request = AsyncMock(side_effect=pages)
        with patch.object(client, "_request", new=request):
            events, markets = await client.load_universe(max_pages=5, page_size=100)

        assert [e.event_ticker for e in events] == ["KXPOPE", "KXFED"]
        assert [m.ticker for m in markets] == ["KXPOPE-0", "KXPOPE-1", "KXFED-0"]
        assert markets[0].event_ticker == "KXPOPE"
        assert markets[0].event_title == "Event KXPOPE"
        assert events[0].markets[1].event_title == "Event KXPOPE"
        assert request.await_args_list[1].kwargs["params"]["cursor"] == "page2"

    @pytest.mark.asyncio
    async def test_page_cap(self, client):
        request = AsyncMock(side_effect=[
            event_payload("KXA", [50], cursor="more"),
            event_payload("KXB", [50], cursor="more"),
        ])
        with patch.object(client, "_request", new=request):
            events, _ = await client.load_universe(max_pages=2)

        assert len(events) == 2
        assert request.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_page_keeps_partial(self, client):
        request = AsyncMock(side_effect=[
            event_payload("KXPOPE", [30, 20], cursor="page2"),
            KalshiAPIError("/events", 503, "unavailable"),
        ])
        with patch.object(client, "_request", new=request):
            events, markets = await client.load_universe(max_pages=5)

        assert [e.event_ticker for e in events] == ["KXPOPE"]
        assert len(markets) == 2


class TestRequestErrors:
    """Tests for upstream failure wrapping."""

    def test_error_message(self):
        assert str(KalshiAPIError("/events", 500, "oops")) == "/events: HTTP 500: oops"
        assert str(KalshiAPIError("/events")) == "/events: request failed"

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, client):
        session = MagicMock()
        session.get.side_effect = aiohttp.ClientConnectionError("refused")
        client._session = session

        with pytest.raises(KalshiAPIError) as exc_info:
            await client.get_market("KXPOPE-A")

        assert exc_info.value.endpoint == "/markets/KXPOPE-A"
        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_error_status_raises(self, client):
        response = MagicMock(status=503)
        response.text = AsyncMock(return_value="service unavailable")
        context = MagicMock()
        context.__aenter__.return_value = response
        context.__aexit__.return_value = False
        session = MagicMock()
        session.get.return_value = context
        client._session = session

        with pytest.raises(KalshiAPIError) as exc_info:
            await client.get_orderbook("KXPOPE-A")

        assert exc_info.value.status == 503
        session.get.assert_called_once_with(
            "https://kalshi.test/trade-api/v2/markets/KXPOPE-A/orderbook",
            params={}
        )

    @pytest.mark.asyncio
    async def test_malformed_json_wrapped(self, client):
        response = MagicMock(status=200)
        response.json = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "<html>", 0))
        client._session = session_returning(response)

        with pytest.raises(KalshiAPIError) as exc_info:
            await client.get_trades("KXPOPE-A")

        assert exc_info.value.status == 200
        assert "malformed JSON" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_object_body_wrapped(self, client):
        response = MagicMock(status=200)
        response.json = AsyncMock(return_value=[{"ticker": "KXPOPE-A"}])
        client._session = session_returning(response)

        with pytest.raises(KalshiAPIError, match="expected a JSON object, got list"):
            await client.get_orderbook("KXPOPE-A")
