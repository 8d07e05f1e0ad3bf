"""
Tests for the dashboard API endpoints.
"""

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from kalshi_dashboard.api.server import app, get_client, get_scanner
from kalshi_dashboard.clients.kalshi_client import EventPage, KalshiAPIError, KalshiClient, TradePage
from kalshi_dashboard.models import (
    EventGroup,
    MarketSnapshot,
    OrderBookLevel,
    OrderBookSnapshot,
    TradeRecord,
)
from kalshi_dashboard.scanner import CorrelationScanner

REFERENCE = MarketSnapshot(
    ticker="KXPOPE-A",
    title="Will Cardinal A be the next Pope?",
    event_ticker="KXPOPE",
    event_title="Next Pope",
    last_price=30,
    volume=1000
)
SIBLING = MarketSnapshot(
    ticker="KXPOPE-B",
    title="Will Cardinal B be the next Pope?",
    event_ticker="KXPOPE",
    event_title="Next Pope",
    last_price=90,
    volume=500
)


@pytest.fixture
def mock_client():
    client = AsyncMock(spec=KalshiClient)
    event = EventGroup(event_ticker="KXPOPE", title="Next Pope", markets=[REFERENCE, SIBLING])
    client.load_universe.return_value = ([event], [REFERENCE, SIBLING])
    client.get_market.return_value = REFERENCE
    client.get_orderbook.return_value = OrderBookSnapshot(
        yes=(OrderBookLevel(45, 100),),
        no=(OrderBookLevel(40, 50),)
    )
    client.get_trades.return_value = TradePage(
        trades=[TradeRecord(yes_price=p) for p in [70, 68, 65, 60, 55, 50]]
    )
    return client


@pytest.fixture
def api_client(mock_client):
    """Test client with upstream dependencies replaced."""
    scanner = CorrelationScanner(mock_client)
    app.dependency_overrides[get_client] = lambda: mock_client
    app.dependency_overrides[get_scanner] = lambda: scanner
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestMarketDetail:
    """Tests for the market detail endpoint."""

    def test_health(self, api_client):
        response = api_client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_market_stats(self, api_client, mock_client):
        response = api_client.get("/api/markets/KXPOPE-A")

        assert response.status_code == 200
        body = response.json()
        assert body["market"]["ticker"] == "KXPOPE-A"
        assert body["quick_stats"]["implied_prob"] == "30%"
        assert body["spread"]["spread"] == 15
        assert body["momentum"]["direction"] == "UP"
        assert body["momentum"]["recent_avg"] == 67.7
        assert body["momentum"]["older_avg"] == 55.0
        assert body["momentum"]["magnitude"] == 12.7
        assert body["trade_count"] == 6
        mock_client.get_trades.assert_awaited_once_with("KXPOPE-A", limit=30)

    def test_upstream_failure_is_bad_gateway(self, api_client, mock_client):
        mock_client.get_market.side_effect = KalshiAPIError("/markets/X", 404, "not found")

        response = api_client.get("/api/markets/X")

        assert response.status_code == 502

    def test_events_page(self, api_client, mock_client):
        mock_client.get_events.return_value = EventPage(
            events=[EventGroup(event_ticker="KXPOPE", title="Next Pope", markets=[REFERENCE])],
            cursor="abc"
        )

        response = api_client.get("/api/events")

        assert response.status_code == 200
        body = response.json()
        assert body["cursor"] == "abc"
        assert body["events"][0]["markets"][0]["ticker"] == "KXPOPE-A"


class TestScanEndpoints:
    """Tests for scans, arbitrage and related markets."""

    def test_scan(self, api_client):
        response = api_client.get("/api/scan/KXPOPE-A")

        assert response.status_code == 200
        body = response.json()
        assert body["phase"] == "done"
        assert body["reference"]["ticker"] == "KXPOPE-A"
        assert body["count"] == 1
        assert body["results"][0]["reason"] == "SAME EVENT"

    def test_scan_not_found(self, api_client):
        response = api_client.get("/api/scan/NOPE")

        assert response.status_code == 200
        assert "not found in loaded data" in response.json()["status"]

    def test_scan_bad_sort_key(self, api_client):
        response = api_client.get("/api/scan/KXPOPE-A", params={"sort": "price"})

        assert response.status_code == 400

    def test_arbitrage(self, api_client):
        """30 + 90 sums to 120."""
        response = api_client.get("/api/arbitrage")

        body = response.json()
        assert body["count"] == 1
        assert body["events"][0]["overround"] == 20.0
        assert body["events"][0]["signal"] == "OVERPRICED"

    def test_related(self, api_client):
        response = api_client.get(
            "/api/related/KXPOPE-A",
            params={"title": REFERENCE.title, "event_ticker": "KXPOPE"}
        )

        body = response.json()
        assert body["related"][0]["ticker"] == "KXPOPE-B"
        assert body["status"] == "Found 1 related markets"
        assert body["chart"]["series"] == ["KXPOPE-B"]

    def test_scan_not_found_after_valid_scan(self, api_client):
        found = api_client.get("/api/scan/KXPOPE-A").json()
        assert found["reference"]["ticker"] == "KXPOPE-A"

        response = api_client.get("/api/scan/NOPE")

        body = response.json()
        assert body["reference"] is None
        assert body["results"] == []
        assert body["count"] == 0
        assert body["phase"] == "idle"

    @pytest.mark.asyncio
    async def test_concurrent_scans_keep_their_own_reference(self, mock_client):
        """Two viewers scanning different tickers each get their own results."""
        async def get_trades(ticker, limit=50, cursor=None):
            await asyncio.sleep(0.01)
            return TradePage(trades=[])

        mock_client.get_trades.side_effect = get_trades
        scanner = CorrelationScanner(mock_client)
        app.dependency_overrides[get_client] = lambda: mock_client
        app.dependency_overrides[get_scanner] = lambda: scanner
        try:
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                first, second = await asyncio.gather(
                    http.get("/api/scan/KXPOPE-A"),
                    http.get("/api/scan/KXPOPE-B")
                )
        finally:
            app.dependency_overrides.clear()

        first_body, second_body = first.json(), second.json()
        assert first_body["reference"]["ticker"] == "KXPOPE-A"
        assert second_body["reference"]["ticker"] == "KXPOPE-B"
        assert [r["ticker"] for r in first_body["results"]] == ["KXPOPE-B"]
        assert [r["ticker"] for r in second_body["results"]] == ["KXPOPE-A"]
        assert first_body["phase"] == second_body["phase"] == "done"
        assert first_body["scan_id"] != second_body["scan_id"]
        mock_client.load_universe.assert_awaited_once()


class TestMarketListing:
    """Tests for the open market list and price chart endpoints."""

    def test_open_markets(self, api_client, mock_client):
        mock_client.fetch_all_open_markets.return_value = [REFERENCE, SIBLING]

        response = api_client.get("/api/markets", params={"max_pages": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert body["markets"][1]["ticker"] == "KXPOPE-B"
        mock_client.fetch_all_open_markets.assert_awaited_once_with(max_pages=2)

    def test_open_markets_upstream_failure(self, api_client, mock_client):
        mock_client.fetch_all_open_markets.side_effect = KalshiAPIError("/markets", 503)

        response = api_client.get("/api/markets")

        assert response.status_code == 502

    def test_candlesticks(self, api_client, mock_client):
        mock_client.get_candlesticks.return_value = [{"end_period_ts": 1, "price": {"close": 31}}]

        response = api_client.get("/api/markets/KXPOPE-A/candlesticks", params={"period_interval": 1440})

        assert response.status_code == 200
        body = response.json()
        assert body["ticker"] == "KXPOPE-A"
        assert body["candlesticks"][0]["price"]["close"] == 31
        mock_client.get_candlesticks.assert_awaited_once_with("KXPOPE-A", period_interval=1440)

    def test_candlesticks_upstream_failure(self, api_client, mock_client):
        mock_client.get_candlesticks.side_effect = KalshiAPIError("/markets/X/candlesticks", 404)

        response = api_client.get("/api/markets/X/candlesticks")

        assert response.status_code == 502
