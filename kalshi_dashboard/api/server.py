"""
FastAPI server backing the Kalshi market dashboard.
Serves market detail stats, correlation scans, related-market overlays
and the event arbitrage list as JSON.
"""
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from ..analytics import compute_momentum, compute_spread, quick_stats
from ..clients.kalshi_client import KalshiAPIError, KalshiClient
from ..config import load_config
from ..scanner import SORT_KEYS, CorrelationScanner, RelatedMarketsFinder, sort_results
from ..utils.logger import get_logger, setup_logging

logger = get_logger("server")

# Trades shown on the market detail view
DETAIL_TRADE_LIMIT = 30

config = load_config()

_client: Optional[KalshiClient] = None
_scanner: Optional[CorrelationScanner] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the shared upstream client on shutdown."""
    yield
    if _client is not None:
        await _client.close()


app = FastAPI(title="Kalshi Market Dashboard API", lifespan=lifespan)

# Enable CORS for dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_client() -> KalshiClient:
    """Shared upstream client."""
    global _client
    if _client is None:
        _client = KalshiClient(config.kalshi)
    return _client


def get_scanner(client: KalshiClient = Depends(get_client)) -> CorrelationScanner:
    """Shared scanner holding the loaded universe."""
    global _scanner
    if _scanner is None:
        _scanner = CorrelationScanner(client, config.scan)
    return _scanner


@app.get("/")
async def root():
    """Health check."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/api/events")
async def api_events(
    cursor: Optional[str] = None,
    limit: int = 20,
    status: Optional[str] = "open",
    client: KalshiClient = Depends(get_client)
):
    """One page of events with nested markets."""
    try:
        page = await client.get_events(cursor=cursor, limit=limit, status=status, with_nested_markets=True)
    except KalshiAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return JSONResponse(content={
        "events": [asdict(e) for e in page.events],
        "cursor": page.cursor
    })


@app.get("/api/markets")
async def api_open_markets(max_pages: int = 1, client: KalshiClient = Depends(get_client)):
    """Open markets across up to max_pages pages of 100."""
    try:
        markets = await client.fetch_all_open_markets(max_pages=max_pages)
    except KalshiAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return JSONResponse(content={
        "markets": [asdict(m) for m in markets],
        "count": len(markets)
    })


@app.get("/api/markets/{ticker}")
async def api_market_detail(ticker: str, client: KalshiClient = Depends(get_client)):
    """Market snapshot with quick stats, spread and momentum."""
    try:
        market = await client.get_market(ticker)
        orderbook = await client.get_orderbook(ticker)
        trades = await client.get_trades(ticker, limit=DETAIL_TRADE_LIMIT)
    except KalshiAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))

    spread = compute_spread(orderbook)
    momentum = compute_momentum(trades.trades)
    return JSONResponse(content={
        "market": asdict(market),
        "quick_stats": asdict(quick_stats(market)),
        "spread": asdict(spread) if spread else None,
        "momentum": asdict(momentum) if momentum else None,
        "trade_count": len(trades.trades)
    })


@app.get("/api/markets/{ticker}/candlesticks")
async def api_candlesticks(
    ticker: str,
    period_interval: int = 60,
    client: KalshiClient = Depends(get_client)
):
    """Raw candlesticks for the market price chart."""
    try:
        candles = await client.get_candlesticks(ticker, period_interval=period_interval)
    except KalshiAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return JSONResponse(content={"ticker": ticker, "candlesticks": candles})


@app.get("/api/scan/{ticker}")
async def api_scan(
    ticker: str,
    sort: str = "score",
    descending: bool = True,
    min_score: float = 0.0,
    scanner: CorrelationScanner = Depends(get_scanner)
):
    """Run a correlation scan against a reference ticker."""
    if sort not in SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"sort must be one of {', '.join(SORT_KEYS)}")

    await scanner.ensure_universe()
    state = await scanner.fork().run_scan(ticker)
    results = sort_results(state.results, key=sort, descending=descending, min_score=min_score)
    return JSONResponse(content={
        "scan_id": state.scan_id,
        "phase": state.phase.value,
        "status": state.status,
        "reference": asdict(state.reference) if state.reference else None,
        "results": [r.to_dict() for r in results],
        "count": len(results)
    })


@app.get("/api/arbitrage")
async def api_arbitrage(scanner: CorrelationScanner = Depends(get_scanner)):
    """Events whose markets are mispriced in aggregate."""
    await scanner.ensure_universe()
    events = [
        {
            "event_ticker": a.event_ticker,
            "event_title": a.event_title,
            "market_count": a.result.market_count,
            "total_implied_pct": a.result.total_implied_pct,
            "overround": a.result.overround,
            "signal": a.signal.value
        }
        for a in scanner.arbitrage_results
    ]
    return JSONResponse(content={"events": events, "count": len(events)})


@app.get("/api/related/{ticker}")
async def api_related(
    ticker: str,
    title: str = "",
    event_ticker: Optional[str] = None,
    client: KalshiClient = Depends(get_client)
):
    """Related markets with normalized price overlay."""
    finder = RelatedMarketsFinder(client, trade_limit=config.scan.trade_limit)
    outcome = await finder.find(ticker, title=title, event_ticker=event_ticker)
    overlay = outcome.overlay
    return JSONResponse(content={
        "ticker": ticker,
        "status": outcome.status,
        "related": [
            {**asdict(r.market), "score": r.score, "reason": r.reason, "price_corr": r.price_corr}
            for r in outcome.related
        ],
        "chart": {
            "points": overlay.points if overlay else [],
            "series": overlay.series_keys if overlay else []
        }
    })


def run() -> None:
    """Start the API server."""
    setup_logging(level=config.logging.log_level, json_format=config.logging.json_logging)
    logger.info("Starting dashboard API", extra={"host": config.server.host, "port": config.server.port})
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    run()
