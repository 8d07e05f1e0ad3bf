# Kalshi clients
from .kalshi_client import EventPage, KalshiAPIError, KalshiClient, MarketPage, TradePage

__all__ = ["KalshiClient", "KalshiAPIError", "EventPage", "MarketPage", "TradePage"]
