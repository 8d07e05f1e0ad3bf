"""
Scanner Module

Orchestrates relatedness scans and price overlays over a loaded market
universe. The only part of the analytics that performs I/O.
"""
from .scanner import (
    FRAME_COLUMNS,
    NOT_FOUND_STATUS,
    SORT_KEYS,
    CorrelationScanner,
    ScanPhase,
    ScanResult,
    ScanState,
    ScanToken,
    results_frame,
    sort_results,
)
from .related import PriceOverlay, RelatedMarket, RelatedMarkets, RelatedMarketsFinder, build_price_overlay

__all__ = [
    "FRAME_COLUMNS",
    "NOT_FOUND_STATUS",
    "SORT_KEYS",
    "CorrelationScanner",
    "ScanPhase",
    "ScanResult",
    "ScanState",
    "ScanToken",
    "results_frame",
    "sort_results",
    "PriceOverlay",
    "RelatedMarket",
    "RelatedMarkets",
    "RelatedMarketsFinder",
    "build_price_overlay",
]
