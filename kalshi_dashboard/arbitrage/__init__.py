# Mispricing detection
from .detector import (
    ArbitrageDetector,
    ArbitrageResult,
    ArbitrageSignal,
    EventArbitrage,
    detect_arbitrage,
)

__all__ = [
    "ArbitrageDetector",
    "ArbitrageResult",
    "ArbitrageSignal",
    "EventArbitrage",
    "detect_arbitrage",
]
