# Utilities
from .logger import setup_logging, get_logger, ScanLogger
from .rounding import round_half_up

__all__ = ["setup_logging", "get_logger", "ScanLogger", "round_half_up"]
