"""
Structured logging for the Kalshi dashboard backend.
Supports JSON logging for log aggregation.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

ROOT_LOGGER = "kalshi_dashboard"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['timestamp'] = self.formatTime(record, self.datefmt)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Whether to emit one JSON object per line
        logger_name: Optional specific logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name or ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger with the given name."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class ScanLogger:
    """Specialized logger for scan lifecycle events."""

    def __init__(self):
        self.logger = get_logger("scans")

    def universe_loaded(self, market_count: int, event_count: int, pages: int):
        """Log when the market universe has been loaded."""
        self.logger.info(
            "Market universe loaded",
            extra={
                "event": "universe_loaded",
                "market_count": market_count,
                "event_count": event_count,
                "pages": pages
            }
        )

    def scan_started(self, scan_id: int, reference: str, candidates: int):
        """Log when a scan begins scoring."""
        self.logger.info(
            "Scan started",
            extra={
                "event": "scan_started",
                "scan_id": scan_id,
                "reference": reference,
                "candidates": candidates
            }
        )

    def reference_not_found(self, scan_id: int, ticker_input: str):
        """Log when the reference ticker is not in the loaded universe."""
        self.logger.warning(
            "Reference market not found",
            extra={
                "event": "reference_not_found",
                "scan_id": scan_id,
                "ticker_input": ticker_input
            }
        )

    def fetch_failed(self, ticker: str, resource: str, error: str):
        """Log when a single enrichment fetch fails."""
        self.logger.warning(
            "Fetch failed, continuing without data",
            extra={
                "event": "fetch_failed",
                "ticker": ticker,
                "resource": resource,
                "error": error
            }
        )

    def scan_completed(self, scan_id: int, reference: str, matches: int, enriched: int, duration_ms: float):
        """Log when a scan finishes."""
        self.logger.info(
            "Scan completed",
            extra={
                "event": "scan_completed",
                "scan_id": scan_id,
                "reference": reference,
                "matches": matches,
                "enriched": enriched,
                "duration_ms": duration_ms
            }
        )

    def scan_superseded(self, scan_id: int):
        """Log when a stale scan's results are discarded."""
        self.logger.info(
            "Scan superseded, discarding results",
            extra={
                "event": "scan_superseded",
                "scan_id": scan_id
            }
        )

    def mispriced_event(self, event_ticker: str, total_implied_pct: float, overround: float):
        """Log an event whose markets are mispriced in aggregate."""
        self.logger.info(
            "Mispriced event",
            extra={
                "event": "mispriced_event",
                "event_ticker": event_ticker,
                "total_implied_pct": total_implied_pct,
                "overround": overround
            }
        )
