"""
Configuration module for the Kalshi dashboard backend.
Loads settings from environment variables with validation.
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class KalshiConfig:
    """Upstream API configuration."""
    base_url: str = "https://api.elections.kalshi.com/trade-api/v2"
    request_timeout_seconds: float = 10.0


@dataclass
class ScanConfig:
    """Correlation scan limits."""
    max_event_pages: int = 5  # ~500 events
    event_page_size: int = 100
    max_results: int = 30
    enrich_top_k: int = 15
    fetch_batch_width: int = 5  # Concurrent fetches against upstream
    min_score: float = 0.01
    trade_limit: int = 50


@dataclass
class ServerConfig:
    """Dashboard API server settings."""
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class LogConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    json_logging: bool = True


@dataclass
class Config:
    """Main configuration container."""
    kalshi: KalshiConfig
    scan: ScanConfig
    server: ServerConfig
    logging: LogConfig


def get_env(key: str, default: Optional[str] = None, required: bool = True) -> str:
    """Get environment variable with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value or ""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes")


def get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    value = os.getenv(key, str(default))
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be an integer, got {value!r}") from None


def get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    value = os.getenv(key, str(default))
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {value!r}") from None


def load_config() -> Config:
    """Load and validate configuration from environment."""
    return Config(
        kalshi=KalshiConfig(
            base_url=get_env("KALSHI_API_URL", KalshiConfig.base_url).rstrip("/"),
            request_timeout_seconds=get_env_float("KALSHI_TIMEOUT_SECONDS", 10.0),
        ),
        scan=ScanConfig(
            max_event_pages=get_env_int("SCAN_MAX_PAGES", 5),
            event_page_size=get_env_int("SCAN_PAGE_SIZE", 100),
            max_results=get_env_int("SCAN_MAX_RESULTS", 30),
            enrich_top_k=get_env_int("SCAN_ENRICH_TOP_K", 15),
            fetch_batch_width=get_env_int("SCAN_BATCH_WIDTH", 5),
            min_score=get_env_float("SCAN_MIN_SCORE", 0.01),
            trade_limit=get_env_int("SCAN_TRADE_LIMIT", 50),
        ),
        server=ServerConfig(
            host=get_env("SERVER_HOST", "0.0.0.0", required=False),
            port=get_env_int("SERVER_PORT", 8000),
        ),
        logging=LogConfig(
            log_level=get_env("LOG_LEVEL", "INFO", required=False),
            json_logging=get_env_bool("JSON_LOGGING", True),
        ),
    )
