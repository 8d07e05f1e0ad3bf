"""
Tests for environment configuration and logging setup.
"""

import json
import logging

import pytest

from kalshi_dashboard.config import load_config
from kalshi_dashboard.utils.logger import get_logger, setup_logging


class TestLoadConfig:
    """Tests for configuration loading."""

    def test_defaults(self, monkeypatch):
        for key in ("KALSHI_API_URL", "SCAN_BATCH_WIDTH", "SCAN_MIN_SCORE", "JSON_LOGGING"):
            monkeypatch.delenv(key, raising=False)

        config = load_config()

        assert config.kalshi.base_url == "https://api.elections.kalshi.com/trade-api/v2"
        assert config.scan.fetch_batch_width == 5
        assert config.scan.enrich_top_k == 15
        assert config.scan.min_score == 0.01
        assert config.logging.json_logging is True

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("KALSHI_API_URL", "https://demo.kalshi.test/v2/")
        monkeypatch.setenv("SCAN_BATCH_WIDTH", "3")
        monkeypatch.setenv("JSON_LOGGING", "false")

        config = load_config()

        assert config.kalshi.base_url == "https://demo.kalshi.test/v2"
        assert config.scan.fetch_batch_width == 3
        assert config.logging.json_logging is False

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("SCAN_BATCH_WIDTH", "five")

        with pytest.raises(ValueError, match="SCAN_BATCH_WIDTH") as exc_info:
            load_config()

        assert exc_info.value.__cause__ is None
        assert exc_info.value.__suppress_context__ is True

    def test_bad_float(self, monkeypatch):
        monkeypatch.setenv("SCAN_MIN_SCORE", "tiny")

        with pytest.raises(ValueError, match="SCAN_MIN_SCORE") as exc_info:
            load_config()

        assert exc_info.value.__suppress_context__ is True


class TestLogging:
    """Tests for structured logging."""

    def test_child_logger_name(self):
        assert get_logger("scanner").name == "kalshi_dashboard.scanner"

    def test_json_output(self, capsys):
        logger = setup_logging(level="DEBUG", json_format=True)
        try:
            get_logger("scanner").info("Scan finished", extra={"scan_id": 7})
            record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        finally:
            logger.handlers = []
            logger.setLevel(logging.NOTSET)

        assert record["message"] == "Scan finished"
        assert record["level"] == "INFO"
        assert record["logger"] == "kalshi_dashboard.scanner"
        assert record["scan_id"] == 7
