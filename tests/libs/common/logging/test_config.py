"""Tests for logging configuration.

Tests verify:
- configure_logging sets up JSON logging correctly
- log_with_context adds context fields properly
- cache fallback events come out as structured JSON records
"""

import json
import logging
from io import StringIO

import pytest

from libs.cache_fallback.loader import FunctionLoader, LoaderWithFallback
from libs.common.logging.config import configure_logging, get_logger, log_with_context
from libs.common.logging.formatter import JSONFormatter


class TestConfigureLogging:
    """Test suite for configure_logging."""

    def teardown_method(self) -> None:
        """Clean up logging configuration after each test."""
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(logging.WARNING)

    def test_configure_logging_returns_root_logger(self) -> None:
        """Test that configure_logging returns root logger."""
        logger = configure_logging(service_name="test")

        assert logger is logging.getLogger()

    def test_configure_logging_sets_log_level(self) -> None:
        """Test that configure_logging sets correct log level."""
        logger = configure_logging(service_name="test", log_level="DEBUG")

        assert logger.level == logging.DEBUG

        logger = configure_logging(service_name="test", log_level="info")

        assert logger.level == logging.INFO

    def test_configure_logging_invalid_level_raises_error(self) -> None:
        """Test that invalid log level raises ValueError."""
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(service_name="test", log_level="INVALID")

    def test_configure_logging_removes_existing_handlers(self) -> None:
        """Test that configure_logging removes existing handlers."""
        logger = logging.getLogger()
        dummy_handler = logging.StreamHandler()
        logger.addHandler(dummy_handler)

        configure_logging(service_name="test")

        assert len(logger.handlers) == 1
        assert logger.handlers[0] is not dummy_handler
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_fallback_events_are_logged_as_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a recovered load emits JSON records carrying event names."""
        configure_logging(service_name="rates_service", log_level="INFO")

        def fail(key: str) -> str:
            raise TimeoutError("rates API timed out")

        LoaderWithFallback(FunctionLoader(fail), FunctionLoader(lambda key: "stale")).load("EUR/NOK")

        records = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        events = [record["event"] for record in records]
        assert "cache_fallback.loader.primary_failed" in events
        assert "cache_fallback.loader.recovered" in events
        assert all(record["service"] == "rates_service" for record in records)
        failed = records[events.index("cache_fallback.loader.primary_failed")]
        assert failed["level"] == "WARNING"
        assert failed["context"] == {"key": "EUR/NOK"}
        assert "TimeoutError" in failed["message"]


class TestGetLogger:
    """Test suite for get_logger."""

    def test_get_logger_returns_logger(self) -> None:
        """Test that get_logger returns a logger instance."""
        logger = get_logger("test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "test"

    def test_get_logger_none_returns_root(self) -> None:
        """Test that get_logger(None) returns root logger."""
        assert get_logger(None) is logging.getLogger()


class TestLogWithContext:
    """Test suite for log_with_context."""

    def setup_method(self) -> None:
        """Set up logger for testing."""
        self.stream = StringIO()
        self.logger = logging.getLogger("test_log_with_context")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()

        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(JSONFormatter(service_name="test"))
        self.logger.addHandler(handler)

    def teardown_method(self) -> None:
        """Clean up after test."""
        self.logger.handlers.clear()

    def test_log_with_context_adds_context_fields(self) -> None:
        """Test that log_with_context adds fields to context dict."""
        log_with_context(
            self.logger,
            "INFO",
            "Fallback kept",
            key="EUR/NOK",
            bytes=512,
        )

        log_dict = json.loads(self.stream.getvalue().strip())

        assert log_dict["context"] == {"key": "EUR/NOK", "bytes": 512}

    @pytest.mark.parametrize("level", ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    def test_log_with_context_different_levels(self, level: str) -> None:
        """Test log_with_context with different log levels."""
        log_with_context(self.logger, level, f"Test {level} message", test="value")

        log_dict = json.loads(self.stream.getvalue().strip())

        assert log_dict["level"] == level
        assert log_dict["message"] == f"Test {level} message"
