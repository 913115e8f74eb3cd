"""Tests for JSON log formatter.

Tests verify that logs are formatted correctly with:
- Required schema fields (timestamp, level, service, logger, event, message)
- Optional context fields
- Exception information, including notes added to the exception
- Source location
"""

import json
import logging
import sys
from datetime import UTC, datetime

import pytest

from libs.common.logging.formatter import JSONFormatter


def _record(msg: str = "Test", level: int = logging.INFO, **kwargs: object) -> logging.LogRecord:
    return logging.LogRecord(
        name="libs.cache_fallback.loader",
        level=level,
        pathname="/path/to/file.py",
        lineno=42,
        msg=msg,
        args=kwargs.pop("args", ()),  # type: ignore[arg-type]
        exc_info=kwargs.pop("exc_info", None),  # type: ignore[arg-type]
    )


class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    @pytest.fixture
    def formatter(self) -> JSONFormatter:
        """Create a JSONFormatter instance for testing."""
        return JSONFormatter(service_name="rates_service")

    def test_basic_log_format(self, formatter: JSONFormatter) -> None:
        """Test that basic log is formatted as valid JSON with required fields."""
        record = _record("Kept fallback value")
        record.event = "cache_fallback.keeper.kept"

        log_dict = json.loads(formatter.format(record))

        assert "timestamp" in log_dict
        assert log_dict["level"] == "INFO"
        assert log_dict["service"] == "rates_service"
        assert log_dict["logger"] == "libs.cache_fallback.loader"
        assert log_dict["event"] == "cache_fallback.keeper.kept"
        assert log_dict["message"] == "Kept fallback value"

    def test_missing_event(self, formatter: JSONFormatter) -> None:
        """Test that event is None when not set."""
        log_dict = json.loads(formatter.format(_record()))

        assert log_dict["event"] is None
        assert "context" not in log_dict

    def test_timestamp_format(self, formatter: JSONFormatter) -> None:
        """Test that timestamp is formatted as ISO 8601 in UTC."""
        log_dict = json.loads(formatter.format(_record()))

        timestamp = log_dict["timestamp"]
        assert timestamp.endswith("Z")
        dt = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        assert dt.tzinfo == UTC

    def test_context_inclusion(self, formatter: JSONFormatter) -> None:
        """Test that context dict is included in output."""
        record = _record()
        record.context = {"key": "EUR/NOK", "bytes": 512}

        log_dict = json.loads(formatter.format(record))

        assert log_dict["context"] == {"key": "EUR/NOK", "bytes": 512}

    def test_no_context_when_disabled(self) -> None:
        """Test that context is not included when include_context=False."""
        formatter = JSONFormatter(service_name="test", include_context=False)
        record = _record()
        record.context = {"key": "EUR/NOK"}

        log_dict = json.loads(formatter.format(record))

        assert "context" not in log_dict

    def test_extra_fields_as_context(self, formatter: JSONFormatter) -> None:
        """Test that extra fields are included in context, event is not."""
        record = _record()
        record.event = "cache_fallback.lock.reclaimed"
        record.path = "/var/cache/rates/eur_nok.cache_fallback.lock"

        log_dict = json.loads(formatter.format(record))

        assert log_dict["context"] == {"path": "/var/cache/rates/eur_nok.cache_fallback.lock"}

    def test_attributes_set_by_other_formatters_not_in_context(
        self, formatter: JSONFormatter
    ) -> None:
        """Test message and asctime from an earlier formatter do not leak into context."""
        record = _record("Kept %s", args=("EUR/NOK",))
        logging.Formatter("%(asctime)s %(message)s").format(record)

        log_dict = json.loads(formatter.format(record))

        assert hasattr(record, "asctime")
        assert "context" not in log_dict
        assert log_dict["message"] == "Kept EUR/NOK"

    def test_non_serializable_context_uses_str(self, formatter: JSONFormatter) -> None:
        """Test that values json cannot encode are stringified."""
        record = _record()
        record.context = {"as_of": datetime(2025, 1, 15, tzinfo=UTC)}

        log_dict = json.loads(formatter.format(record))

        assert log_dict["context"]["as_of"].startswith("2025-01-15")

    def test_exception_logging(self, formatter: JSONFormatter) -> None:
        """Test that exceptions are properly formatted, notes included."""
        try:
            error = ConnectionError("rates API down")
            error.add_note("Loading fallback value also failed: FallbackFileNotYetWrittenError")
            raise error
        except ConnectionError:
            exc_info = sys.exc_info()

        log_dict = json.loads(
            formatter.format(_record("Load failed", logging.ERROR, exc_info=exc_info))
        )

        assert log_dict["exception"]["type"] == "ConnectionError"
        assert log_dict["exception"]["message"] == "rates API down"
        assert "ConnectionError" in log_dict["exception"]["traceback"]
        assert "FallbackFileNotYetWrittenError" in log_dict["exception"]["traceback"]

    def test_source_location(self, formatter: JSONFormatter) -> None:
        """Test that source location is included."""
        record = _record()
        record.funcName = "keep"

        log_dict = json.loads(formatter.format(record))

        assert log_dict["source"] == {"file": "/path/to/file.py", "line": 42, "function": "keep"}

    @pytest.mark.parametrize(
        "level_name", ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    def test_different_log_levels(self, formatter: JSONFormatter, level_name: str) -> None:
        """Test formatting with different log levels."""
        record = _record(f"Test {level_name}", getattr(logging, level_name))

        log_dict = json.loads(formatter.format(record))

        assert log_dict["level"] == level_name
        assert log_dict["message"] == f"Test {level_name}"

    def test_message_with_args(self, formatter: JSONFormatter) -> None:
        """Test formatting message with string substitution."""
        record = _record("Removing entry from %s (key=%r)", args=("rates", "EUR/NOK"))

        log_dict = json.loads(formatter.format(record))

        assert log_dict["message"] == "Removing entry from rates (key='EUR/NOK')"
