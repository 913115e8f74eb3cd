"""Tests for keeper failure handlers."""

from __future__ import annotations

import logging
from unittest.mock import Mock

import pytest

from libs.cache_fallback.exceptions import CacheFallbackError, FallbackWriteFailedError
from libs.cache_fallback.handlers import LogAsError, Rethrow, handler_for_policy
from libs.common.exceptions import ConfigurationError


class TestLogAsError:
    def test_logs_error_with_cause(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test the failure is logged at error level including the exception."""
        cause = OSError("No space left on device")

        with caplog.at_level(logging.ERROR, logger="libs.cache_fallback.handlers"):
            LogAsError()("EUR/NOK", 11.52, cause)

        (record,) = caplog.records
        assert record.levelno == logging.ERROR
        assert "EUR/NOK" in record.getMessage()
        assert "No space left on device" in record.getMessage()
        assert record.exc_info is not None and record.exc_info[1] is cause
        assert record.event == "cache_fallback.keeper.failed"  # type: ignore[attr-defined]

    def test_uses_injected_logger(self) -> None:
        log = Mock(spec=logging.Logger)

        LogAsError(log)("k", "v", ValueError("x"))

        log.error.assert_called_once()


class TestRethrow:
    def test_raises_write_failed_with_cause(self) -> None:
        cause = OSError("read-only file system")

        with pytest.raises(FallbackWriteFailedError) as exc_info:
            Rethrow()("k", "v", cause)

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.key == "k"
        assert exc_info.value.value == "v"
        assert isinstance(exc_info.value, CacheFallbackError)


class TestHandlerForPolicy:
    def test_known_policies(self) -> None:
        assert isinstance(handler_for_policy("log"), LogAsError)
        assert isinstance(handler_for_policy("rethrow"), Rethrow)

    def test_unknown_policy_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError, match="ignore"):
            handler_for_policy("ignore")
