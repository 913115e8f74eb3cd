"""Tests for FallbackSettings environment loading and validation."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from pydantic import ValidationError

from config.settings import FallbackSettings, get_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in (
        "CACHE_FALLBACK_DIRECTORY",
        "CACHE_FALLBACK_LOCK_EXPIRY_MINUTES",
        "CACHE_FALLBACK_KEEPER_FAILURE_POLICY",
        "CACHE_FALLBACK_SERVICE_NAME",
        "CACHE_FALLBACK_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestFallbackSettings:
    def test_defaults(self) -> None:
        settings = FallbackSettings(_env_file=None)

        assert settings.directory == Path("data/cache_fallback")
        assert settings.lock_expiry_minutes == 10
        assert settings.keeper_failure_policy == "log"
        assert settings.service_name == "cache_fallback"
        assert settings.log_level == "INFO"

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("CACHE_FALLBACK_DIRECTORY", str(tmp_path))
        monkeypatch.setenv("CACHE_FALLBACK_LOCK_EXPIRY_MINUTES", "3")
        monkeypatch.setenv("CACHE_FALLBACK_KEEPER_FAILURE_POLICY", "rethrow")

        settings = FallbackSettings(_env_file=None)

        assert settings.directory == tmp_path
        assert settings.lock_expiry_minutes == 3
        assert settings.keeper_failure_policy == "rethrow"

    def test_log_level_is_normalized(self) -> None:
        assert FallbackSettings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="log_level"):
            FallbackSettings(_env_file=None, log_level="verbose")

    @pytest.mark.parametrize("minutes", [0, 1441])
    def test_lock_expiry_bounds(self, minutes: int) -> None:
        with pytest.raises(ValidationError):
            FallbackSettings(_env_file=None, lock_expiry_minutes=minutes)

    def test_unknown_failure_policy_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CACHE_FALLBACK_KEEPER_FAILURE_POLICY", "ignore")

        with pytest.raises(ValidationError):
            FallbackSettings(_env_file=None)


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()


class TestSetupLogging:
    def teardown_method(self) -> None:
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(logging.WARNING)

    def test_configures_json_logging_from_settings(self, capsys: pytest.CaptureFixture[str]) -> None:
        settings = FallbackSettings(_env_file=None, service_name="rates_service", log_level="debug")

        logger = settings.setup_logging()
        logging.getLogger("libs.cache_fallback").debug("Lock acquired")

        assert logger.level == logging.DEBUG
        record = json.loads(capsys.readouterr().out.strip())
        assert record["service"] == "rates_service"
        assert record["level"] == "DEBUG"
