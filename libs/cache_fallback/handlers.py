"""Handlers for failing fallback keepers.

Writing a fallback value should in general not interfere with returning a
value the primary loader already produced, so the default handler logs the
failure and lets the load succeed. Deployments that require an up-to-date
fallback at all times can use Rethrow instead.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

from libs.cache_fallback.exceptions import FallbackWriteFailedError
from libs.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

KeeperFailurePolicy = Literal["log", "rethrow"]


class FallbackKeeperFailedHandler(Protocol):
    """Called with the key, the loaded value and the keeper's exception."""

    def __call__(self, key: Any, value: Any, cause: Exception) -> None:
        ...


class LogAsError:
    """Logs the keeper failure and lets the loaded value be returned.

    The write is not re-attempted until the next successful primary load for
    the key, so repeated occurrences should be investigated.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logger

    def __call__(self, key: Any, value: Any, cause: Exception) -> None:
        self._logger.error(
            "Failed to write value for key %r to disk for use as fallback because %s: '%s', "
            "but will still return the value from the underlying loader. Writing the fallback "
            "value is not re-attempted until the next successful load.",
            key,
            type(cause).__name__,
            cause,
            exc_info=cause,
            extra={"event": "cache_fallback.keeper.failed", "key": str(key)},
        )


class Rethrow:
    """Fails the load when the fallback value cannot be written."""

    def __call__(self, key: Any, value: Any, cause: Exception) -> None:
        raise FallbackWriteFailedError(key, value) from cause


def handler_for_policy(policy: str) -> FallbackKeeperFailedHandler:
    """Build the handler for a configured keeper failure policy.

    Raises:
        ConfigurationError: If policy is neither "log" nor "rethrow".
    """
    if policy == "log":
        return LogAsError()
    if policy == "rethrow":
        return Rethrow()
    raise ConfigurationError(f"Unknown keeper failure policy: {policy!r}")
