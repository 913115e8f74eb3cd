"""
Loader composition and the load/keep/recover orchestration.

LoaderWithFallback wraps a primary loader with a fallback loader. Values the
primary produces are handed to a FallbackKeeper (best effort), and when the
primary fails the fallback loader is asked for the last kept value instead.

State flow for one load:
    LOADING_PRIMARY -> SUCCESS            primary value returned, keep attempted
    LOADING_PRIMARY -> PRIMARY_FAILED
    PRIMARY_FAILED  -> RECOVERED_FROM_DISK  fallback value returned
    PRIMARY_FAILED  -> DOUBLE_FAILURE       primary error raised, fallback error attached

Fallback values never expire: while keeping fails, the fallback keeps
returning the same stale value until a keep succeeds again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from libs.cache_fallback.handlers import FallbackKeeperFailedHandler, LogAsError
from libs.cache_fallback.protocols import FallbackKeeper, Loader

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")
T = TypeVar("T")


class _NoKeeping:
    """Keeper that discards every value."""

    def keep(self, key: Any, value: Any) -> None:
        return None

    def __repr__(self) -> str:
        return "NO_KEEPING"


NO_KEEPING: FallbackKeeper[Any] = _NoKeeping()


class FunctionLoader(Generic[K, V]):
    """Adapts a ``key -> value`` function to the Loader protocol."""

    def __init__(self, fn: Callable[[K], V]) -> None:
        self._fn = fn

    def load(self, key: K) -> V:
        return self._fn(key)


def callable_loader(fn: Callable[[], V]) -> FunctionLoader[Any, V]:
    """Adapt a zero-argument callable to a loader ignoring its key."""
    return FunctionLoader(lambda _key: fn())


def as_loader(loader_or_fn: Loader[K, V] | Callable[[K], V]) -> Loader[K, V]:
    """Return loader objects unchanged and wrap plain functions.

    Raises:
        TypeError: If the argument is neither a loader nor callable.
    """
    if isinstance(loader_or_fn, Loader):
        return loader_or_fn
    if callable(loader_or_fn):
        return FunctionLoader(loader_or_fn)
    raise TypeError(f"Expected a Loader or callable, got {type(loader_or_fn).__name__}")


class TransformingLoader(Generic[K, V, T]):
    """Loader applying a mapping function to another loader's values."""

    def __init__(self, loader: Loader[K, V], mapper: Callable[[V], T]) -> None:
        self._loader = loader
        self._mapper = mapper

    def load(self, key: K) -> T:
        return self._mapper(self._loader.load(key))


def transform(loader: Loader[K, V], mapper: Callable[[V], T]) -> TransformingLoader[K, V, T]:
    """Create a loader mapping every value of ``loader`` through ``mapper``."""
    return TransformingLoader(loader, mapper)


class LoaderWithFallback(Generic[K, V]):
    """Loader falling back to previously kept values when the primary fails.

    Attributes:
        loader: Primary loader.
        fallback_loader: Loader consulted when the primary fails.
        keeper: Receives every value the primary produces.
        failure_handler: Called with ``(key, value, cause)`` when keeping fails.

    Example:
        >>> loader = LoaderWithFallback(
        ...     rates_client,
        ...     DiskFallbackLoader(resolver, marshaller),
        ...     DiskFallbackKeeper(resolver, marshaller),
        ... )
        >>> loader.load("EUR/NOK")
    """

    def __init__(
        self,
        loader: Loader[K, V],
        fallback_loader: Loader[K, V],
        keeper: FallbackKeeper[K] = NO_KEEPING,
        failure_handler: FallbackKeeperFailedHandler | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        """Initialize the orchestrating loader.

        Args:
            loader: Primary loader, typically remote or expensive.
            fallback_loader: Loader returning the last kept value.
            keeper: Keeps primary values for the fallback loader. Defaults to
                keeping nothing.
            failure_handler: Handles keeper failures. Defaults to LogAsError
                writing to ``log``.
            log: Logger for orchestration events. Defaults to this module's.
        """
        self.loader = loader
        self.fallback_loader = fallback_loader
        self.keeper = keeper
        self._logger = log or logger
        self.failure_handler = failure_handler or LogAsError(self._logger)

    def load(self, key: K) -> V:
        """Load a value, preferring the primary loader.

        Raises:
            Exception: The primary loader's exception, when the fallback loader
                fails too. The fallback exception is attached as its
                ``fallback_error`` attribute and summarized in a note.
            FallbackWriteFailedError: If the failure handler rethrows.
        """
        try:
            value = self.loader.load(key)
        except Exception as e:
            primary_error = e
        else:
            self._keep(key, value)
            return value

        return self._recover(key, primary_error)

    def _keep(self, key: K, value: V) -> None:
        try:
            self.keeper.keep(key, value)
        except Exception as e:
            self.failure_handler(key, value, e)

    def _recover(self, key: K, primary_error: Exception) -> V:
        self._logger.warning(
            "Failed to load value from primary loader because %s: '%s'. "
            "Attempting to load fallback value. Enable debug level to see stack trace.",
            type(primary_error).__name__,
            primary_error,
            extra={"event": "cache_fallback.loader.primary_failed", "key": str(key)},
        )
        self._logger.debug("Stack trace for failing primary load:", exc_info=primary_error)

        try:
            value = self.fallback_loader.load(key)
        except Exception as e:
            fallback_error = e
        else:
            self._logger.info(
                "Recovered value for key %r from fallback",
                key,
                extra={"event": "cache_fallback.loader.recovered", "key": str(key)},
            )
            return value

        # Loaders may re-raise one shared instance; the latest fallback error wins
        primary_error.fallback_error = fallback_error  # type: ignore[attr-defined]
        note = f"Loading fallback value also failed: {type(fallback_error).__name__}: {fallback_error}"
        if note not in getattr(primary_error, "__notes__", ()):
            primary_error.add_note(note)
        self._logger.warning(
            "Primary load failed because %s: '%s', and loading fallback value also failed "
            "because %s: '%s'",
            type(primary_error).__name__,
            primary_error,
            type(fallback_error).__name__,
            fallback_error,
            extra={"event": "cache_fallback.loader.double_failure", "key": str(key)},
        )
        raise primary_error
