"""
Thread-safe in-memory cache resolving misses through a loader.

This is the thin expiring cache that usually sits in front of a loader
decorated with disk fallback: hits are served from memory, misses and expired
entries are loaded (and kept on disk) by the decorated loader.

Architecture:
    - Thread-safe with threading.Lock guarding the entry table
    - Loads run outside the lock; concurrent misses for one key share one load
    - Optional expiry after write and/or after last access
    - Optional maximum size, evicting the least recently used entry
    - A failing load raises to the caller and caches nothing

Example Usage:
    >>> from datetime import timedelta
    >>> cache = Cache("rates", expire_after_write=timedelta(minutes=5))
    >>> cache.get("EUR/NOK", loader_with_fallback)
    11.52
    >>> cache.invalidate("EUR/NOK")
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from collections.abc import Callable, Hashable
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

from libs.cache_fallback.loader import as_loader, callable_loader
from libs.cache_fallback.locking import Clock, utc_now
from libs.cache_fallback.protocols import Loader

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheStats:
    """Counters describing cache usage since creation."""

    hits: int = 0
    misses: int = 0
    load_successes: int = 0
    load_failures: int = 0
    evictions: int = 0

    @property
    def requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Fraction of requests served from memory, 1.0 when there were none."""
        return self.hits / self.requests if self.requests else 1.0


@dataclass
class _Entry:
    value: Any
    written_at: datetime
    accessed_at: datetime


class Cache(Generic[K, V]):
    """
    In-memory cache with expiry and size bound.

    Attributes:
        name: Cache name used in log messages.
    """

    def __init__(
        self,
        name: str | None = None,
        expire_after_write: timedelta | None = None,
        expire_after_access: timedelta | None = None,
        maximum_size: int | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Initialize the cache.

        Args:
            name: Cache name. Defaults to a random "cache-<uuid>".
            expire_after_write: Entries expire this long after being loaded.
            expire_after_access: Entries expire this long after last being read.
            maximum_size: Maximum number of entries, must be positive.
            clock: Source of the current time.

        Raises:
            ValueError: If maximum_size is not positive.
        """
        if maximum_size is not None and maximum_size <= 0:
            raise ValueError("maximum_size must be positive")

        self.name = name or f"cache-{uuid.uuid4()}"
        self._expire_after_write = expire_after_write
        self._expire_after_access = expire_after_access
        self._maximum_size = maximum_size
        self._clock = clock
        self._entries: OrderedDict[K, _Entry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._load_successes = 0
        self._load_failures = 0
        self._evictions = 0
        self._loading: dict[K, Future[V]] = {}
        logger.info("Creating new cache: %s", self.name, extra={"event": "cache.created"})

    def get(self, key: K, loader: Loader[K, V] | Callable[[K], V]) -> V:
        """
        Return the cached value for key, loading it on a miss.

        Only one load per key runs at a time. Callers missing on a key that is
        already being loaded wait for that load and share its value or its
        exception.

        Args:
            key: Cache key.
            loader: Loader, or ``key -> value`` function, used on a miss.

        Returns:
            The cached or freshly loaded value.

        Raises:
            Exception: Whatever the loader raises; nothing is cached then.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_expired(entry, now):
                del self._entries[key]
                logger.info(
                    "Removing expired entry from %s (key=%r)",
                    self.name,
                    key,
                    extra={"event": "cache.expired"},
                )
                entry = None
            if entry is not None:
                entry.accessed_at = now
                self._entries.move_to_end(key)
                self._hits += 1
                return entry.value
            self._misses += 1
            pending = self._loading.get(key)
            if pending is None:
                pending = Future()
                self._loading[key] = pending
                owner = True
            else:
                owner = False

        if not owner:
            logger.debug(
                "%s waiting for in-flight load of key %r",
                self.name,
                key,
                extra={"event": "cache.load_wait"},
            )
            return pending.result()

        logger.debug("%s resolving value for key %r", self.name, key, extra={"event": "cache.miss"})
        try:
            value = as_loader(loader).load(key)
        except BaseException as e:
            with self._lock:
                self._load_failures += 1
                del self._loading[key]
            pending.set_exception(e)
            raise

        loaded_at = self._clock()
        with self._lock:
            self._entries[key] = _Entry(value, loaded_at, loaded_at)
            self._entries.move_to_end(key)
            self._load_successes += 1
            self._evict_overflow()
            del self._loading[key]
        pending.set_result(value)
        logger.info(
            "Loaded value into %s for key %r",
            self.name,
            key,
            extra={"event": "cache.loaded"},
        )
        return value

    def invalidate(self, *keys: K) -> None:
        """Remove the given keys, ignoring keys not cached."""
        logger.debug("Invalidating specific keys in %s", self.name, extra={"event": "cache.invalidate"})
        with self._lock:
            for key in keys:
                self._entries.pop(key, None)

    def invalidate_all(self) -> None:
        """Remove every entry."""
        logger.debug("Invalidating all in %s", self.name, extra={"event": "cache.invalidate_all"})
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        """Snapshot of the usage counters."""
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                load_successes=self._load_successes,
                load_failures=self._load_failures,
                evictions=self._evictions,
            )

    def __len__(self) -> int:
        """Number of cached entries, including expired ones not yet accessed."""
        with self._lock:
            return len(self._entries)

    def _is_expired(self, entry: _Entry, now: datetime) -> bool:
        if self._expire_after_write is not None and now - entry.written_at >= self._expire_after_write:
            return True
        if (
            self._expire_after_access is not None
            and now - entry.accessed_at >= self._expire_after_access
        ):
            return True
        return False

    def _evict_overflow(self) -> None:
        # Caller holds self._lock
        if self._maximum_size is None:
            return
        while len(self._entries) > self._maximum_size:
            key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.info(
                "Removing entry from %s (key=%r). Cause: size",
                self.name,
                key,
                extra={"event": "cache.evicted"},
            )


class SingleCached(Generic[V]):
    """
    Cache holding a single value, e.g. a full exchange rate table.

    The value is stored under one fixed key in a Cache bounded to one entry.

    Example:
        >>> rates = SingleCached(fetch_rates, expire_after_write=timedelta(minutes=5))
        >>> rates.get()
        {'EUR/NOK': 11.52}
    """

    def __init__(
        self,
        resolver: Loader[str, V] | Callable[[], V],
        name: str | None = None,
        **cache_options: Any,
    ) -> None:
        """
        Initialize the single value cache.

        Args:
            resolver: Zero-argument callable producing the value, or a Loader
                which is passed the cache key.
            name: Cache name. Defaults to a random "single-value-cache-<uuid>".
            **cache_options: expire_after_write, expire_after_access and clock,
                passed on to Cache.
        """
        name = name or f"single-value-cache-{uuid.uuid4()}"
        self._key = f"{name}-cachekey"
        self._resolver: Loader[str, V] = (
            resolver if isinstance(resolver, Loader) else callable_loader(resolver)
        )
        self._cache: Cache[str, V] = Cache(name, maximum_size=1, **cache_options)

    @property
    def name(self) -> str:
        return self._cache.name

    def get(self) -> V:
        """Return the cached value, resolving it when absent or expired."""
        return self._cache.get(self._key, self._resolver)

    def invalidate(self) -> None:
        """Drop the cached value so the next get() resolves it again."""
        self._cache.invalidate_all()

    def stats(self) -> CacheStats:
        return self._cache.stats()
