"""
Disk-backed fallback: keeper, loader and loader decorator.

This module provides:
- DiskFallbackKeeper: Persists values under the per-key lock, skipping on contention
- DiskFallbackLoader: Reads the last persisted value for a key
- LoaderWithDiskFallbackDecorator: Wraps any loader with disk fallback

Example:
    >>> decorator = LoaderWithDiskFallbackDecorator(
    ...     Path("/var/cache/rates"), HashedFileNaming(), PickleMarshaller()
    ... )
    >>> loader = decorator.decorate(rates_client)
    >>> loader.load("EUR/NOK")  # remote value, or last kept value if remote fails
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Generic, TypeVar

from libs.cache_fallback.exceptions import FallbackDirectoryError
from libs.cache_fallback.fallback_file import Resolver
from libs.cache_fallback.handlers import (
    FallbackKeeperFailedHandler,
    LogAsError,
    handler_for_policy,
)
from libs.cache_fallback.loader import LoaderWithFallback
from libs.cache_fallback.locking import DEFAULT_MAX_LOCK_DURATION, Clock, utc_now
from libs.cache_fallback.protocols import FileNamingStrategy, Loader, Marshaller

if TYPE_CHECKING:
    from config.settings import FallbackSettings

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class DiskFallbackKeeper(Generic[K, V]):
    """Writes loaded values to their fallback files.

    A write only happens if the key's lock can be taken. When another writer
    holds it, an equivalent or newer value is presumably being written, so
    this keep is skipped without error.
    """

    def __init__(self, resolver: Resolver[K], marshaller: Marshaller[V]) -> None:
        self._resolver = resolver
        self._marshaller = marshaller

    def keep(self, key: K, value: V) -> bool:
        """Persist value for key.

        Returns:
            True if the value was written, False if the write was skipped
            because the lock was held elsewhere.

        Raises:
            Exception: Marshalling or I/O errors from the write, and lock
                release errors. Callers route these to a failure handler.
        """
        fallback_file = self._resolver.resolve_for(key)

        def write_value() -> None:
            with fallback_file.write() as sink:
                self._marshaller.write(value, sink)

        kept = fallback_file.locked_file.run_if_locked(write_value)
        if kept:
            logger.debug(
                "Kept fallback value",
                extra={"event": "cache_fallback.keeper.kept", "path": str(fallback_file.path)},
            )
        else:
            logger.debug(
                "Another writer is updating the fallback value, skipping keep",
                extra={"event": "cache_fallback.keeper.skipped", "path": str(fallback_file.path)},
            )
        return kept


class DiskFallbackLoader(Generic[K, V]):
    """Loads the last value kept on disk for a key.

    Raises FallbackFileNotYetWrittenError for keys never kept.
    """

    def __init__(self, resolver: Resolver[K], marshaller: Marshaller[V]) -> None:
        self._resolver = resolver
        self._marshaller = marshaller

    def load(self, key: K) -> V:
        with self._resolver.resolve_for(key).read() as source:
            return self._marshaller.read(source)


class LoaderWithDiskFallbackDecorator(Generic[K, V]):
    """Decorates loaders with a disk fallback in one directory.

    Attributes:
        directory: Directory holding one fallback file per key.
        naming_strategy: Maps keys to file names within ``directory``.
        marshaller: Serializes values to and from the fallback files.
        failure_handler: Handles keeper failures, LogAsError by default.
        max_lock_duration: Age after which an abandoned lock is reclaimed.
    """

    def __init__(
        self,
        directory: Path,
        naming_strategy: FileNamingStrategy[K],
        marshaller: Marshaller[V],
        failure_handler: FallbackKeeperFailedHandler | None = None,
        max_lock_duration: datetime.timedelta = DEFAULT_MAX_LOCK_DURATION,
        clock: Clock = utc_now,
    ) -> None:
        self.directory = Path(directory)
        self.naming_strategy = naming_strategy
        self.marshaller = marshaller
        self.failure_handler = failure_handler or LogAsError()
        self.max_lock_duration = max_lock_duration
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: FallbackSettings,
        naming_strategy: FileNamingStrategy[K],
        marshaller: Marshaller[V],
        clock: Clock = utc_now,
        setup_logging: bool = False,
    ) -> LoaderWithDiskFallbackDecorator[K, V]:
        """Build a decorator from FallbackSettings.

        Args:
            settings: Directory, lock expiry and keeper failure policy.
            naming_strategy: Maps keys to file names.
            marshaller: Serializes values to and from the fallback files.
            clock: Source of the current time.
            setup_logging: Also configure JSON logging from the settings'
                service_name and log_level. Leave off when the embedding
                service configures logging itself.
        """
        if setup_logging:
            settings.setup_logging()
        return cls(
            directory=settings.directory,
            naming_strategy=naming_strategy,
            marshaller=marshaller,
            failure_handler=handler_for_policy(settings.keeper_failure_policy),
            max_lock_duration=datetime.timedelta(minutes=settings.lock_expiry_minutes),
            clock=clock,
        )

    def decorate(self, loader: Loader[K, V]) -> LoaderWithFallback[K, V]:
        """Wrap loader with disk fallback, creating the directory if needed.

        Raises:
            FallbackDirectoryError: If the directory refers to an existing
                non-directory or cannot be created.
        """
        if self.directory.exists() and not self.directory.is_dir():
            raise FallbackDirectoryError(
                self.directory,
                f"{self.directory} should either be non-existing or a directory, "
                "but refers to an existing file.",
            )
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FallbackDirectoryError(
                self.directory,
                f"Unable to prepare the directory to store fallback values: "
                f"{type(e).__name__} '{e}'",
            ) from e

        resolver = Resolver(self.directory, self.naming_strategy, self.max_lock_duration, self.clock)
        return LoaderWithFallback(
            loader,
            DiskFallbackLoader(resolver, self.marshaller),
            DiskFallbackKeeper(resolver, self.marshaller),
            self.failure_handler,
        )
