"""
Expiring cross-process lock backed by a marker file.

This module implements:
- LockedFile: Non-blocking lock using O_CREAT|O_EXCL on a sibling marker file
- Expiry of abandoned markers based on their modification time

The marker carries no payload and no owner identity. Its existence alone
means a writer is active, or was active within ``max_lock_duration``. A writer
that crashes while holding the lock leaves the marker behind; it is reclaimed
by the first writer that finds it older than the expiry window.

Layout for a value file ``<dir>/<name>``:
    <dir>/<name>                        committed value
    <dir>/<name>.cache_fallback.lock    lock marker
"""

from __future__ import annotations

import datetime
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from libs.cache_fallback.exceptions import (
    LockError,
    LockFileMissingError,
    UnableToAcquireLockError,
    UnableToReleaseLockError,
)

logger = logging.getLogger(__name__)

LOCK_FILE_SUFFIX = ".cache_fallback.lock"
DEFAULT_MAX_LOCK_DURATION = datetime.timedelta(minutes=10)

Clock = Callable[[], datetime.datetime]


def utc_now() -> datetime.datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.datetime.now(datetime.UTC)


class LockedFile:
    """A file guarded by an expiring lock marker.

    Acquisition is a single non-blocking attempt. Writers that do not get the
    lock are expected to skip their write rather than wait for it.

    Attributes:
        max_lock_duration: Age after which a marker is considered abandoned.
    """

    def __init__(
        self,
        path: Path,
        max_lock_duration: datetime.timedelta = DEFAULT_MAX_LOCK_DURATION,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize a locked file.

        Args:
            path: Path of the file protected by the lock.
            max_lock_duration: Maximum time a lock may be held before other
                writers may reclaim it.
            clock: Source of the current time, timezone-aware.
        """
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + LOCK_FILE_SUFFIX)
        self.max_lock_duration = max_lock_duration
        self._clock = clock

    @property
    def path(self) -> Path:
        """Path to the file which may be locked."""
        return self._path

    @property
    def lock_path(self) -> Path:
        """Path to the lock marker."""
        return self._lock_path

    def is_locked(self) -> bool:
        """Check whether a lock marker is present, expired or not."""
        return self._lock_path.exists()

    def try_lock(self) -> bool:
        """Try to acquire the lock without blocking.

        If a marker exists and is older than ``max_lock_duration``, it is
        deleted and acquisition is retried once.

        Returns:
            True if the lock was acquired, False if another writer holds it.

        Raises:
            UnableToAcquireLockError: Creating the marker failed for another
                reason than it already existing.
            UnableToReleaseLockError: An expired marker could not be deleted.
        """
        if self._create_marker():
            return True

        age = self._marker_age()
        if age is None or age <= self.max_lock_duration:
            logger.debug(
                "Lock held by another writer, not yielding lock",
                extra={"event": "cache_fallback.lock.busy", "lock_path": str(self._lock_path)},
            )
            return False

        logger.warning(
            "Lock marker is older than %s and considered abandoned, deleting it. "
            "A writer may have crashed or failed to release its lock.",
            self.max_lock_duration,
            extra={
                "event": "cache_fallback.lock.expired",
                "lock_path": str(self._lock_path),
                "age_seconds": age.total_seconds(),
            },
        )
        self._delete_expired_marker()
        return self._create_marker()

    def release(self) -> None:
        """Release the lock by deleting the marker.

        Raises:
            LockFileMissingError: The marker was already gone.
            UnableToReleaseLockError: The marker could not be deleted.
        """
        try:
            self._lock_path.unlink()
        except FileNotFoundError as e:
            error = LockFileMissingError(self._lock_path)
            logger.error(
                str(error),
                extra={"event": "cache_fallback.lock.missing", "lock_path": str(self._lock_path)},
            )
            raise error from e
        except OSError as e:
            error = UnableToReleaseLockError(self._lock_path, e, self.max_lock_duration)
            logger.error(
                str(error),
                extra={
                    "event": "cache_fallback.lock.release_failed",
                    "lock_path": str(self._lock_path),
                },
            )
            raise error from e

    @contextmanager
    def locked(self) -> Iterator[bool]:
        """Context manager yielding whether the lock was acquired.

        The lock is released on exit only if it was acquired. An I/O error
        during acquisition is logged and yields False. If the body raises, the
        body's exception propagates even when releasing also fails.

        Example:
            with locked_file.locked() as acquired:
                if acquired:
                    write_value()
        """
        try:
            acquired = self.try_lock()
        except UnableToAcquireLockError as e:
            logger.warning(
                str(e),
                extra={
                    "event": "cache_fallback.lock.acquire_failed",
                    "lock_path": str(self._lock_path),
                },
            )
            acquired = False

        if not acquired:
            yield False
            return

        try:
            yield True
        except BaseException:
            try:
                self.release()
            except LockError:
                # Logged by release()
                pass
            raise
        self.release()

    def run_if_locked(self, operation: Callable[[], object]) -> bool:
        """Run operation while holding the lock, if the lock can be acquired.

        Args:
            operation: Called with no arguments while the lock is held.

        Returns:
            True if the operation ran, False if the lock was not available.
        """
        with self.locked() as acquired:
            if acquired:
                operation()
        return acquired

    def _create_marker(self) -> bool:
        """Atomically create the marker. Returns False if it already exists."""
        try:
            fd = os.open(str(self._lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as e:
            raise UnableToAcquireLockError(self._lock_path, e, self.max_lock_duration) from e
        os.close(fd)
        logger.debug(
            "Lock acquired",
            extra={"event": "cache_fallback.lock.acquired", "lock_path": str(self._lock_path)},
        )
        return True

    def _marker_age(self) -> datetime.timedelta | None:
        """Age of the marker, or None if it vanished or cannot be inspected."""
        try:
            mtime = self._lock_path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(
                "Failed to read modification time of lock marker, treating it as not expired",
                extra={
                    "event": "cache_fallback.lock.stat_failed",
                    "lock_path": str(self._lock_path),
                    "error": str(e),
                },
            )
            return None
        modified_at = datetime.datetime.fromtimestamp(mtime, datetime.UTC)
        return self._clock() - modified_at

    def _delete_expired_marker(self) -> None:
        try:
            self._lock_path.unlink()
        except FileNotFoundError:
            logger.info(
                "Expired lock marker already deleted by another writer, continuing normally",
                extra={
                    "event": "cache_fallback.lock.expired_race",
                    "lock_path": str(self._lock_path),
                },
            )
        except OSError as e:
            raise UnableToReleaseLockError(self._lock_path, e, self.max_lock_duration) from e

    def __repr__(self) -> str:
        return f"LockedFile({str(self._path)!r})"
