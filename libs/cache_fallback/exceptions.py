"""
Exceptions raised by the cache fallback library.

All exceptions extend CacheFallbackError, which in turn extends PlatformError
from libs.common.exceptions. Lock failures share the LockError base so callers
can tell contention bookkeeping problems apart from value I/O problems.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

from libs.common.exceptions import ConfigurationError, PlatformError


class CacheFallbackError(PlatformError):
    """Base exception for cache fallback errors."""

    pass


class FallbackFileNotYetWrittenError(CacheFallbackError):
    """Raised when reading a fallback file that has never been committed.

    This is the expected "empty fallback" condition, e.g. when the primary
    loader has never produced a value for the key. It is deliberately not an
    OSError so it cannot be confused with an unreadable existing file.

    Attributes:
        path: Path of the value file that does not exist yet.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"The fallback file {path} has not been written yet. This happens if the "
            "primary loader has never successfully produced a value for this key."
        )


class FallbackDirectoryError(CacheFallbackError, ConfigurationError):
    """Raised when the fallback directory cannot be used or created.

    Attributes:
        directory: The configured fallback directory.
    """

    def __init__(self, directory: Path, message: str) -> None:
        self.directory = directory
        super().__init__(message)


class FallbackWriteFailedError(CacheFallbackError):
    """Raised by the Rethrow keeper failure handler.

    Attributes:
        key: Cache key whose fallback value could not be written.
        value: Value that was successfully loaded but not persisted.
    """

    def __init__(self, key: Any, value: Any) -> None:
        self.key = key
        self.value = value
        super().__init__(
            f"Writing fallback value for key {key!r} failed, and {value!r}, which was "
            "successfully retrieved from the underlying loader, will not be returned."
        )


class LockError(CacheFallbackError):
    """Base exception for lock marker failures.

    Attributes:
        lock_path: Path to the lock marker.
    """

    def __init__(self, lock_path: Path, message: str) -> None:
        self.lock_path = lock_path
        super().__init__(message)


class UnableToAcquireLockError(LockError):
    """Unexpected I/O error while creating the lock marker.

    Treated as non-acquisition by callers. Should the marker have been created
    after all, it blocks other writers until it expires.
    """

    def __init__(self, lock_path: Path, cause: OSError, expiry: timedelta) -> None:
        super().__init__(
            lock_path,
            f"Got {type(cause).__name__}: '{cause}' when creating lock marker {lock_path}; "
            f"the lock is not yielded. If the marker was created after all, it will block "
            f"other writers until it expires in {expiry}.",
        )


class UnableToReleaseLockError(LockError):
    """Unexpected I/O error while deleting the lock marker.

    The lock cannot be acquired by anyone until it expires.
    """

    def __init__(self, lock_path: Path, cause: OSError, expiry: timedelta) -> None:
        super().__init__(
            lock_path,
            f"Unable to delete lock marker {lock_path} because {type(cause).__name__}: "
            f"'{cause}'. The lock may not be acquired until it expires (expiry time: {expiry}).",
        )


class LockFileMissingError(LockError):
    """The lock marker was already gone when its holder released it.

    Indicates that another process deleted a lock it did not hold, which should
    never happen as long as every writer honors the marker. Most likely the
    holder ran for longer than the expiry window and its lock was reclaimed.
    """

    def __init__(self, lock_path: Path) -> None:
        super().__init__(
            lock_path,
            f"Lock marker {lock_path} was already deleted when releasing it. Another "
            "process removed a lock it did not hold; this indicates a bug or a writer "
            "exceeding the lock expiry.",
        )
