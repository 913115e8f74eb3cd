"""
Durable value slot with commit-on-close writes.

A FallbackFile holds the last persisted value for one cache key. Values are
written to a private temp file next to the value file and atomically renamed
over it when the writer is closed, so readers see either the previous
complete value or the new complete value, never a mixture. A reader holding
an open handle keeps seeing the content it opened even if the name is
replaced underneath it.

Temp file naming:
    <dir>/<name>.<epoch-millis>.<random-suffix>
"""

from __future__ import annotations

import datetime
import logging
import os
import secrets
import string
import time
from pathlib import Path
from types import TracebackType
from typing import BinaryIO, Generic, TypeVar

from libs.cache_fallback.exceptions import FallbackFileNotYetWrittenError
from libs.cache_fallback.locking import (
    DEFAULT_MAX_LOCK_DURATION,
    Clock,
    LockedFile,
    utc_now,
)
from libs.cache_fallback.protocols import FileNamingStrategy

logger = logging.getLogger(__name__)

K = TypeVar("K")

_TEMP_SUFFIX_LENGTH = 10


def _random_suffix(length: int = _TEMP_SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(string.ascii_lowercase) for _ in range(length))


def _fsync_directory(dir_path: Path) -> None:
    """Sync directory entries to disk so a committed rename survives a crash."""
    try:
        fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except (OSError, AttributeError):
        # Best effort, O_DIRECTORY is unavailable on some platforms
        logger.debug(
            "Failed to fsync directory",
            extra={"event": "cache_fallback.file.dir_fsync_failed", "path": str(dir_path)},
        )


class FallbackFileWriter:
    """Binary sink committing its content to a fallback file on close.

    Closing flushes and fsyncs the temp file, then atomically replaces the
    value file with it. The temp file is removed whatever the outcome.
    Closing twice is a no-op. Used as a context manager, an exception in the
    body discards the write instead of committing it.
    """

    def __init__(self, fallback_file: FallbackFile, temp_path: Path) -> None:
        self._fallback_file = fallback_file
        self._temp_path = temp_path
        # "xb" fails if the temp file exists, so two writers never share one
        self._stream: BinaryIO = open(temp_path, "xb")  # noqa: SIM115
        self._closed = False

    @property
    def temp_path(self) -> Path:
        return self._temp_path

    @property
    def closed(self) -> bool:
        return self._closed

    def writable(self) -> bool:
        return not self._closed

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed fallback file writer")
        return self._stream.write(data)

    def flush(self) -> None:
        if not self._closed:
            self._stream.flush()

    def close(self) -> None:
        """Commit the written content to the value file."""
        if self._closed:
            return
        self._closed = True
        target = self._fallback_file.path
        try:
            try:
                self._stream.flush()
                os.fsync(self._stream.fileno())
            finally:
                self._stream.close()
            logger.debug(
                "Done writing fallback value, committing by renaming %s to %s",
                self._temp_path.name,
                target.name,
                extra={"event": "cache_fallback.file.commit", "directory": str(target.parent)},
            )
            os.replace(self._temp_path, target)
            self._fallback_file._mark_written()
            _fsync_directory(target.parent)
        finally:
            self._remove_temp_file()

    def discard(self) -> None:
        """Abandon the write, leaving the current value file untouched."""
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.close()
        finally:
            self._remove_temp_file()

    def _remove_temp_file(self) -> None:
        try:
            self._temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(
                "Failed to remove temp file %s: %s",
                self._temp_path,
                e,
                extra={"event": "cache_fallback.file.temp_cleanup_failed"},
            )

    def __enter__(self) -> FallbackFileWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self.discard()


class FallbackFile:
    """One persisted fallback value, guarded by a LockedFile.

    Instances are cheap and created per resolution; the filesystem holds the
    state of record. The "written" flag starts as "value file exists" and is
    set once a write commits through this instance.

    Attributes:
        locked_file: Lock guarding writes to this file.
    """

    def __init__(self, locked_file: LockedFile) -> None:
        self.locked_file = locked_file
        self._written = locked_file.path.exists()

    @property
    def path(self) -> Path:
        return self.locked_file.path

    @property
    def was_written(self) -> bool:
        """Whether a value is known to have been committed."""
        return self._written

    def read(self) -> BinaryIO:
        """Open the committed value for reading.

        Returns:
            Binary stream over the value file. The caller closes it.

        Raises:
            FallbackFileNotYetWrittenError: No value has ever been committed.
            FileNotFoundError: A value was committed but the file is gone.
            OSError: The value file exists but cannot be opened.
        """
        try:
            stream = open(self.path, "rb")  # noqa: SIM115
        except FileNotFoundError:
            if not self._written:
                raise FallbackFileNotYetWrittenError(self.path) from None
            raise
        self._written = True
        return stream

    def write(self) -> FallbackFileWriter:
        """Open a writer whose content replaces the value when closed.

        Callers should hold the lock of ``locked_file`` while writing.

        Raises:
            FileExistsError: The generated temp file name is already taken.
            OSError: The temp file cannot be created.
        """
        return FallbackFileWriter(self, self._temp_path())

    def _temp_path(self) -> Path:
        millis = time.time_ns() // 1_000_000
        return self.path.with_name(f"{self.path.name}.{millis}.{_random_suffix()}")

    def _mark_written(self) -> None:
        self._written = True

    def __repr__(self) -> str:
        return f"FallbackFile({str(self.path)!r})"


class Resolver(Generic[K]):
    """Maps cache keys to fallback files inside one directory.

    Distinct keys must map to distinct file names; collisions are not
    detected.
    """

    def __init__(
        self,
        directory: Path,
        naming_strategy: FileNamingStrategy[K],
        max_lock_duration: datetime.timedelta = DEFAULT_MAX_LOCK_DURATION,
        clock: Clock = utc_now,
    ) -> None:
        self.directory = Path(directory)
        self.naming_strategy = naming_strategy
        self.max_lock_duration = max_lock_duration
        self.clock = clock

    def resolve_for(self, key: K) -> FallbackFile:
        path = self.directory / self.naming_strategy.to_filename(key)
        return FallbackFile(LockedFile(path, self.max_lock_duration, self.clock))
