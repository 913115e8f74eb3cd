"""
Disk-backed fallback for cache value loaders.

This module provides:
- LockedFile: Expiring cross-process lock using O_CREAT|O_EXCL marker files
- FallbackFile: Durable value slot with atomic commit-on-close writes
- Resolver: Maps cache keys to fallback files in one directory
- DiskFallbackKeeper / DiskFallbackLoader: Write and read paths on disk
- LoaderWithFallback: Primary load, best-effort keep, recover from fallback
- LoaderWithDiskFallbackDecorator: Wires the above around any loader
- Cache: Thread-safe in-memory expiring cache resolving misses via a loader
- SingleCached: Cache holding one value resolved by a zero-argument callable
"""

from libs.cache_fallback.disk import (
    DiskFallbackKeeper,
    DiskFallbackLoader,
    LoaderWithDiskFallbackDecorator,
)
from libs.cache_fallback.exceptions import (
    CacheFallbackError,
    FallbackDirectoryError,
    FallbackFileNotYetWrittenError,
    FallbackWriteFailedError,
    LockError,
    LockFileMissingError,
    UnableToAcquireLockError,
    UnableToReleaseLockError,
)
from libs.cache_fallback.fallback_file import FallbackFile, FallbackFileWriter, Resolver
from libs.cache_fallback.handlers import (
    FallbackKeeperFailedHandler,
    LogAsError,
    Rethrow,
    handler_for_policy,
)
from libs.cache_fallback.inmemory import Cache, CacheStats, SingleCached
from libs.cache_fallback.loader import (
    NO_KEEPING,
    FunctionLoader,
    LoaderWithFallback,
    TransformingLoader,
    as_loader,
    callable_loader,
    transform,
)
from libs.cache_fallback.locking import (
    DEFAULT_MAX_LOCK_DURATION,
    LOCK_FILE_SUFFIX,
    LockedFile,
    utc_now,
)
from libs.cache_fallback.marshalling import JsonMarshaller, PickleMarshaller, PydanticMarshaller
from libs.cache_fallback.naming import ConstantFileNaming, HashedFileNaming, SanitizedFileNaming
from libs.cache_fallback.protocols import (
    FallbackKeeper,
    FileNamingStrategy,
    Loader,
    LoaderDecorator,
    Marshaller,
)

__all__ = [
    # Protocols
    "Loader",
    "LoaderDecorator",
    "FallbackKeeper",
    "Marshaller",
    "FileNamingStrategy",
    # Lock and files
    "LockedFile",
    "LOCK_FILE_SUFFIX",
    "DEFAULT_MAX_LOCK_DURATION",
    "utc_now",
    "FallbackFile",
    "FallbackFileWriter",
    "Resolver",
    # Disk fallback
    "DiskFallbackKeeper",
    "DiskFallbackLoader",
    "LoaderWithDiskFallbackDecorator",
    # Orchestration
    "LoaderWithFallback",
    "NO_KEEPING",
    "FunctionLoader",
    "TransformingLoader",
    "as_loader",
    "callable_loader",
    "transform",
    # Handlers
    "FallbackKeeperFailedHandler",
    "LogAsError",
    "Rethrow",
    "handler_for_policy",
    # In-memory cache
    "Cache",
    "CacheStats",
    "SingleCached",
    # Stock capabilities
    "PickleMarshaller",
    "JsonMarshaller",
    "PydanticMarshaller",
    "HashedFileNaming",
    "SanitizedFileNaming",
    "ConstantFileNaming",
    # Exceptions
    "CacheFallbackError",
    "FallbackDirectoryError",
    "FallbackFileNotYetWrittenError",
    "FallbackWriteFailedError",
    "LockError",
    "LockFileMissingError",
    "UnableToAcquireLockError",
    "UnableToReleaseLockError",
]
