"""Capability protocols for loaders, keepers, marshallers and file naming.

Every component in this library is wired by composition: the orchestration in
LoaderWithFallback only knows these protocols, and the disk implementations
in libs.cache_fallback.disk satisfy them.

Classes:
    Loader: Produces a value for a key, raising on failure.
    FallbackKeeper: Persists a value so a fallback loader can return it later.
    Marshaller: Converts a value to and from a binary stream.
    FileNamingStrategy: Maps a key to a filesystem-safe file name.
    LoaderDecorator: Wraps a loader with additional behavior.
"""

from __future__ import annotations

from typing import BinaryIO, Protocol, TypeVar, runtime_checkable

K = TypeVar("K")
V = TypeVar("V")
K_contra = TypeVar("K_contra", contravariant=True)
V_co = TypeVar("V_co", covariant=True)


@runtime_checkable
class Loader(Protocol[K_contra, V_co]):
    """Loads the value for a key.

    Any exception raised means the value could not be produced.
    """

    def load(self, key: K_contra) -> V_co:
        ...


@runtime_checkable
class FallbackKeeper(Protocol[K_contra]):
    """Keeps successfully loaded values for later fallback use."""

    def keep(self, key: K_contra, value: object) -> object:
        """Persist value for key. Raising signals a failed keep."""
        ...


@runtime_checkable
class Marshaller(Protocol[V]):
    """Serializes values to binary streams and back.

    Implementations must round-trip: ``read(write(x))`` yields a value equal
    to ``x``. They must not close the streams they are given.
    """

    def write(self, value: V, sink: BinaryIO) -> None:
        ...

    def read(self, source: BinaryIO) -> V:
        ...


@runtime_checkable
class FileNamingStrategy(Protocol[K_contra]):
    """Maps cache keys to file names.

    The file name MUST be unique for every key stored in the same directory
    and should only contain characters matching ``[a-z0-9_-]``. It must not
    end with the lock marker suffix.
    """

    def to_filename(self, key: K_contra) -> str:
        ...


class LoaderDecorator(Protocol[K, V]):
    """Extends a loader's behavior using the decorator pattern."""

    def decorate(self, loader: Loader[K, V]) -> Loader[K, V]:
        ...
