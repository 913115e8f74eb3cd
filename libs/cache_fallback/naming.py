"""Stock file naming strategies for fallback files.

A naming strategy must map distinct keys to distinct names. Collisions are a
configuration error that is not detected: two keys sharing a file name will
overwrite each other's fallback value.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any

_UNSAFE_CHARS = re.compile(r"[^a-z0-9_-]+")
_SAFE_NAME = re.compile(r"^[a-z0-9_-]+$")


def _check_name(name: str) -> str:
    if not _SAFE_NAME.match(name):
        raise ValueError(f"File name must match [a-z0-9_-]+, got {name!r}")
    return name


class HashedFileNaming:
    """Names files by the SHA256 hex digest of ``str(key)``.

    Collision free for all keys with distinct string representations.

    Example:
        >>> naming = HashedFileNaming(prefix="rates")
        >>> naming.to_filename("EUR/NOK")[:6]
        'rates-'
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = _check_name(prefix) if prefix else ""

    def to_filename(self, key: Any) -> str:
        digest = hashlib.sha256(str(key).encode("utf-8")).hexdigest()
        return f"{self.prefix}-{digest}" if self.prefix else digest


class SanitizedFileNaming:
    """Names files by lowercasing ``str(key)`` and replacing unsafe characters.

    Readable on disk, but only collision free when keys differ in more than
    case and punctuation. Prefer HashedFileNaming for arbitrary keys.

    Example:
        >>> SanitizedFileNaming().to_filename("EUR/NOK")
        'eur_nok'
    """

    def to_filename(self, key: Any) -> str:
        name = _UNSAFE_CHARS.sub("_", str(key).lower()).strip("_")
        if not name:
            raise ValueError(f"Key {key!r} has no file name safe characters")
        return name


class ConstantFileNaming:
    """Maps every key to the same file, for caches holding a single value."""

    def __init__(self, name: str) -> None:
        self.name = _check_name(name)

    def to_filename(self, key: Any) -> str:
        return self.name
