"""
Exception hierarchy shared by all libraries in this repository.

Each library defines its own base exception deriving from PlatformError so
callers can catch everything raised by this codebase in one place, while
still telling library-specific failures apart.
"""


class PlatformError(Exception):
    """
    Base exception for all errors raised by this codebase.

    Example:
        >>> try:
        ...     loader.load("rates")
        ... except PlatformError as e:
        ...     logger.error(f"Platform error: {e}")
    """

    pass


class ConfigurationError(PlatformError):
    """
    Raised when configuration is missing, inconsistent or unusable.

    This covers values that pass type validation but cannot be acted upon,
    e.g. a directory setting that points at an existing regular file.

    Example:
        >>> if policy not in ("log", "rethrow"):
        ...     raise ConfigurationError(f"Unknown keeper failure policy: {policy}")
    """

    pass
