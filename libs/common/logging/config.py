"""Centralized logging configuration.

This module provides standardized logging setup using structured JSON output.
Services embedding the cache fallback library should call configure_logging()
once at startup so lock, keeper and fallback events share one format.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> logger = configure_logging(service_name="rates_service", log_level="INFO")
    >>> logger.info("Service started", extra={"context": {"port": 8000}})
"""

import logging
import sys
from typing import Optional

from libs.common.logging.formatter import JSONFormatter


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    include_context: bool = True,
) -> logging.Logger:
    """Configure structured JSON logging for a service.

    Sets up the root logger with JSON formatted output to stdout at the
    requested level, replacing any handlers installed earlier.

    Args:
        service_name: Name of the service (e.g., "rates_service")
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_context: Whether to include context dict in output

    Returns:
        Configured root logger instance

    Raises:
        ValueError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        JSONFormatter(
            service_name=service_name,
            include_context=include_context,
        )
    )

    root_logger.addHandler(handler)

    return root_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context_fields: object,
) -> None:
    """Log a message with additional context fields.

    Context fields will appear in the "context" dict in JSON output.

    Example:
        >>> logger = get_logger(__name__)
        >>> log_with_context(logger, "INFO", "Fallback kept", key="EUR/NOK", bytes=512)
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra={"context": context_fields})
