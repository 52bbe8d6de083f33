"""Logging configuration for the engineering stats engine.

Log records go to stderr so that JSON written to stdout by the CLI stays
machine-readable at any log level.
"""

import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "eng_stats"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def resolve_level(level: str) -> int:
    """Map a level name (any case) to its numeric value."""
    name = level.strip().upper()
    if name not in LEVELS:
        raise ValueError(f"Unknown log level {level!r}; expected one of {', '.join(LEVELS)}")
    return getattr(logging, name)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure logging for the application.

    The package logger is always set to ``level``, even when the host
    application has already configured the root logger and the handler
    setup below is skipped.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs to
    """
    numeric_level = resolve_level(level)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, handlers=handlers)
    logging.getLogger(PACKAGE_LOGGER).setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)
