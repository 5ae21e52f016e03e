"""Logging utilities for shellwatch.

All package loggers live under the ``shellwatch`` namespace so that callers
embedding the library can tune or silence them with a single logger.
"""

from __future__ import annotations

import logging
from typing import Final, TextIO

ROOT_LOGGER_NAME: Final[str] = "shellwatch"
DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_LEVELS: Final[dict[str, int]] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


def configure_logging(
    level: str = "INFO",
    fmt: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure logging for command-line use.

    Args:
        level: Logging level name (e.g., "INFO", "DEBUG").
        fmt: Optional logging format string. Defaults to a standard structured format.
        stream: Stream for log records; stderr when omitted.
    """

    logging.basicConfig(
        level=normalize_level(level),
        format=fmt or DEFAULT_LOG_FORMAT,
        stream=stream,
    )


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the ``shellwatch`` namespace.

    Names that already start with the namespace are used as given.
    """

    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def normalize_level(level: str) -> int:
    """Map a level name to its numeric value, falling back to INFO."""

    return _LEVELS.get(level.strip().upper(), logging.INFO)
