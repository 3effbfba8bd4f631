from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

"""Logging initialization with labeled, timestamped lines.

Every line has the form ``<ISO8601 UTC> - <LABEL> - <message>`` where LABEL
is one of DEBUG|INFO|WARN|ERROR|SUMMARY. Parsers log through module loggers
below the ``labdata_ingest`` logger; callers that need the lines themselves
(a UI log viewer, a per-file log) attach a callback with
``capture_log_lines``.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "CallbackHandler",
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
    "capture_log_lines",
]

LOGGER_NAME = "labdata_ingest"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Render records as ``timestamp - LABEL - message``.

    WARNING is shortened to WARN to match the lab's existing log viewers.
    Exception info, when attached, follows on the next lines.
    """

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        stamp = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds")
        line = f"{stamp.replace('+00:00', 'Z')} - {level_label} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class CallbackHandler(logging.Handler):
    """Forward every formatted line to a callback (the parser log sink)."""

    def __init__(self, callback: Callable[[str], None], level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.callback = callback
        self.setFormatter(LabeledFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.callback(self.format(record))
        except Exception:  # pragma: no cover
            self.handleError(record)


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure the application logger (stdout, labeled format). Idempotent."""
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    _logger = None


@contextmanager
def capture_log_lines(
    callback: Callable[[str], None], level: int = logging.DEBUG
) -> Iterator[CallbackHandler]:
    """Route package log lines to ``callback`` for the duration of the block.

    The package logger level is lowered to ``level`` while capturing so DEBUG
    lines reach the callback; stream handlers keep their own level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    handler = CallbackHandler(callback, level)
    previous_level = logger.level
    if logger.getEffectiveLevel() > level:
        logger.setLevel(level)
    logger.addHandler(handler)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)
