"""Logging configuration for mbctl.

Owns the mbctl logger configuration (handlers, formatters).
Other modules log through log_event(); Python loggers are singletons by
name, so they all share the same logger instance.

Before configure_logging() runs the logger writes INFO+ to stderr only.
"""

from __future__ import annotations

__all__ = [
    "ISO8601Formatter",
    "configure_logging",
    "log_event",
    "to_logging_level",
]

import json
import logging
from datetime import datetime, timezone

from mbctl.constants import APP_NAME
from mbctl.models import SystemEvent
from mbctl.options import Options

_logger = logging.getLogger(APP_NAME)
_logger.setLevel(logging.INFO)
_logger.propagate = False

# mb level names -> logging levels
_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class _ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname.lower()}: {msg}"
        return f"{record.levelname.lower()}: {record.getMessage()}"


class ISO8601Formatter(logging.Formatter):
    """JSONL formatter with ISO 8601 timestamps (UTC).

    Format: YYYY-MM-DDTHH:MM:SS.sssZ
    Example: 2025-12-04T10:48:37.123Z
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as one JSON line with a leading timestamp."""
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        if isinstance(record.msg, dict):
            log_data = {k: v for k, v in record.msg.items() if k != "time"}
        else:
            log_data = {"message": record.getMessage()}

        log_entry = {"time": timestamp, "level": record.levelname.lower(), **log_data}
        return json.dumps(log_entry, default=str)


if not _logger.handlers:
    _stderr_handler = logging.StreamHandler()
    _stderr_handler.setFormatter(_ConsoleFormatter())
    _logger.addHandler(_stderr_handler)


def to_logging_level(loglevel: str) -> int:
    """Map an mb log level name to a logging level.

    Args:
        loglevel: One of debug, info, warn, error.

    Returns:
        logging level constant (INFO for unknown names).
    """
    return _LEVELS.get(loglevel, logging.INFO)


def configure_logging(options: Options) -> None:
    """Configure mbctl logging for a server process.

    Sets up:
    - stderr handler at --loglevel
    - file handler at --loglevel on --logfile (JSONL), unless --nologfile

    --debug forces debug level on both. Replaces any handlers left from a
    previous call so restart inside one process does not duplicate output.

    Args:
        options: Options for this invocation.
    """
    level = logging.DEBUG if options.debug else to_logging_level(options.loglevel)

    # Close and clear any existing handlers to avoid resource leaks
    for handler in _logger.handlers:
        handler.close()
    _logger.handlers.clear()
    _logger.setLevel(level)

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(_ConsoleFormatter())
    _logger.addHandler(stderr_handler)

    # Suppress uvicorn's logging (we use our own)
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)

    if options.nologfile:
        return

    try:
        options.logfile.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(options.logfile, mode="a", encoding="utf-8")
    except OSError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="file_logging_failed",
                message=f"Cannot open log file {options.logfile}, logging to stderr only",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return

    file_handler.setLevel(level)
    file_handler.setFormatter(ISO8601Formatter())
    _logger.addHandler(file_handler)


def log_event(level: int, event: SystemEvent) -> None:
    """Log a SystemEvent at the specified level.

    Serializes the event to a dict (excluding None values) and logs it.
    The ISO8601Formatter adds the timestamp during serialization.

    Args:
        level: Logging level (e.g., logging.INFO, logging.WARNING).
        event: The event to log.
    """
    _logger.log(level, event.model_dump(exclude_none=True))
