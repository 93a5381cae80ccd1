"""
Logging setup for table-sync.

Library modules only create loggers. The CLI installs handlers once via
setup_logging(), either as human-readable console lines or as one JSON
object per line for log shippers. Context attached to a record (table,
key column, counts) is printed by both formatters.
"""

import json
import logging
import socket
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

# Attributes every LogRecord has; anything else on a record is caller context
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

# Keyword arguments Logger.log() understands itself
_LOGGER_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

NOISY_LOGGERS = ("urllib3", "requests", "opentelemetry")


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Return the non-standard attributes set on a record through `extra`."""
    return {
        name: value
        for name, value in vars(record).items()
        if name not in _RECORD_ATTRS and not name.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, app_name: str = "table-sync", include_hostname: bool = True):
        super().__init__()
        self.static_fields = {"app": app_name}
        if include_hostname:
            self.static_fields["host"] = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.static_fields,
        }

        context = record_context(record)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    `2024-01-02 03:04:05 [INFO] table_sync.reconcile: message key=value ...`

    Lines are colored by level when writing to a terminal.
    """

    RESET = "\033[0m"
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }

    def __init__(self, use_colors: bool | None = None):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = sys.stderr.isatty() if use_colors is None else use_colors

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = record_context(record)
        if context:
            line += " " + " ".join(f"{name}={value}" for name, value in context.items())
        return line

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        return f"{color}{text}{self.RESET}" if color else text


class ContextLogger(logging.LoggerAdapter):
    """
    Logger carrying fixed context, which also takes context as keyword
    arguments:

        log = ContextLogger(__name__, table="t1")
        log.info("Applied diff", inserted=3)
    """

    def __init__(self, name: str, **context: Any):
        super().__init__(logging.getLogger(name), context)

    def process(self, msg, kwargs):
        fields = {name: kwargs.pop(name) for name in list(kwargs) if name not in _LOGGER_KWARGS}
        kwargs["extra"] = {**self.extra, **fields, **(kwargs.get("extra") or {})}
        return msg, kwargs


def _formatter(json_format: bool, app_name: str, console: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter(app_name=app_name)
    if console:
        return ConsoleFormatter()
    return ConsoleFormatter(use_colors=False)


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
    json_format: bool = False,
    app_name: str = "table-sync",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL; unknown names mean INFO
        log_file: Also write to this file, rotated at `max_bytes`
        console_output: Write to stderr
        json_format: JSON lines instead of console lines
        app_name: `app` field of JSON lines
    """
    handlers: list[logging.Handler] = []

    if console_output:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_formatter(json_format, app_name, console=True))
        handlers.append(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(_formatter(json_format, app_name, console=False))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
