"""Logging setup for WiFi Connect.

Console output is human-readable by default or JSON when structured output
is requested; the optional rotating log file is always JSON. Lines forwarded
from helper processes (dnsmasq) carry a ``process_name`` field and are tagged
with it.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Attributes every LogRecord has; anything else arrived through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Third-party loggers and the most verbose level they may emit at
QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(_extras(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class SimpleFormatter(logging.Formatter):
    """Compact console format, coloured when writing to a terminal.

    ``12:00:01 INFO     [hotspot] Access point created``
    ``12:00:02 WARNING  [process:dnsmasq] dnsmasq: cannot open log``
    """

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "35",
    }

    def __init__(self, use_colors: bool = False) -> None:
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors

    def _source(self, record: logging.LogRecord) -> str:
        source = record.name.rsplit(".", 1)[-1]
        process_name = getattr(record, "process_name", None)
        return f"{source}:{process_name}" if process_name else source

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        color = self.LEVEL_COLORS.get(record.levelno)
        if self.use_colors and color:
            level = f"\033[{color}m{level}\033[0m"

        line = f"{self.formatTime(record, self.datefmt)} {level} [{self._source(record)}] {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _console_handler(log_format: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if log_format == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        use_colors = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
        handler.setFormatter(SimpleFormatter(use_colors=use_colors))
    return handler


def _file_handler(path: str | Path, max_size_mb: int, backup_count: int) -> logging.Handler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(
    level: str = "INFO",
    log_format: str = "simple",
    log_file: str | Path | None = None,
    max_size_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Configure the root logger.

    Safe to call again: earlier handlers are replaced, so the entry point can
    log early with defaults and reconfigure once the config is loaded.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "simple" for console text, "structured" for JSON
        log_file: Optional path of a rotating JSON log file
        max_size_mb: Size at which the log file rotates
        backup_count: Rotated files to keep
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.addHandler(_console_handler(log_format))
    if log_file:
        root.addHandler(_file_handler(log_file, max_size_mb, backup_count))

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name (typically ``__name__``)."""
    return logging.getLogger(name)
