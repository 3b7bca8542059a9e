"""
Logging setup driven by the --log.* options.

Two output modes share one root handler on stdout:
- console lines for humans (level colors when stdout is a terminal)
- one JSON object per line (--log.json) for log shippers

--log.debug adds the caller (function, file:line) to every line, and
--log.verbose / --log.debug lower the level to DEBUG.

Anything passed through `extra={...}` ends up as top-level JSON keys, so
collectors attach the collector name, resource key or status code there
instead of formatting it into the message.

Usage:
    from ado_exporter.core.logging_config import get_logger

    logger = get_logger(__name__)
    logger.warning("project skipped", extra={"collector": "build", "resource": "project:p1"})
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEBUG_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s %(filename)s:%(lineno)d | %(message)s"

# Attributes every LogRecord carries; anything else came in through extra={...}
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys() | {"message", "asctime", "taskName"}
)

# Libraries that log every request at DEBUG/INFO
_HTTP_LOGGERS = ("httpx", "httpcore", "hpack", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, extra fields merged in at the top level."""

    def __init__(self, include_caller: bool = False, include_timestamp: bool = True):
        super().__init__()
        self.include_caller = include_caller
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if self.include_timestamp:
            entry["time"] = datetime.fromtimestamp(record.created, UTC).isoformat().replace("+00:00", "Z")
        if self.include_caller:
            entry["func"] = record.funcName
            entry["file"] = f"{record.filename}:{record.lineno}"
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)

        # log_with_context() nests its fields, plain extra={...} does not
        entry.update(getattr(record, "extra_fields", {}))
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and key != "extra_fields":
                entry[key] = value

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text lines; the level name is colored when writing to a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, stream: TextIO):
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")
        self.use_color = hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_color:
            return super().format(record)

        original = record.levelname
        record.levelname = f"{self.LEVEL_COLORS.get(record.levelno, '')}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(level: str = "INFO", json_output: bool = False, debug: bool = False) -> None:
    """
    Replace the root logger's handlers with a single stdout handler.

    Args:
        level: Root level name ("DEBUG" for --log.verbose / --log.debug)
        json_output: Emit JSON lines instead of console text
        debug: Add caller information and let the HTTP stack log too
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter(include_caller=debug))
    else:
        handler.setFormatter(ConsoleFormatter(DEBUG_CONSOLE_FORMAT if debug else CONSOLE_FORMAT, sys.stdout))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: str, message: str, **context: Any) -> None:
    """
    Log `message` with keyword fields attached.

    Example:
        log_with_context(logger, "info", "starting", organization="myorg", collectors=10)
    """
    getattr(logger, level.lower())(message, extra={"extra_fields": context})
