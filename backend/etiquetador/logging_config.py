"""
Centralized logging configuration.

JSON lines in production, human-readable output in debug mode. Request and
batch identifiers bound with ``bind_context`` are attached to every record
logged inside the block, in any module.
"""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from etiquetador.config import get_settings

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message", "context",
}

_log_context: ContextVar[dict[str, Any]] = ContextVar("etiquetador_log_context", default={})


@contextmanager
def bind_context(**values: Any) -> Iterator[dict[str, Any]]:
    """
    Add fields to every record logged inside the block.

    Nested blocks extend the outer context; leaving a block restores it.

    Example:
        with bind_context(request_id="a1b2", batch_rows=120):
            logger.info("[BATCH] ...")  # carries both fields
    """
    merged = {**_log_context.get(), **values}
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)


def current_context() -> dict[str, Any]:
    return dict(_log_context.get())


class ContextFilter(logging.Filter):
    """Copies the bound context onto ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = current_context()
        return True


class JSONFormatter(logging.Formatter):
    """
    Structured JSON log formatter.

    Format:
    {"timestamp": "...", "level": "INFO", "logger": "etiquetador.services", "message": "...",
     "context": {"request_id": "..."}, "extra": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    """Readable format for development; bound context goes after the message."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())
        return line


def setup_logging() -> None:
    """
    Configure the root logger.

    Level comes from Settings.log_level (DEBUG when debug is on).
    """
    settings = get_settings()

    log_level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level)
    formatter = HumanFormatter() if settings.debug else JSONFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    root_logger.addHandler(handler)

    # Quieter third-party libraries
    for name in ("PIL", "httpx", "httpcore", "multipart", "fontTools"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("etiquetador").setLevel(log_level)
