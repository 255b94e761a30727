"""Structured JSON logger.

Every record is a single JSON line:
{"time":"2026-10-18T09:12:01.114-04:00","level":"INFO","source":{"function":"parse_pdf","file":".../parser.py","line":88},"msg":"pdf parsed","pages":2}
"""

import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

# Fields attached to every record emitted in the current context
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.now(timezone.utc).astimezone().isoformat(),
            "level": record.levelname,
            "source": {
                "function": record.funcName,
                "file": record.pathname,
                "line": record.lineno,
            },
            "msg": record.getMessage(),
        }

        entry.update(_log_context.get())

        fields = getattr(record, "fields", None)
        if fields:
            entry.update(fields)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class StructuredLogger:
    """Thin wrapper that turns keyword arguments into JSON fields."""

    def __init__(self, name: str = "bats_server", level: str | None = None):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(
            (level or os.getenv("BATS_LOG_LEVEL", "INFO")).upper()
        )
        self._logger.handlers.clear()

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        self._logger.addHandler(handler)
        self._logger.propagate = False

    def _log(self, level: int, msg: str, exc_info: bool = False, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {"fields": fields} if fields else {}
        # stacklevel 3 points "source" at the caller of debug()/info()/...
        self._logger.log(level, msg, stacklevel=3, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, **fields)

    def warn(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, **fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._log(logging.ERROR, msg, **fields)

    def exception(self, msg: str, **fields: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log(logging.ERROR, msg, exc_info=True, **fields)


def set_context(**fields: Any) -> None:
    """Attach fields to every subsequent record in this context.

    Example:
        set_context(request_id="abc-123", operation="modify")
        logger.info("embedding keywords")  # carries request_id and operation
    """
    _log_context.set({**_log_context.get(), **fields})


def clear_context() -> None:
    _log_context.set({})


def get_context() -> dict[str, Any]:
    return _log_context.get().copy()


@contextmanager
def log_duration(msg: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """Log ``msg`` with ``duration_ms`` once the block finishes.

    The yielded dict can be filled with extra fields inside the block.
    Nothing is logged if the block raises.
    """
    start = time.perf_counter()
    extra: dict[str, Any] = {}
    yield extra
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(msg, **fields, **extra, duration_ms=round(duration_ms, 2))


logger = StructuredLogger("bats_server")
