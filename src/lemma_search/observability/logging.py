"""Structured JSON logging correlated with the current search or indexing trace."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from enum import Enum
import logging
from pathlib import Path
import sys
from typing import Any

import orjson

from lemma_search.observability.context import get_trace_context


# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

_PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(threadName)s] trace=%(trace_id)s %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Every key of the trace context (``trace_id``, ``site``...) is copied into
    the entry, so all lines of one indexing run or one search request can be
    grouped. Values passed through ``extra=`` are added after redaction.
    """

    SENSITIVE_KEYS = frozenset({"password", "token", "secret", "authorization", "cookie"})
    MAX_MESSAGE_LEN = 2000
    MAX_FIELD_LEN = 500

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": _clip(record.getMessage(), self.MAX_MESSAGE_LEN),
        }
        entry["component"] = record.name.rpartition(".")[2]
        for key, value in get_trace_context().items():
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            entry[key] = "[REDACTED]" if key.lower() in self.SENSITIVE_KEYS else value

        return orjson.dumps(entry, default=self._encode).decode("utf-8")

    def _encode(self, value: Any) -> Any:
        """Fallback for values orjson cannot serialize on its own."""
        if isinstance(value, (set, frozenset)):
            return sorted(value, key=str)
        if isinstance(value, Enum):
            return value.value
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            # Sites and pages: identity fields only, never the stored HTML
            return {
                field.name: getattr(value, field.name)
                for field in dataclasses.fields(value)
                if field.name != "content"
            }
        if isinstance(value, Path):
            return str(value)
        if isinstance(value, BaseException):
            return f"{type(value).__name__}: {value}"
        return _clip(repr(value), self.MAX_FIELD_LEN)


class TraceFilter(logging.Filter):
    """Expose the current trace id to plain-text format strings."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_context()["trace_id"]
        return True


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
    access_log: bool = False,
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Root log level name
        json_output: JSON lines when True, otherwise a plain format with trace id
        logger_levels: Per-logger level overrides (logger name -> level name)
        access_log: Keep uvicorn.access at the root level instead of WARNING
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.addFilter(TraceFilter())
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))
    root.addHandler(handler)

    if not access_log:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    for name, name_level in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(getattr(logging, name_level.upper(), logging.INFO))
