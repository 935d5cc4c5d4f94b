"""
Structured JSON logging for the labor reporting engine.

Every record under the ``labor_reporting`` namespace is written as one JSON
line.  Fields bound through ``LogContext.bind`` (company, event, batch and
actor ids) are merged into each record emitted inside the block.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "labor_reporting"

_CONTEXT_FIELDS = frozenset({"company_id", "event_id", "batch_id", "actor_id"})
_context: ContextVar[dict[str, str]] = ContextVar("labor_log_context", default={})


class LogContext:
    """Per-task identifiers attached to every structured record."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[dict[str, str]]:
        """
        Merge ``fields`` into the current context for the duration of the
        block.  ``None`` values leave the outer value in place.
        """
        unknown = set(fields) - _CONTEXT_FIELDS
        if unknown:
            raise KeyError(f"Unknown log context field(s): {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield merged
        finally:
            _context.reset(token)


_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return repr(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` keys become top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(
            (k, v) for k, v in vars(record).items()
            if k not in _RESERVED and k not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            # ReportingError subclasses keep their identifiers as attributes
            payload.update(
                (f"exc_{k}", v) for k, v in vars(exc).items()
                if not k.startswith("_") and k != "code"
            )
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``labor_reporting`` logger once."""
    root = logging.getLogger(_LOGGER_PREFIX)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return
    root.setLevel(level)
    root.propagate = False
    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root.addHandler(h)


def reset_logging() -> None:
    """Detach handlers and restore defaults. Used by tests."""
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
