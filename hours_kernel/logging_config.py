"""
Structured JSON logging for the flight-hour ledger.

Every ledger module logs through ``get_logger(<layer>.<module>)`` so all
records fall under the ``hours_kernel`` logger tree.  Records are rendered
by StructuredFormatter as one JSON object per line: a fixed envelope
(ts, level, logger, message), the computation context bound through
LogContext, then whatever the call site passed in ``extra``.

Context fields:
    correlation_id   Request id handed in by the calling API layer.
    client_id        Client whose ledger is being computed.
    computation_id   One id per LedgerService call, shared by every engine
                     trace that call produces.
    config_id        Configuration set the engines were built from.
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
import threading
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

LOGGER_ROOT = "hours_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "client_id",
    "computation_id",
    "config_id",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"hours_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name!r}") from None


class LogContext:
    """
    Computation-scoped fields added to every record.

    Values live in ContextVars, so they follow the current thread or task.
    Worker threads see them only when run inside a copied context.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set fields for the rest of the current context.  None is ignored."""
        for name, value in fields.items():
            var = _var(name)
            if value is not None:
                var.set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    def bind(**fields: str | None) -> "_BoundContext":
        """Set fields inside a ``with`` block and restore them afterwards."""
        for name in fields:
            _var(name)
        return _BoundContext(fields)


class _BoundContext:

    def __init__(self, fields: dict[str, str | None]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar[str | None], Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            if value is not None:
                var = _context_vars[name]
                self._tokens.append((var, var.set(value)))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    return repr(obj)


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default, ensure_ascii=False)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        # HoursKernelError subclasses carry a code and structured attributes
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for key, value in vars(exc).items():
            if not key.startswith("_") and key != "code":
                fields[f"exc_{key}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``hours_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``hours_kernel`` tree.

    Only the first call has an effect until ``reset_logging``.  The tree
    does not propagate, so the host application's root handlers never
    receive duplicate ledger records.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(LOGGER_ROOT)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo ``configure_logging``.  Used by the test suite."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(LOGGER_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
