"""
Structured JSON logging for the budget kernel.

Every record is one JSON line.  Services add the fields of the operation
(amounts, ids, counts) through ``extra``; LogContext adds the ambient ones
(correlation, actor, budget, entity) to every record emitted inside it.

Money is logged as a string so no float ever appears in a log line.
Keys reserved by ``logging.LogRecord`` (``created``, ``name``, ``module``
and friends) cannot be used in ``extra``; use ``created_count`` and similar.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

LOGGER_NAMESPACE = "budget_kernel"


class LogContext:
    """
    Ambient fields attached to every kernel log record.

    The fields live in one ContextVar holding an immutable mapping, so a
    ``bind`` block sees its own values and restores the enclosing ones on
    exit, per thread and per asyncio task.
    """

    FIELDS = frozenset({"correlation_id", "actor_id", "budget_id", "entity_id"})

    _fields: ContextVar[Mapping[str, str]] = ContextVar(
        "budget_log_context", default=MappingProxyType({})
    )

    @classmethod
    def _merged(cls, values: dict[str, Any]) -> Mapping[str, str]:
        unknown = set(values) - cls.FIELDS
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        merged = dict(cls._fields.get())
        merged.update({k: str(v) for k, v in values.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **values: Any) -> None:
        """Set fields for the rest of the current context; None leaves a field as is."""
        cls._fields.set(cls._merged(values))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(cls._fields.get())

    @classmethod
    def clear(cls) -> None:
        cls._fields.set(MappingProxyType({}))

    @classmethod
    @contextmanager
    def bind(cls, **values: Any) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block."""
        token = cls._fields.set(cls._merged(values))
        try:
            yield
        finally:
            cls._fields.reset(token)


# LogRecord attributes plus the two the stdlib adds lazily
_RECORD_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (UUID, Enum)):
        return str(getattr(obj, "value", obj))
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RECORD_KEYS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        # Kernel errors carry a machine-readable code plus their constructor fields
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for key, value in vars(exc).items():
            if not key.startswith("_") and key != "code":
                fields[f"exc_{key}"] = value
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger under the budget_kernel namespace, e.g. ``services.ledger``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_installed: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
    force: bool = False,
) -> logging.Handler:
    """
    Install the JSON handler on the budget_kernel logger.

    The first call wins: later calls return the installed handler unchanged
    unless ``force`` is set, in which case the installed handler is replaced
    and the level reset.  Records do not propagate to the root logger.
    """
    global _installed
    kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
    with _lock:
        if _installed is not None and not force:
            return _installed
        if _installed is not None:
            kernel_logger.removeHandler(_installed)

        new_handler = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        new_handler.setFormatter(StructuredFormatter())
        kernel_logger.addHandler(new_handler)
        kernel_logger.setLevel(level)
        kernel_logger.propagate = False
        _installed = new_handler
        return new_handler
