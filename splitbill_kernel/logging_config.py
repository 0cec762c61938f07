"""
Structured JSON logging for the bill-splitting core.

Every record is one JSON object per line. Session-scoped fields
(``session_id``, ``correlation_id`` for import batches, ``actor_id``,
``trace_id``) ride along from ``LogContext`` so an engine deep inside a
calculation never has to be handed them.

Amounts are never logged as floats: ``Money`` renders as
``{"amount": "45.90", "currency": "MYR"}``, a bare ``Decimal`` as its
string (``"NaN"`` included), and ``amount_fields`` flattens a set of
amounts into string-valued ``extra`` keys for the engines' event logs.

Usage:
    from splitbill_kernel.logging_config import LogContext, amount_fields, get_logger

    logger = get_logger("engines.split")
    with LogContext.bind_session(session.session_id):
        logger.info("split_calculation_completed", extra=amount_fields(
            total_owed=result.total_owed,
            total_paid=result.total_paid,
        ))
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "amount_fields",
    "to_log_value",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import fields, is_dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from splitbill_kernel.domain.values import Money

_LOGGER_PREFIX = "splitbill"

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

# Emitted in this order ahead of any extra fields
_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"splitbill_log_{name}", default=None)
    for name in ("session_id", "correlation_id", "actor_id", "trace_id")
}


class LogContext:
    """
    contextvars-backed fields stamped onto every record.

    ``correlation_id`` ties together the records of one import batch;
    ``session_id`` those of one calculation run. Safe across threads and
    asyncio tasks.
    """

    FIELD_NAMES: tuple[str, ...] = tuple(_CONTEXT_VARS)

    @staticmethod
    def _var(name: str) -> ContextVar[str | None]:
        try:
            return _CONTEXT_VARS[name]
        except KeyError:
            raise TypeError(f"Unknown log context field: {name!r}") from None

    @classmethod
    def set(cls, **values: str | None) -> None:
        """Set context fields. ``None`` values leave the field untouched."""
        for name, value in values.items():
            var = cls._var(name)
            if value is not None:
                var.set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-None context fields, in field order."""
        return {
            name: value
            for name, var in _CONTEXT_VARS.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **values: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        tokens = []
        for name, value in values.items():
            var = cls._var(name)
            if value is not None:
                tokens.append((var, var.set(str(value))))
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    @classmethod
    def bind_session(cls, session_id: str, actor_id: str | None = None):
        """Scope records to one session calculation."""
        return cls.bind(session_id=session_id, actor_id=actor_id)

    @classmethod
    def bind_batch(cls, batch_id: str):
        """Scope records to one import batch."""
        return cls.bind(correlation_id=batch_id)


# ---------------------------------------------------------------------------
# Value rendering
# ---------------------------------------------------------------------------


def to_log_value(value: Any) -> Any:
    """
    Render ``value`` as something ``json.dumps`` accepts.

    Money becomes an amount/currency dict, Decimal its exact string,
    enums their value, dataclasses a dict of their fields, and tuples
    and sets lists. Anything else unknown falls back to ``str``.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Money):
        return {"amount": str(value.amount), "currency": value.currency.code}
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return to_log_value(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {str(k): to_log_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_log_value(v) for v in value]
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_log_value(getattr(value, f.name)) for f in fields(value)}
    return str(value)


def amount_fields(**amounts: Money | Decimal | None) -> dict[str, str | None]:
    """
    Flatten named amounts into string ``extra`` fields.

    >>> amount_fields(total_sst=Money.of("0.90"))
    {'total_sst': '0.90'}
    """
    rendered: dict[str, str | None] = {}
    for name, value in amounts.items():
        if isinstance(value, Money):
            value = value.amount
        rendered[name] = None if value is None else str(value)
    return rendered


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    def default(self, obj: Any) -> Any:
        return to_log_value(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        payload["exc_code"] = code
    # Typed errors expose their context (field, value, session_id, ...) as attributes
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            payload[f"exc_{name}"] = value
    return payload


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context, extras, exception."""

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
            if key not in _STDLIB_KEYS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``splitbill`` namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Logger:
    """
    Attach a JSON handler to the ``splitbill`` logger.

    Idempotent: later calls return the configured logger untouched. The
    hierarchy does not propagate to the root logger, so host applications
    keep their own formatting.
    """
    global _configured
    base = logging.getLogger(_LOGGER_PREFIX)
    with _lock:
        if _configured:
            return base
        _configured = True

        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
        base.setLevel(level)
        base.propagate = False

        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        base.addHandler(handler)
    return base


def reset_logging() -> None:
    """Drop handlers and forget configuration. Tests only."""
    global _configured
    with _lock:
        _configured = False
        base = logging.getLogger(_LOGGER_PREFIX)
        for handler in list(base.handlers):
            if isinstance(handler.formatter, StructuredFormatter):
                base.removeHandler(handler)
        base.setLevel(logging.WARNING)
