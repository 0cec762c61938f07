"""
Field parsers for stored session records.

This is the Money parsing boundary: everything the engines later trust
(finite positive amounts, real datetimes, tuples of ids) is established
here or rejected with a typed ``SessionDataError``. Nothing is silently
coerced to zero.

Architecture: splitbill_ingestion/domain. ZERO I/O. Imports only from
splitbill_kernel.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from splitbill_kernel.domain.values import DEFAULT_CURRENCY, Money
from splitbill_kernel.exceptions import (
    InvalidAmountError,
    InvalidFieldError,
    InvalidTimestampError,
    MissingFieldError,
)

_TRUE_STRINGS = frozenset({"true", "t", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "f", "0", "no", ""})


def parse_money(
    value: Any,
    field: str,
    currency: str = DEFAULT_CURRENCY,
    require_positive: bool = False,
) -> Money:
    """
    Parse a stored amount into Money rounded to the currency's places.

    Accepts Decimal, int, float (through ``str``) and numeric strings.

    Raises:
        InvalidAmountError: missing, boolean, unparseable, non-finite, too large, or
            not > 0 when ``require_positive``.
    """
    if value is None:
        raise InvalidAmountError(field, value, "missing")
    if isinstance(value, bool):
        raise InvalidAmountError(field, value, "boolean is not an amount")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            raise InvalidAmountError(field, value, "empty")
        try:
            amount = Decimal(text)
        except InvalidOperation as e:
            raise InvalidAmountError(field, value, "not a number") from e
    else:
        raise InvalidAmountError(field, value, f"unsupported type {type(value).__name__}")

    if not amount.is_finite():
        raise InvalidAmountError(field, value, "not finite")

    try:
        money = Money(amount, currency).round()
    except InvalidOperation as e:
        # quantize overflows the context precision
        raise InvalidAmountError(field, value, "out of range") from e

    # Checked after rounding: 0.004 is stored as 0.00
    if require_positive and not money.is_positive:
        raise InvalidAmountError(field, value, "must be greater than zero")
    return money


def parse_optional_money(value: Any, field: str, currency: str = DEFAULT_CURRENCY) -> Money:
    """Like ``parse_money`` but a missing or blank value is zero (cached totals)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return Money.zero(currency)
    return parse_money(value, field, currency)


def parse_timestamp(value: Any, field: str) -> datetime | None:
    """
    Parse an ISO-8601 timestamp; ``None`` or blank yields ``None``.

    A trailing ``Z`` is read as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise InvalidTimestampError(field, value)
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidTimestampError(field, value) from e


def require_text(record: dict[str, Any], field: str, record_type: str) -> str:
    """Required non-blank string field, stripped."""
    value = record.get(field)
    if value is None:
        raise MissingFieldError(field, record_type)
    text = str(value).strip()
    if not text:
        raise MissingFieldError(field, record_type)
    return text


def optional_text(record: dict[str, Any], field: str) -> str | None:
    value = record.get(field)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_flag(value: Any, field: str, default: bool = False) -> bool:
    """Boolean flag; accepts bools, 0/1 and the usual true/false strings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise InvalidFieldError(field, value, "expected a boolean")


def parse_id_list(value: Any, field: str) -> tuple[str, ...]:
    """
    List of participant ids.

    Elements may be plain ids or link rows carrying ``participant_id``
    (the store's ``bill_item_participants`` shape).
    """
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise InvalidFieldError(field, value, "expected a list of participant ids")
    ids: list[str] = []
    for entry in value:
        if isinstance(entry, dict):
            entry = entry.get("participant_id", entry.get("participantId"))
        if entry is None or not str(entry).strip():
            raise InvalidFieldError(field, value, "blank participant id")
        ids.append(str(entry).strip())
    return tuple(ids)
