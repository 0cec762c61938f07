"""
Typed Exception Hierarchy for the bill-splitting core.

Every error has a typed class and a class-level ``code`` attribute so
callers catch by type and report by code, never by parsing messages.

    SplitBillError (base)
    |
    +-- SessionDataError
    |   +-- InvalidAmountError
    |   +-- MissingFieldError
    |   +-- InvalidTimestampError
    |   +-- InvalidFieldError
    |
    +-- CalculationError
    |   +-- CalculationInvariantError
    |
    +-- ConfigError
        +-- InvalidTaxConfigError

Category     | Code                           | When Raised
-------------|--------------------------------|--------------------------------------
Session data | INVALID_AMOUNT                 | Stored amount unparseable/non-finite/<= 0
             | MISSING_FIELD                  | Required stored field absent or blank
             | INVALID_TIMESTAMP              | Stored date string not ISO-8601
             | INVALID_FIELD                  | Flag or id list of the wrong shape
-------------|--------------------------------|--------------------------------------
Calculation  | CALCULATION_INVARIANT_VIOLATED | Owed != paid or nets don't sum to zero
-------------|--------------------------------|--------------------------------------
Config       | INVALID_TAX_CONFIG             | YAML profile has bad rates or keys

The engines themselves raise none of these for malformed sessions: they
degrade and let ``validate_calculation`` report. An exception escaping an
engine is a programming defect and should fail the enclosing operation.
"""

from __future__ import annotations

from typing import Any


class SplitBillError(Exception):
    """Base exception for all bill-splitting errors."""

    code: str = "SPLIT_BILL_ERROR"


# Session data (ingestion boundary)


class SessionDataError(SplitBillError):
    """Base exception for stored session data that cannot be normalized."""

    code: str = "SESSION_DATA_ERROR"


class InvalidAmountError(SessionDataError):
    """A monetary field could not be parsed into a finite amount."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount for {field}: {value!r} ({reason})")


class MissingFieldError(SessionDataError):
    """A required field is absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str, record_type: str):
        self.field = field
        self.record_type = record_type
        super().__init__(f"Missing required field {field!r} on {record_type}")


class InvalidTimestampError(SessionDataError):
    """A stored date string is not a valid ISO-8601 timestamp."""

    code: str = "INVALID_TIMESTAMP"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Invalid timestamp for {field}: {value!r}")


class InvalidFieldError(SessionDataError):
    """A non-monetary field has the wrong type or shape."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {value!r} ({reason})")


# Calculation


class CalculationError(SplitBillError):
    """Base exception for calculation failures."""

    code: str = "CALCULATION_ERROR"


class CalculationInvariantError(CalculationError):
    """A calculation result failed its balance invariants."""

    code: str = "CALCULATION_INVARIANT_VIOLATED"

    def __init__(self, session_id: str, errors: tuple[Any, ...]):
        self.session_id = session_id
        self.errors = errors
        messages = "; ".join(getattr(e, "message", str(e)) for e in errors)
        super().__init__(f"Calculation for session {session_id} is invalid: {messages}")


# Configuration


class ConfigError(SplitBillError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class InvalidTaxConfigError(ConfigError, ValueError):
    """A tax configuration profile is malformed."""

    code: str = "INVALID_TAX_CONFIG"

    def __init__(self, profile: str, reason: str):
        self.profile = profile
        self.reason = reason
        super().__init__(f"Invalid tax config profile {profile!r}: {reason}")
