"""
Pure domain layer.

Value objects and session model with NO dependencies on:
- Persistence (remote store, local storage)
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from splitbill_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from splitbill_kernel.domain.dtos import ValidationError, ValidationResult
from splitbill_kernel.domain.session import BillItem, Participant, Session
from splitbill_kernel.domain.tax_config import (
    DEFAULT_SERVICE_CHARGE_RATE,
    DEFAULT_SST_RATE,
    DEFAULT_TAX_CONFIG,
    ServiceChargeScope,
    TaxConfig,
)
from splitbill_kernel.domain.values import DEFAULT_CURRENCY, Currency, Money

__all__ = [
    # Values
    "Currency",
    "Money",
    "DEFAULT_CURRENCY",
    "CurrencyInfo",
    "CurrencyRegistry",
    # Session model
    "Participant",
    "BillItem",
    "Session",
    # Tax configuration
    "TaxConfig",
    "ServiceChargeScope",
    "DEFAULT_TAX_CONFIG",
    "DEFAULT_SST_RATE",
    "DEFAULT_SERVICE_CHARGE_RATE",
    # Validation
    "ValidationError",
    "ValidationResult",
]
