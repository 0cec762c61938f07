"""
Tax configuration value object for Malaysian bill calculations.

The rates are injected into the engines through ``TaxConfig`` so the
fixed Malaysian scheme never appears as a magic number inside the
calculation code. ``splitbill_config`` builds these from YAML profiles;
the engines only ever see the frozen value.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any

from splitbill_kernel.domain.values import DEFAULT_CURRENCY, Currency

DEFAULT_SST_RATE = Decimal("0.06")
DEFAULT_SERVICE_CHARGE_RATE = Decimal("0.10")


class ServiceChargeScope(str, Enum):
    """Who shares an item's service charge."""

    ALL_PARTICIPANTS = "all_participants"  # Venue-wide cost, every participant pays
    ITEM_SHARERS_ONLY = "item_sharers_only"  # Only the item's consumers pay


@dataclass(frozen=True)
class TaxConfig:
    """
    Malaysian tax configuration.

    Contract:
        Frozen value describing which tax terms are active and at what rate.
    Guarantees:
        - Both rates are Decimals within [0, 1].
        - ``currency`` is a registered ISO 4217 code.
    Non-goals:
        - Does not model any tax scheme other than SST plus service charge.
    """

    sst_rate: Decimal = DEFAULT_SST_RATE
    service_charge_rate: Decimal = DEFAULT_SERVICE_CHARGE_RATE
    service_charge_scope: ServiceChargeScope = ServiceChargeScope.ALL_PARTICIPANTS
    sst_enabled: bool = True
    service_charge_enabled: bool = True
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        for name in ("sst_rate", "service_charge_rate"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                value = Decimal(str(value))
                object.__setattr__(self, name, value)
            if not value.is_finite() or value < Decimal("0") or value > Decimal("1"):
                raise ValueError(f"{name} must be between 0 and 1, got {value}")
        if not isinstance(self.service_charge_scope, ServiceChargeScope):
            object.__setattr__(
                self, "service_charge_scope", ServiceChargeScope(self.service_charge_scope)
            )
        object.__setattr__(self, "currency", Currency(self.currency).code)

    @classmethod
    def sst_only(cls) -> TaxConfig:
        """SST without service charge, the shape the legacy split view uses."""
        return cls(service_charge_enabled=False)

    @classmethod
    def from_flags(
        cls,
        sst_rate: Decimal | str = DEFAULT_SST_RATE,
        service_charge_rate: Decimal | str = DEFAULT_SERVICE_CHARGE_RATE,
        apply_service_charge_to_all: bool = True,
    ) -> TaxConfig:
        """Build from the boolean service-charge switch stored by older clients."""
        scope = (
            ServiceChargeScope.ALL_PARTICIPANTS
            if apply_service_charge_to_all
            else ServiceChargeScope.ITEM_SHARERS_ONLY
        )
        return cls(
            sst_rate=Decimal(str(sst_rate)),
            service_charge_rate=Decimal(str(service_charge_rate)),
            service_charge_scope=scope,
        )

    @property
    def apply_service_charge_to_all(self) -> bool:
        return self.service_charge_scope is ServiceChargeScope.ALL_PARTICIPANTS

    @property
    def effective_sst_rate(self) -> Decimal:
        return self.sst_rate if self.sst_enabled else Decimal("0")

    @property
    def effective_service_charge_rate(self) -> Decimal:
        return self.service_charge_rate if self.service_charge_enabled else Decimal("0")

    def with_overrides(self, **changes: Any) -> TaxConfig:
        """Return a copy with some fields replaced; validation runs again."""
        return replace(self, **changes)

    def as_dict(self) -> dict[str, Any]:
        return {
            "sst_rate": str(self.sst_rate),
            "service_charge_rate": str(self.service_charge_rate),
            "service_charge_scope": self.service_charge_scope.value,
            "sst_enabled": self.sst_enabled,
            "service_charge_enabled": self.service_charge_enabled,
            "currency": self.currency,
        }


DEFAULT_TAX_CONFIG = TaxConfig()
