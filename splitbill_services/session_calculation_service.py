"""
splitbill_services.session_calculation_service -- calculate, validate and settle a session.

Responsibility:
    Run the full calculation for one session snapshot: split balances,
    invariant validation, settle-up transfers, and refreshed participant
    cached totals. This is the only layer that combines the engines with
    configuration.

Architecture position:
    Services -- orchestration over engines + kernel + config.
    Performs no persistence; callers store the refreshed session.

Invariants enforced:
    - Cached participant totals in the outcome always equal the
      recomputation from the session's current items.
    - In strict mode an invalid calculation never yields an outcome.

Failure modes:
    - CalculationInvariantError (strict mode) when ``validate_calculation``
      reports errors.
    - FileNotFoundError / InvalidTaxConfigError from ``from_profile``.

Audit relevance:
    Every run is logged under ``LogContext.bind_session(...)`` with the
    tax config, transfer count and validation outcome.

Usage:
    from splitbill_services import SessionCalculationService

    service = SessionCalculationService.from_profile("malaysia")
    outcome = service.run(session)
    for transfer in outcome.transfers:
        print(transfer.description)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from pathlib import Path

from splitbill_config import get_tax_config
from splitbill_engines.settlement import (
    PaymentInstructions,
    SettlementPolicy,
    SettlementTransfer,
    calculate_payment_instructions,
    generate_settlement_transfers,
)
from splitbill_engines.split import (
    CalculationResult,
    SplitEngine,
    refresh_participant_totals,
    validate_calculation,
)
from splitbill_engines.tax import (
    MalaysianTaxCalculator,
    TaxCalculationResult,
    taxable_items_from_session,
)
from splitbill_kernel.domain.dtos import ValidationResult
from splitbill_kernel.domain.session import Session
from splitbill_kernel.domain.tax_config import DEFAULT_TAX_CONFIG, TaxConfig
from splitbill_kernel.exceptions import CalculationInvariantError
from splitbill_kernel.logging_config import LogContext, amount_fields, get_logger

logger = get_logger("services.session_calculation")


@dataclass(frozen=True)
class SessionCalculationOutcome:
    """Everything one calculation run produced."""

    session: Session
    result: CalculationResult
    transfers: tuple[SettlementTransfer, ...]
    validation: ValidationResult

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid


class SessionCalculationService:
    """
    Calculate sessions under one tax configuration and settlement policy.

    Stateless between runs; safe to share.
    """

    def __init__(
        self,
        tax_config: TaxConfig = DEFAULT_TAX_CONFIG,
        settlement_policy: SettlementPolicy = SettlementPolicy.LARGEST_FIRST,
        strict: bool = False,
    ) -> None:
        self._tax_config = tax_config
        self._settlement_policy = SettlementPolicy(settlement_policy)
        self._strict = strict
        self._split_engine = SplitEngine(tax_config)

    @classmethod
    def from_profile(
        cls,
        profile: str = "malaysia",
        config_dir: Path | None = None,
        settlement_policy: SettlementPolicy = SettlementPolicy.LARGEST_FIRST,
        strict: bool = False,
    ) -> SessionCalculationService:
        """Service configured from a YAML tax profile."""
        return cls(
            tax_config=get_tax_config(profile, config_dir),
            settlement_policy=settlement_policy,
            strict=strict,
        )

    @property
    def tax_config(self) -> TaxConfig:
        return self._tax_config

    def run(self, session: Session) -> SessionCalculationOutcome:
        """
        Calculate, validate and settle ``session``.

        Transfers are only generated for a valid result; an invalid one
        yields an empty transfer list (or raises in strict mode).
        """
        with LogContext.bind_session(session.session_id):
            t0 = time.monotonic()
            logger.info("session_calculation_started", extra={
                "participant_count": len(session.participants),
                "item_count": len(session.items),
                "tax_config": self._tax_config.as_dict(),
                "settlement_policy": self._settlement_policy.value,
            })

            dangling = session.dangling_references()
            if dangling:
                logger.warning("session_dangling_references", extra={
                    "dangling": {item_id: list(ids) for item_id, ids in dangling.items()},
                })

            result = self._split_engine.calculate(session)
            validation = validate_calculation(result)

            if not validation.is_valid:
                logger.error("session_calculation_invalid", extra={
                    "error_codes": list(validation.error_codes),
                    "errors": list(validation.messages),
                })
                if self._strict:
                    raise CalculationInvariantError(session.session_id, validation.errors)
                transfers: tuple[SettlementTransfer, ...] = ()
            else:
                transfers = generate_settlement_transfers(
                    result.participants, self._settlement_policy
                )

            refreshed = replace(
                session, participants=refresh_participant_totals(session, result)
            )

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("session_calculation_completed", extra={
                "is_valid": validation.is_valid,
                "transfer_count": len(transfers),
                **amount_fields(total_with_taxes=result.summary.total_with_taxes),
                "duration_ms": duration_ms,
            })

        return SessionCalculationOutcome(
            session=refreshed,
            result=result,
            transfers=transfers,
            validation=validation,
        )

    def payment_instructions(self, session: Session) -> PaymentInstructions:
        """Display-ready pay / receive lists for ``session``."""
        result = self._split_engine.calculate(session)
        # Counterparty lists follow session order regardless of the transfer policy
        return calculate_payment_instructions(result, SettlementPolicy.LIST_ORDER)

    def preview_taxes(self, session: Session, service_charge: bool | None = None) -> TaxCalculationResult:
        """
        Receipt-style tax breakdown of the whole session.

        ``service_charge`` defaults to whether the config enables it.
        """
        if service_charge is None:
            service_charge = self._tax_config.service_charge_enabled
        items = taxable_items_from_session(session.items, service_charge=service_charge)
        with LogContext.bind_session(session.session_id):
            return MalaysianTaxCalculator(self._tax_config).calculate_taxes(items)
