"""
Split Engine - per-participant balances for a bill-splitting session.

Responsibility:
    Turn a session's participants and items into owed / paid / net
    balances with a per-item audit breakdown, plus the session summary.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import splitbill_kernel and sibling engines.

Invariants enforced:
    - Each item's base, SST and service charge are divided with
      ``AllocationEngine.allocate_equal``, so the shares of every term
      add up to the term exactly and ``sum(owed) == sum(paid)``.
    - SST is divided among the item's sharers only.
    - Service charge is divided among all participants or among the
      item's sharers, per ``TaxConfig.service_charge_scope``.
    - The payer is credited with the item's full tax-inclusive cost.
    - ``net_amount = total_owed - total_paid``; positive means the
      participant owes the group.

Failure modes:
    - No raises for input-shape violations. An item with an empty
      ``shared_by`` is left out of owed and paid; a payer or sharer id
      that is not a session participant is logged and leaves the result
      unbalanced, which ``validate_calculation`` reports.
    - Non-finite amounts propagate into the result unchanged.

Usage:
    from splitbill_engines.split import SplitEngine, validate_calculation

    result = SplitEngine().calculate(session)
    assert validate_calculation(result).is_valid
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext

from splitbill_engines.allocation import AllocationEngine
from splitbill_engines.tracer import traced_engine
from splitbill_kernel.domain.dtos import ValidationError, ValidationResult
from splitbill_kernel.domain.session import BillItem, Participant, Session
from splitbill_kernel.domain.tax_config import (
    DEFAULT_TAX_CONFIG,
    ServiceChargeScope,
    TaxConfig,
)
from splitbill_kernel.domain.values import Currency, Money
from splitbill_kernel.logging_config import amount_fields, get_logger

logger = get_logger("engines.split")


@dataclass(frozen=True)
class ItemContribution:
    """One participant's share of one item."""

    item_id: str
    item_name: str
    base: Money
    sst: Money
    service_charge: Money

    @property
    def total(self) -> Money:
        return self.base + self.sst + self.service_charge


@dataclass(frozen=True)
class ParticipantBalance:
    """
    Calculated balance of one participant.

    ``net_amount`` is positive when the participant owes the group and
    negative when the group owes them.
    """

    participant_id: str
    name: str
    total_owed: Money
    total_paid: Money
    net_amount: Money
    item_breakdown: tuple[ItemContribution, ...] = ()

    @property
    def is_finite(self) -> bool:
        return (
            self.total_owed.is_finite
            and self.total_paid.is_finite
            and self.net_amount.is_finite
        )


@dataclass(frozen=True)
class CalculationSummary:
    """Session-wide totals."""

    total_amount: Money
    total_sst: Money
    total_service_charge: Money
    item_count: int

    @property
    def total_with_taxes(self) -> Money:
        return self.total_amount + self.total_sst + self.total_service_charge

    @classmethod
    def empty(cls, currency: Currency) -> CalculationSummary:
        zero = Money.zero(currency)
        return cls(total_amount=zero, total_sst=zero, total_service_charge=zero, item_count=0)


@dataclass(frozen=True)
class CalculationResult:
    """Balances for every session participant, in session order, plus the summary."""

    participants: tuple[ParticipantBalance, ...]
    summary: CalculationSummary
    currency: Currency

    @property
    def total_owed(self) -> Money:
        return Money.total((p.total_owed for p in self.participants), self.currency)

    @property
    def total_paid(self) -> Money:
        return Money.total((p.total_paid for p in self.participants), self.currency)

    @property
    def net_sum(self) -> Money:
        return Money.total((p.net_amount for p in self.participants), self.currency)

    def balance_for(self, participant_id: str) -> ParticipantBalance | None:
        for balance in self.participants:
            if balance.participant_id == participant_id:
                return balance
        return None


class SplitEngine:
    """
    Compute participant balances for a session.

    Stateless apart from the injected ``TaxConfig``; reconfigure through
    ``with_tax_config`` which returns a new engine.
    """

    def __init__(self, tax_config: TaxConfig = DEFAULT_TAX_CONFIG) -> None:
        self._tax_config = tax_config
        self._allocator = AllocationEngine()

    @property
    def tax_config(self) -> TaxConfig:
        return self._tax_config

    def with_tax_config(self, **overrides) -> SplitEngine:
        """New engine whose config has ``overrides`` applied."""
        return SplitEngine(self._tax_config.with_overrides(**overrides))

    def calculate(self, session: Session) -> CalculationResult:
        """Calculate balances for a session snapshot."""
        return self.calculate_session(session.participants, session.items)

    @traced_engine("split", "1.0", fingerprint_fields=("participants", "items"))
    def calculate_session(
        self,
        participants: Sequence[Participant],
        items: Sequence[BillItem],
    ) -> CalculationResult:
        """
        Calculate balances for ``participants`` over ``items``.

        Empty participants or items yield a zero balance for every given
        participant and an empty summary.
        """
        t0 = time.monotonic()
        config = self._tax_config
        currency = Currency(config.currency)

        logger.info("split_calculation_started", extra={
            "participant_count": len(participants),
            "item_count": len(items),
            "service_charge_scope": config.service_charge_scope.value,
            "sst_enabled": config.sst_enabled,
            "service_charge_enabled": config.service_charge_enabled,
        })

        if not participants or not items:
            zero = Money.zero(currency)
            logger.info("split_calculation_empty", extra={
                "participant_count": len(participants),
                "item_count": len(items),
            })
            return CalculationResult(
                participants=tuple(
                    ParticipantBalance(
                        participant_id=p.participant_id,
                        name=p.name,
                        total_owed=zero,
                        total_paid=zero,
                        net_amount=zero,
                    )
                    for p in participants
                ),
                summary=CalculationSummary.empty(currency),
                currency=currency,
            )

        with localcontext() as ctx:
            # NaN and Infinity propagate as NaN instead of raising
            ctx.traps[InvalidOperation] = False
            result = self._accumulate(participants, items, currency)

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("split_calculation_completed", extra={
                "participant_count": len(result.participants),
                "item_count": result.summary.item_count,
                **amount_fields(
                    total_amount=result.summary.total_amount,
                    total_sst=result.summary.total_sst,
                    total_service_charge=result.summary.total_service_charge,
                    total_owed=result.total_owed,
                    total_paid=result.total_paid,
                ),
                "duration_ms": duration_ms,
            })
        return result

    def _accumulate(
        self,
        participants: Sequence[Participant],
        items: Sequence[BillItem],
        currency: Currency,
    ) -> CalculationResult:
        config = self._tax_config
        participant_ids = [p.participant_id for p in participants]
        known = set(participant_ids)
        owed = {pid: Money.zero(currency) for pid in participant_ids}
        paid = {pid: Money.zero(currency) for pid in participant_ids}
        breakdown: dict[str, list[ItemContribution]] = {pid: [] for pid in participant_ids}

        total_amount = Money.zero(currency)
        total_sst = Money.zero(currency)
        total_service_charge = Money.zero(currency)

        for item in items:
            sst = self._item_sst(item)
            service_charge = self._item_service_charge(item)
            total_amount = total_amount + item.total_amount
            total_sst = total_sst + sst
            total_service_charge = total_service_charge + service_charge

            if not item.shared_by:
                logger.warning("split_item_not_shared", extra={
                    "item_id": item.item_id,
                    "item_name": item.name,
                    "amount": str(item.total_amount.amount),
                })
                continue

            unknown_sharers = [pid for pid in item.shared_by if pid not in known]
            if unknown_sharers:
                logger.warning("split_item_unknown_sharers", extra={
                    "item_id": item.item_id,
                    "unknown_participant_ids": unknown_sharers,
                })

            base_shares = self._allocator.allocate_equal(item.total_amount, item.shared_by)
            sst_shares = self._allocator.allocate_equal(sst, item.shared_by)
            if config.service_charge_scope is ServiceChargeScope.ALL_PARTICIPANTS:
                service_charge_targets: Sequence[str] = participant_ids
            else:
                service_charge_targets = item.shared_by
            service_charge_shares = self._allocator.allocate_equal(
                service_charge, service_charge_targets,
            ).as_mapping()

            for pid in participant_ids:
                sc_share = service_charge_shares.get(pid)
                consumes = item.is_shared_by(pid)
                if not consumes and (sc_share is None or sc_share.is_zero):
                    continue
                contribution = ItemContribution(
                    item_id=item.item_id,
                    item_name=item.name,
                    base=base_shares.share_for(pid),
                    sst=sst_shares.share_for(pid),
                    service_charge=sc_share if sc_share is not None else Money.zero(currency),
                )
                breakdown[pid].append(contribution)
                owed[pid] = owed[pid] + contribution.total

            if item.paid_by in known:
                paid[item.paid_by] = paid[item.paid_by] + item.total_amount + sst + service_charge
            else:
                logger.warning("split_item_unknown_payer", extra={
                    "item_id": item.item_id,
                    "paid_by": item.paid_by,
                })

        balances = tuple(
            ParticipantBalance(
                participant_id=p.participant_id,
                name=p.name,
                total_owed=owed[p.participant_id].round(),
                total_paid=paid[p.participant_id].round(),
                net_amount=(owed[p.participant_id] - paid[p.participant_id]).round(),
                item_breakdown=tuple(breakdown[p.participant_id]),
            )
            for p in participants
        )
        summary = CalculationSummary(
            total_amount=total_amount.round(),
            total_sst=total_sst.round(),
            total_service_charge=total_service_charge.round(),
            item_count=len(items),
        )
        return CalculationResult(participants=balances, summary=summary, currency=currency)

    def _item_sst(self, item: BillItem) -> Money:
        if not self._tax_config.sst_enabled:
            return Money.zero(item.total_amount.currency)
        return item.sst_amount(self._tax_config.sst_rate)

    def _item_service_charge(self, item: BillItem) -> Money:
        return (item.total_amount * self._tax_config.effective_service_charge_rate).round()


def calculate_session(
    participants: Sequence[Participant],
    items: Sequence[BillItem],
    config: TaxConfig = DEFAULT_TAX_CONFIG,
) -> CalculationResult:
    return SplitEngine(config).calculate_session(participants, items)


def calculate_participant_balances(
    items: Sequence[BillItem],
    participants: Sequence[Participant],
    config: TaxConfig = DEFAULT_TAX_CONFIG,
) -> tuple[ParticipantBalance, ...]:
    """Balances only, in participant order."""
    return SplitEngine(config).calculate_session(participants, items).participants


def validate_calculation(
    result: CalculationResult,
    tolerance: Decimal | None = None,
) -> ValidationResult:
    """
    Check the balance invariants of a calculation result.

    Codes:
        NON_FINITE_AMOUNT: a participant total is NaN or infinite. The sum
            checks are skipped when this is reported.
        OWED_PAID_MISMATCH: ``|sum(owed) - sum(paid)| > tolerance``.
        NET_NOT_ZERO: ``|sum(net)| > tolerance``.

    ``tolerance`` defaults to the currency rounding tolerance (0.01 for MYR).
    """
    if tolerance is None:
        tolerance = result.currency.rounding_tolerance

    errors: list[ValidationError] = []
    for balance in result.participants:
        for field_name in ("total_owed", "total_paid", "net_amount"):
            value: Money = getattr(balance, field_name)
            if not value.is_finite:
                errors.append(ValidationError(
                    code="NON_FINITE_AMOUNT",
                    message=f"{balance.name} has a non-finite {field_name} ({value.amount})",
                    field=f"participants.{balance.participant_id}.{field_name}",
                ))

    if errors:
        logger.warning("split_validation_failed", extra={
            "error_codes": [e.code for e in errors],
        })
        return ValidationResult.failure(*errors)

    total_owed = result.total_owed
    total_paid = result.total_paid
    if abs(total_owed.amount - total_paid.amount) > tolerance:
        errors.append(ValidationError(
            code="OWED_PAID_MISMATCH",
            message=(
                f"Total owed ({total_owed.round().amount}) does not match "
                f"total paid ({total_paid.round().amount})"
            ),
            details={"total_owed": str(total_owed.amount), "total_paid": str(total_paid.amount)},
        ))

    net_sum = result.net_sum
    if abs(net_sum.amount) > tolerance:
        errors.append(ValidationError(
            code="NET_NOT_ZERO",
            message=f"Net amounts do not sum to zero (sum: {net_sum.round().amount})",
            details={"net_sum": str(net_sum.amount)},
        ))

    if errors:
        logger.warning("split_validation_failed", extra={
            "error_codes": [e.code for e in errors],
        })
    return ValidationResult.from_errors(errors)


def refresh_participant_totals(
    session: Session,
    result: CalculationResult,
) -> tuple[Participant, ...]:
    """
    Participants of ``session`` with cached totals taken from ``result``.

    A participant missing from ``result`` gets zero totals.
    """
    zero = Money.zero(result.currency)
    refreshed: list[Participant] = []
    for participant in session.participants:
        balance = result.balance_for(participant.participant_id)
        if balance is None:
            refreshed.append(participant.with_totals(zero, zero, zero))
        else:
            refreshed.append(participant.with_totals(
                total_owed=balance.total_owed,
                total_paid=balance.total_paid,
                net_amount=balance.net_amount,
            ))
    return tuple(refreshed)


# ---------------------------------------------------------------------------
# Legacy bill split view
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BillSplitShare:
    """
    One participant in the legacy split view.

    ``balance = paid - share``: positive means the participant gets money
    back, the opposite sign of ``ParticipantBalance.net_amount``.
    """

    participant_id: str
    name: str
    share: Money
    paid: Money
    balance: Money

    @property
    def owes(self) -> Money:
        return self.share


@dataclass(frozen=True)
class BillSplit:
    total_amount: Money
    total_with_taxes: Money
    participant_shares: tuple[BillSplitShare, ...]

    def share_for(self, participant_id: str) -> BillSplitShare | None:
        for share in self.participant_shares:
            if share.participant_id == participant_id:
                return share
        return None


def calculate_bill_split(
    items: Sequence[BillItem],
    participants: Sequence[Participant],
    config: TaxConfig | None = None,
) -> BillSplit:
    """
    Legacy split view, SST only unless another config is given.

    >>> split = calculate_bill_split(items, participants)
    >>> split.share_for("1").balance   # Alice paid 30, owes 10
    Money(Decimal('20.00'), Currency('MYR'))
    """
    if config is None:
        config = TaxConfig.sst_only()
    result = SplitEngine(config).calculate_session(participants, items)
    return BillSplit(
        total_amount=result.summary.total_amount,
        total_with_taxes=result.summary.total_with_taxes,
        participant_shares=tuple(
            BillSplitShare(
                participant_id=p.participant_id,
                name=p.name,
                share=p.total_owed,
                paid=p.total_paid,
                balance=p.total_paid - p.total_owed,
            )
            for p in result.participants
        ),
    )
