"""
Settlement Engine - settle-up transfers between participants.

Responsibility:
    Match participants who owe the group (positive net) with participants
    the group owes (negative net) and emit directed transfers that clear
    both sides.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes ``ParticipantBalance`` values from the split engine.

Invariants enforced:
    - Every transfer amount is > 0 and rounded to sen.
    - A participant leaves its queue once its remaining balance is
      within the currency rounding tolerance (0.01 for MYR) of zero.
    - Each step clears at least one side, so a balanced input of n
      participants yields at most n - 1 transfers.
    - Outgoing transfers of a debtor add up to its net within tolerance.

Failure modes:
    - No raises. Non-finite net amounts are logged and left out of the
      matching.

Usage:
    from splitbill_engines.settlement import generate_settlement_transfers

    transfers = generate_settlement_transfers(result.participants)
    for t in transfers:
        print(t.description)  # "Charlie pays Alice RM 19.45"
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from splitbill_engines.split import CalculationResult, ParticipantBalance
from splitbill_engines.tracer import traced_engine
from splitbill_kernel.domain.values import DEFAULT_CURRENCY, Currency, Money
from splitbill_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")


class SettlementPolicy(str, Enum):
    """Order in which debtors and creditors are matched."""

    LIST_ORDER = "list_order"  # First remaining debtor with first remaining creditor
    LARGEST_FIRST = "largest_first"  # Both queues sorted by magnitude, descending


@dataclass(frozen=True)
class SettlementTransfer:
    """A directed payment from a participant who owes to one who is owed."""

    from_id: str
    from_name: str
    to_id: str
    to_name: str
    amount: Money

    @property
    def description(self) -> str:
        return f"{self.from_name} pays {self.to_name} {self.amount.format()}"


@dataclass
class _Party:
    balance: ParticipantBalance
    remaining: Decimal


class SettlementEngine:
    """
    Greedy two-queue transfer matching.

    Contract:
        Pure function of the balances and the policy.
    Guarantees:
        - Terminates for any input.
        - Input order breaks ties under LARGEST_FIRST.
    """

    def __init__(self, policy: SettlementPolicy = SettlementPolicy.LARGEST_FIRST) -> None:
        self.policy = SettlementPolicy(policy)

    @traced_engine("settlement", "1.0", fingerprint_fields=("balances",))
    def generate(self, balances: Sequence[ParticipantBalance]) -> tuple[SettlementTransfer, ...]:
        t0 = time.monotonic()
        currency = balances[0].net_amount.currency if balances else Currency(DEFAULT_CURRENCY)
        tolerance = currency.rounding_tolerance
        quantum = Decimal(10) ** -currency.decimal_places

        debtors: list[_Party] = []
        creditors: list[_Party] = []
        for balance in balances:
            net = balance.net_amount.amount
            if not net.is_finite():
                logger.error("settlement_non_finite_balance", extra={
                    "participant_id": balance.participant_id,
                    "net_amount": str(net),
                })
                continue
            if net > 0:
                debtors.append(_Party(balance, net))
            elif net < 0:
                creditors.append(_Party(balance, -net))

        if self.policy is SettlementPolicy.LARGEST_FIRST:
            debtors.sort(key=lambda p: -p.remaining)
            creditors.sort(key=lambda p: -p.remaining)

        logger.info("settlement_started", extra={
            "policy": self.policy.value,
            "debtor_count": len(debtors),
            "creditor_count": len(creditors),
        })

        transfers: list[SettlementTransfer] = []
        while debtors and creditors:
            debtor = debtors[0]
            creditor = creditors[0]
            amount = min(debtor.remaining, creditor.remaining)
            rounded = amount.quantize(quantum, rounding=ROUND_HALF_UP)

            if rounded > 0:
                transfers.append(SettlementTransfer(
                    from_id=debtor.balance.participant_id,
                    from_name=debtor.balance.name,
                    to_id=creditor.balance.participant_id,
                    to_name=creditor.balance.name,
                    amount=Money(rounded, currency),
                ))

            debtor.remaining -= amount
            creditor.remaining -= amount
            if debtor.remaining < tolerance:
                debtors.pop(0)
            if creditor.remaining < tolerance:
                creditors.pop(0)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("settlement_generated", extra={
            "policy": self.policy.value,
            "transfer_count": len(transfers),
            "total_transferred": str(sum((t.amount.amount for t in transfers), Decimal("0"))),
            "duration_ms": duration_ms,
        })
        return tuple(transfers)


def generate_settlement_transfers(
    balances: Sequence[ParticipantBalance],
    policy: SettlementPolicy = SettlementPolicy.LARGEST_FIRST,
) -> tuple[SettlementTransfer, ...]:
    return SettlementEngine(policy).generate(balances)


# ---------------------------------------------------------------------------
# Payment instructions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentInstruction:
    """
    What one participant has to pay or receive.

    ``counterparties`` are display strings such as ``"Alice (RM 20.00)"``.
    """

    participant_id: str
    name: str
    amount: Money
    counterparties: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PaymentInstructions:
    to_pay: tuple[PaymentInstruction, ...]
    to_receive: tuple[PaymentInstruction, ...]


def calculate_payment_instructions(
    result: CalculationResult,
    policy: SettlementPolicy = SettlementPolicy.LIST_ORDER,
) -> PaymentInstructions:
    """
    Per-participant pay / receive lists for display.

    Participants keep session order; counterparties follow the transfer
    order of ``policy``.
    """
    transfers = generate_settlement_transfers(result.participants, policy)

    paying_to: dict[str, list[str]] = {}
    receiving_from: dict[str, list[str]] = {}
    for transfer in transfers:
        paying_to.setdefault(transfer.from_id, []).append(
            f"{transfer.to_name} ({transfer.amount.format()})"
        )
        receiving_from.setdefault(transfer.to_id, []).append(
            f"{transfer.from_name} ({transfer.amount.format()})"
        )

    to_pay: list[PaymentInstruction] = []
    to_receive: list[PaymentInstruction] = []
    for balance in result.participants:
        net = balance.net_amount
        if not net.is_finite or net.is_zero:
            continue
        if net.is_positive:
            to_pay.append(PaymentInstruction(
                participant_id=balance.participant_id,
                name=balance.name,
                amount=net,
                counterparties=tuple(paying_to.get(balance.participant_id, ())),
            ))
        else:
            to_receive.append(PaymentInstruction(
                participant_id=balance.participant_id,
                name=balance.name,
                amount=abs(net),
                counterparties=tuple(receiving_from.get(balance.participant_id, ())),
            ))

    return PaymentInstructions(to_pay=tuple(to_pay), to_receive=tuple(to_receive))
