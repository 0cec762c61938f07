"""
Tests for Settlement Engine.

Covers:
- Largest-first and list-order matching
- Transfer count bound (n - 1 for n participants)
- Debtor totals match their nets
- Non-finite and zero balances
- Payment instructions for display
"""

from decimal import Decimal

import pytest

from splitbill_engines.settlement import (
    SettlementEngine,
    SettlementPolicy,
    SettlementTransfer,
    calculate_payment_instructions,
    generate_settlement_transfers,
)
from splitbill_engines.split import ParticipantBalance, SplitEngine
from splitbill_kernel.domain.values import Money


def _balance(pid, name, net):
    net = Money.of(net)
    zero = Money.zero()
    return ParticipantBalance(
        participant_id=pid,
        name=name,
        total_owed=net if net.is_positive else zero,
        total_paid=-net if net.is_negative else zero,
        net_amount=net,
    )


def _flows(transfers):
    return [(t.from_name, t.to_name, t.amount.amount) for t in transfers]


class TestReferenceSettlement:
    """Alice -21.50, Bob +2.05, Charlie +19.45."""

    @pytest.fixture
    def balances(self, sample_items, sample_participants):
        return SplitEngine().calculate_session(sample_participants, sample_items).participants

    def test_largest_first_default(self, balances):
        transfers = generate_settlement_transfers(balances)

        assert _flows(transfers) == [
            ("Charlie", "Alice", Decimal("19.45")),
            ("Bob", "Alice", Decimal("2.05")),
        ]

    def test_list_order(self, balances):
        transfers = generate_settlement_transfers(balances, SettlementPolicy.LIST_ORDER)

        assert _flows(transfers) == [
            ("Bob", "Alice", Decimal("2.05")),
            ("Charlie", "Alice", Decimal("19.45")),
        ]

    def test_policy_from_string(self, balances):
        engine = SettlementEngine("list_order")

        assert engine.policy is SettlementPolicy.LIST_ORDER
        assert len(engine.generate(balances)) == 2

    def test_description(self, balances):
        transfers = generate_settlement_transfers(balances)

        assert transfers[0].description == "Charlie pays Alice RM 19.45"


class TestMatching:
    """Greedy two-queue matching."""

    def test_policies_differ_in_order(self):
        balances = [
            _balance("0", "P0", "5.00"),
            _balance("1", "P1", "20.00"),
            _balance("2", "P2", "-25.00"),
        ]

        assert _flows(generate_settlement_transfers(balances, SettlementPolicy.LIST_ORDER)) == [
            ("P0", "P2", Decimal("5.00")),
            ("P1", "P2", Decimal("20.00")),
        ]
        assert _flows(generate_settlement_transfers(balances)) == [
            ("P1", "P2", Decimal("20.00")),
            ("P0", "P2", Decimal("5.00")),
        ]

    def test_debtor_split_across_creditors(self):
        balances = [
            _balance("0", "P0", "30.00"),
            _balance("1", "P1", "10.00"),
            _balance("2", "P2", "-25.00"),
            _balance("3", "P3", "-15.00"),
        ]
        transfers = generate_settlement_transfers(balances)

        assert _flows(transfers) == [
            ("P0", "P2", Decimal("25.00")),
            ("P0", "P3", Decimal("5.00")),
            ("P1", "P3", Decimal("10.00")),
        ]
        assert len(transfers) <= len(balances) - 1

    def test_outgoing_matches_net(self):
        balances = [
            _balance("0", "P0", "12.34"),
            _balance("1", "P1", "7.66"),
            _balance("2", "P2", "-3.00"),
            _balance("3", "P3", "-17.00"),
        ]
        transfers = generate_settlement_transfers(balances)

        for balance in balances[:2]:
            paid = sum(
                (t.amount.amount for t in transfers if t.from_id == balance.participant_id),
                Decimal("0"),
            )
            assert paid == balance.net_amount.amount

    def test_ties_keep_input_order(self):
        balances = [
            _balance("0", "P0", "10.00"),
            _balance("1", "P1", "10.00"),
            _balance("2", "P2", "-20.00"),
        ]

        assert [t.from_name for t in generate_settlement_transfers(balances)] == ["P0", "P1"]

    def test_all_amounts_positive_sen(self):
        balances = [
            _balance("0", "P0", "0.01"),
            _balance("1", "P1", "3.34"),
            _balance("2", "P2", "-3.35"),
        ]

        for transfer in generate_settlement_transfers(balances):
            assert transfer.amount.is_positive
            assert transfer.amount.amount == transfer.amount.amount.quantize(Decimal("0.01"))


class TestSettlementEdgeCases:

    def test_empty(self):
        assert generate_settlement_transfers([]) == ()

    def test_all_settled(self):
        balances = [_balance("0", "P0", "0"), _balance("1", "P1", "0")]

        assert generate_settlement_transfers(balances) == ()

    def test_only_debtors(self):
        assert generate_settlement_transfers([_balance("0", "P0", "5.00")]) == ()

    def test_non_finite_balance_skipped(self, captured_logs):
        balances = [
            _balance("0", "P0", "5.00"),
            _balance("1", "P1", "-5.00"),
            ParticipantBalance(
                participant_id="2",
                name="P2",
                total_owed=Money.of("NaN"),
                total_paid=Money.zero(),
                net_amount=Money.of("NaN"),
            ),
        ]
        transfers = generate_settlement_transfers(balances)

        assert _flows(transfers) == [("P0", "P1", Decimal("5.00"))]
        errors = [r for r in captured_logs() if r["message"] == "settlement_non_finite_balance"]
        assert errors[0]["participant_id"] == "2"
        assert errors[0]["level"] == "ERROR"

    def test_transfer_is_frozen(self):
        transfer = SettlementTransfer("0", "P0", "1", "P1", Money.of("1.00"))
        with pytest.raises(AttributeError):
            transfer.amount = Money.of("2.00")


class TestPaymentInstructions:
    """Display-ready pay / receive lists."""

    def test_reference_scenario(self, sample_items, sample_participants):
        result = SplitEngine().calculate_session(sample_participants, sample_items)
        instructions = calculate_payment_instructions(result)

        assert [(i.name, i.amount.amount) for i in instructions.to_pay] == [
            ("Bob", Decimal("2.05")),
            ("Charlie", Decimal("19.45")),
        ]
        assert instructions.to_pay[0].counterparties == ("Alice (RM 2.05)",)

        assert len(instructions.to_receive) == 1
        alice = instructions.to_receive[0]
        assert alice.name == "Alice"
        assert alice.amount == Money.of("21.50")
        assert alice.counterparties == ("Bob (RM 2.05)", "Charlie (RM 19.45)")

    def test_largest_first_counterparty_order(self, sample_items, sample_participants):
        result = SplitEngine().calculate_session(sample_participants, sample_items)
        instructions = calculate_payment_instructions(result, SettlementPolicy.LARGEST_FIRST)

        assert instructions.to_receive[0].counterparties == (
            "Charlie (RM 19.45)",
            "Bob (RM 2.05)",
        )

    def test_settled_participants_omitted(self, sample_participants):
        result = SplitEngine().calculate_session(sample_participants, [])
        instructions = calculate_payment_instructions(result)

        assert instructions.to_pay == ()
        assert instructions.to_receive == ()
