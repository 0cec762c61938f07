"""
Tests for SessionCalculationService.

Covers:
- Full run: balances, validation, transfers, refreshed cached totals
- Profile-based construction
- Invalid sessions in lenient and strict mode
- Payment instructions and receipt-style tax preview
"""

from decimal import Decimal

import pytest

from splitbill_engines.settlement import SettlementPolicy
from splitbill_kernel.domain.session import Session
from splitbill_kernel.domain.tax_config import ServiceChargeScope, TaxConfig
from splitbill_kernel.domain.values import Money
from splitbill_kernel.exceptions import CalculationInvariantError
from splitbill_services import SessionCalculationService


class TestRun:

    def setup_method(self):
        self.service = SessionCalculationService()

    def test_reference_session(self, sample_session):
        outcome = self.service.run(sample_session)

        assert outcome.is_valid
        assert [t.description for t in outcome.transfers] == [
            "Charlie pays Alice RM 19.45",
            "Bob pays Alice RM 2.05",
        ]
        assert outcome.result.summary.total_with_taxes == Money.of("50.40")

    def test_cached_totals_refreshed(self, sample_session):
        outcome = self.service.run(sample_session)

        bob = outcome.session.participant("2")
        assert bob.total_owed == Money.of("19.45")
        assert bob.total_paid == Money.of("17.40")
        assert bob.net_amount == Money.of("2.05")
        assert sample_session.participant("2").total_owed.is_zero

    def test_refreshed_session_keeps_items(self, sample_session):
        outcome = self.service.run(sample_session)

        assert outcome.session.items == sample_session.items
        assert outcome.session.session_id == sample_session.session_id

    def test_list_order_policy(self, sample_session):
        service = SessionCalculationService(settlement_policy="list_order")

        outcome = service.run(sample_session)

        assert [t.from_name for t in outcome.transfers] == ["Bob", "Charlie"]

    def test_logs_bound_to_session(self, sample_session, captured_logs):
        self.service.run(sample_session)

        logs = captured_logs()
        completed = [r for r in logs if r["message"] == "session_calculation_completed"][0]
        assert completed["session_id"] == "session1"
        assert completed["is_valid"] is True
        assert completed["transfer_count"] == 2
        split_logs = [r for r in logs if r["message"] == "split_calculation_completed"]
        assert split_logs[0]["session_id"] == "session1"


class TestInvalidSessions:

    def _unbalanced(self, sample_participants, item_factory):
        return Session(
            session_id="session1",
            name="Dinner",
            participants=sample_participants,
            items=(item_factory("x", "30.00", "9", ["1", "2", "3"]),),
        )

    def test_lenient_returns_no_transfers(self, sample_participants, item_factory, captured_logs):
        outcome = SessionCalculationService().run(self._unbalanced(sample_participants, item_factory))

        assert not outcome.is_valid
        assert outcome.transfers == ()
        assert "OWED_PAID_MISMATCH" in outcome.validation.error_codes
        messages = [r["message"] for r in captured_logs()]
        assert "session_dangling_references" in messages
        assert "session_calculation_invalid" in messages

    def test_strict_raises(self, sample_participants, item_factory):
        service = SessionCalculationService(strict=True)

        with pytest.raises(CalculationInvariantError) as exc_info:
            service.run(self._unbalanced(sample_participants, item_factory))

        assert exc_info.value.session_id == "session1"
        assert exc_info.value.code == "CALCULATION_INVARIANT_VIOLATED"

    def test_empty_session(self):
        outcome = SessionCalculationService().run(Session(session_id="s", name="Empty"))

        assert outcome.is_valid
        assert outcome.transfers == ()
        assert outcome.session.participants == ()


class TestFromProfile:

    def test_default_profile(self):
        service = SessionCalculationService.from_profile()

        assert service.tax_config == TaxConfig()

    def test_sharers_only_profile(self, sample_session):
        service = SessionCalculationService.from_profile("malaysia_sharers_only")

        assert service.tax_config.service_charge_scope is ServiceChargeScope.ITEM_SHARERS_ONLY
        outcome = service.run(sample_session)
        assert outcome.session.participant("1").net_amount == Money.of("-22.00")

    def test_sst_only_profile_matches_legacy(self, sample_session):
        service = SessionCalculationService.from_profile("malaysia_sst_only")

        outcome = service.run(sample_session)

        assert outcome.result.summary.total_with_taxes == Money.of("45.90")
        assert [(t.from_name, t.amount.amount) for t in outcome.transfers] == [
            ("Charlie", Decimal("17.95")),
            ("Bob", Decimal("2.05")),
        ]

    def test_unknown_profile(self):
        with pytest.raises(FileNotFoundError):
            SessionCalculationService.from_profile("narnia")


class TestPaymentInstructionsAndPreview:

    def test_payment_instructions(self, sample_session):
        instructions = SessionCalculationService().payment_instructions(sample_session)

        assert [i.name for i in instructions.to_pay] == ["Bob", "Charlie"]
        assert instructions.to_receive[0].counterparties == ("Bob (RM 2.05)", "Charlie (RM 19.45)")

    @pytest.mark.parametrize("policy", list(SettlementPolicy))
    def test_payment_instructions_keep_session_order(self, sample_session, policy):
        """The transfer policy does not reorder the counterparty listing."""
        service = SessionCalculationService(settlement_policy=policy)

        instructions = service.payment_instructions(sample_session)

        assert instructions.to_receive[0].name == "Alice"
        assert instructions.to_receive[0].counterparties == ("Bob (RM 2.05)", "Charlie (RM 19.45)")
        assert instructions.to_pay[1].counterparties == ("Alice (RM 19.45)",)

    def test_preview_taxes_default(self, sample_session):
        preview = SessionCalculationService().preview_taxes(sample_session)

        # SC 4.50 on 45.00; SST on Drinks (15.00 + 1.50) = 0.99
        assert preview.service_charge_amount == Money.of("4.50")
        assert preview.sst_amount == Money.of("0.99")
        assert preview.total_before_rounding == Money.of("50.49")
        assert preview.final_total == Money.of("50.50")

    def test_preview_taxes_without_service_charge(self, sample_session):
        preview = SessionCalculationService().preview_taxes(sample_session, service_charge=False)

        assert preview.final_total == Money.of("45.90")

    def test_preview_follows_config(self, sample_session):
        preview = SessionCalculationService(TaxConfig.sst_only()).preview_taxes(sample_session)

        assert preview.service_charge_amount.is_zero
        assert preview.final_total == Money.of("45.90")
