"""
Tests for Allocation Engine.

Covers:
- Equal allocation with sen rounding
- Leftover sen handed out one per target, starting at the rounding target
- Shares never negative and within one sen of the fair share
- Conservation (shares add back to the source amount)
- Empty target lists
- Non-finite amounts
"""

import pytest
from decimal import Decimal

from splitbill_engines.allocation import AllocationEngine
from splitbill_kernel.domain.values import Money


class TestEqualAllocation:
    """Tests for even splits."""

    def setup_method(self):
        self.engine = AllocationEngine()

    def test_even_split(self):
        """Splits an amount that divides exactly."""
        result = self.engine.allocate_equal(Money.of("30.00"), ["1", "2", "3"])

        assert [line.allocated for line in result.lines] == [Money.of("10.00")] * 3
        assert result.rounding_adjustment.is_zero
        assert result.is_fully_allocated

    def test_last_target_absorbs_residual(self):
        """10.00 / 3 gives 3.33, 3.33, 3.34."""
        result = self.engine.allocate_equal(Money.of("10.00"), ["a", "b", "c"])

        assert result.share_for("a") == Money.of("3.33")
        assert result.share_for("b") == Money.of("3.33")
        assert result.share_for("c") == Money.of("3.34")
        assert result.rounding_adjustment == Money.of("0.01")
        assert result.lines[-1].is_rounding_target

    def test_two_leftover_sen(self):
        """20.00 / 3 gives 6.66, 6.67, 6.67: leftover sen go backwards from the last."""
        result = self.engine.allocate_equal(Money.of("20.00"), ["a", "b", "c"])

        assert [line.allocated for line in result.lines] == [
            Money.of("6.66"), Money.of("6.67"), Money.of("6.67"),
        ]
        assert result.rounding_adjustment == Money.of("0.02")

    def test_small_amount_never_negative(self):
        """0.05 over ten targets: five get a sen, five get nothing."""
        ids = [str(i) for i in range(10)]
        result = self.engine.allocate_equal(Money.of("0.05"), ids)

        assert [line.allocated.amount for line in result.lines] == (
            [Decimal("0.00")] * 5 + [Decimal("0.01")] * 5
        )
        assert result.total_allocated == Money.of("0.05")

    def test_shares_within_one_sen_of_fair_share(self):
        """10.05 over ten targets: 1.00 or 1.01, never a 0.05 gap."""
        ids = [str(i) for i in range(10)]
        result = self.engine.allocate_equal(Money.of("10.05"), ids)

        amounts = [line.allocated.amount for line in result.lines]
        assert set(amounts) == {Decimal("1.00"), Decimal("1.01")}
        assert amounts.count(Decimal("1.01")) == 5

    def test_negative_amount_truncates_toward_zero(self):
        result = self.engine.allocate_equal(Money.of("-10.00"), ["a", "b", "c"])

        assert result.share_for("a") == Money.of("-3.33")
        assert result.share_for("c") == Money.of("-3.34")
        assert result.total_allocated == Money.of("-10.00")

    def test_unquantized_dust_stays_on_rounding_target(self):
        result = self.engine.allocate_equal(Money.of("0.125"), ["a", "b"])

        assert result.share_for("a") == Money.of("0.06")
        assert result.share_for("b").amount == Decimal("0.065")

    def test_custom_rounding_target(self):
        """The residual goes to the chosen index; line order is kept."""
        result = self.engine.allocate_equal(
            Money.of("10.00"), ["a", "b", "c"], rounding_target_index=0,
        )

        assert [line.target_id for line in result.lines] == ["a", "b", "c"]
        assert result.share_for("a") == Money.of("3.34")
        assert result.lines[0].is_rounding_target
        assert not result.lines[2].is_rounding_target

    def test_custom_rounding_target_wraps_backwards(self):
        """From index 0 the second leftover sen wraps to the last target."""
        result = self.engine.allocate_equal(
            Money.of("20.00"), ["a", "b", "c"], rounding_target_index=0,
        )

        assert result.share_for("a") == Money.of("6.67")
        assert result.share_for("b") == Money.of("6.66")
        assert result.share_for("c") == Money.of("6.67")

    def test_single_target_gets_everything(self):
        result = self.engine.allocate_equal(Money.of("0.90"), ["2"])

        assert result.share_for("2") == Money.of("0.90")

    @pytest.mark.parametrize(
        "amount,count",
        [("0.01", 3), ("0.90", 2), ("1.00", 7), ("99.99", 4), ("3.00", 9)],
    )
    def test_conservation(self, amount, count):
        """Shares always add back to the source amount exactly."""
        ids = [str(i) for i in range(count)]
        result = self.engine.allocate_equal(Money.of(amount), ids)

        assert result.total_allocated == Money.of(amount)

    def test_shares_are_sen(self):
        result = self.engine.allocate_equal(Money.of("1.00"), ["a", "b", "c", "d", "e", "f", "g"])

        for line in result.lines:
            assert line.allocated.amount == line.allocated.amount.quantize(Decimal("0.01"))

    def test_unknown_target_share_is_zero(self):
        result = self.engine.allocate_equal(Money.of("10.00"), ["a"])

        assert result.share_for("zz").is_zero

    def test_as_mapping(self):
        result = self.engine.allocate_equal(Money.of("1.50"), ["a", "b"])

        assert result.as_mapping() == {"a": Money.of("0.75"), "b": Money.of("0.75")}


class TestAllocationEdgeCases:
    """Degenerate inputs."""

    def setup_method(self):
        self.engine = AllocationEngine()

    def test_no_targets(self):
        """Nothing allocated; the full amount is reported unallocated."""
        result = self.engine.allocate_equal(Money.of("5.00"), [])

        assert result.lines == ()
        assert result.unallocated == Money.of("5.00")
        assert not result.is_fully_allocated

    def test_zero_amount(self):
        result = self.engine.allocate_equal(Money.of("0"), ["a", "b"])

        assert all(line.allocated.is_zero for line in result.lines)

    def test_non_finite_amount_propagates(self):
        """Every target receives the non-finite share."""
        result = self.engine.allocate_equal(Money.of("Infinity"), ["a", "b"])

        assert len(result.lines) == 2
        assert all(not line.allocated.is_finite for line in result.lines)

    def test_nan_amount_propagates(self):
        result = self.engine.allocate_equal(Money.of("NaN"), ["a", "b", "c"])

        assert all(line.allocated.amount.is_nan() for line in result.lines)
