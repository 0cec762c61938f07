"""
Module: splitbill_engines.allocation
Responsibility:
    Split a monetary amount evenly across a list of participant ids with
    deterministic sen rounding, so every share is a 2-decimal amount and
    the shares always add back up to the source amount.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import splitbill_kernel.

Invariants enforced:
    - Conservation: sum(allocated) == source_amount exactly (finite input).
    - Fairness: every share is ``amount / n`` truncated to sen, plus at
      most one leftover sen, so shares differ by at most 0.01 and never
      cross zero. Leftover sen go to the rounding target (last by default)
      and then backwards through the list.

Failure modes:
    - No raises. An empty target list allocates nothing and reports the
      whole amount as unallocated.
    - A non-finite amount is handed to every target unchanged.

Usage:
    from splitbill_engines.allocation import AllocationEngine
    from splitbill_kernel.domain.values import Money

    result = AllocationEngine().allocate_equal(
        amount=Money.of("10.00"),
        target_ids=["alice", "bob", "charlie"],
    )
    result.share_for("charlie")  # Money: 3.34 MYR
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal

from splitbill_kernel.domain.values import Money
from splitbill_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class AllocationLine:
    """Share allocated to a single target."""

    target_id: str
    allocated: Money
    is_rounding_target: bool = False


@dataclass(frozen=True)
class AllocationResult:
    """
    Complete allocation result.

    Guarantees:
        - ``total_allocated + unallocated == source_amount``.
        - ``rounding_adjustment`` is the residual handed out on top of the
          truncated per-share amount.
    """

    source_amount: Money
    lines: tuple[AllocationLine, ...]
    unallocated: Money
    rounding_adjustment: Money

    @property
    def total_allocated(self) -> Money:
        return Money.total((line.allocated for line in self.lines), self.source_amount.currency)

    @property
    def is_fully_allocated(self) -> bool:
        return self.unallocated.is_zero

    def share_for(self, target_id: str) -> Money:
        """Share allocated to ``target_id``; zero when it was not a target."""
        for line in self.lines:
            if line.target_id == target_id:
                return line.allocated
        return Money.zero(self.source_amount.currency)

    def as_mapping(self) -> dict[str, Money]:
        return {line.target_id: line.allocated for line in self.lines}


class AllocationEngine:
    """
    Allocate amounts evenly across targets.

    Contract:
        Pure functions with deterministic rounding; no I/O.
    Guarantees:
        - Intermediate division uses full Decimal precision.
        - Shares truncated to currency decimal places (ROUND_DOWN).
        - Residual handed out one unit per target, starting at the
          designated rounding target.
    """

    def allocate_equal(
        self,
        amount: Money,
        target_ids: Sequence[str],
        rounding_target_index: int | None = None,
    ) -> AllocationResult:
        """
        Split ``amount`` evenly over ``target_ids``.

        Args:
            amount: Amount to split.
            target_ids: Ordered recipient ids.
            rounding_target_index: First target to receive a leftover unit (default: last).

        Returns:
            AllocationResult with one line per target, in input order.
        """
        currency = amount.currency
        if not target_ids:
            logger.debug("allocation_no_targets", extra={"amount": str(amount.amount)})
            return AllocationResult(
                source_amount=amount,
                lines=(),
                unallocated=amount,
                rounding_adjustment=Money.zero(currency),
            )

        count = len(target_ids)
        if rounding_target_index is None:
            rounding_target_index = count - 1

        unit = Decimal(10) ** -currency.decimal_places
        naive_share = amount.amount / Decimal(count)
        if not naive_share.is_finite():
            logger.warning("allocation_non_finite_amount", extra={"amount": str(amount.amount)})
            return AllocationResult(
                source_amount=amount,
                lines=tuple(
                    AllocationLine(
                        target_id=target_id,
                        allocated=Money(naive_share, currency),
                        is_rounding_target=(i == rounding_target_index),
                    )
                    for i, target_id in enumerate(target_ids)
                ),
                unallocated=Money.zero(currency),
                rounding_adjustment=Money.zero(currency),
            )

        # Truncate toward zero, then hand out whole leftover units
        floor_share = naive_share.quantize(unit, rounding=ROUND_DOWN)
        residual = amount.amount - floor_share * count
        leftover_units = int(residual / unit)
        step = unit if residual >= 0 else -unit

        shares = [floor_share] * count
        # Equal remainders everywhere; ties break backwards from the rounding target
        for k in range(abs(leftover_units)):
            shares[(rounding_target_index - k) % count] += step
        # Sub-unit dust from an unquantized source stays on the rounding target
        shares[rounding_target_index] += amount.amount - sum(shares, Decimal("0"))

        lines = tuple(
            AllocationLine(
                target_id=target_id,
                allocated=Money(shares[i], currency),
                is_rounding_target=(i == rounding_target_index),
            )
            for i, target_id in enumerate(target_ids)
        )
        if leftover_units:
            logger.debug("allocation_residual_distributed", extra={
                "amount": str(amount.amount),
                "target_count": count,
                "leftover_units": leftover_units,
            })

        return AllocationResult(
            source_amount=amount,
            lines=lines,
            unallocated=Money.zero(currency),
            rounding_adjustment=Money(residual, currency),
        )
