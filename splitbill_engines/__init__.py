"""
Module: splitbill_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the canonical import surface for
    splitbill_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import splitbill_kernel (and sibling engine modules).
    MUST NOT import splitbill_config, splitbill_ingestion or splitbill_services.

Invariants enforced:
    - Decimal-only arithmetic: all monetary amounts are ``Money``.
    - Determinism: identical inputs always produce identical outputs.
    - Engines never raise on malformed sessions; ``validate_calculation``
      reports what went wrong.

Audit relevance:
    Engine invocations are traced via ``@traced_engine`` (see
    ``splitbill_engines.tracer``), emitting SPLITBILL_ENGINE_TRACE records
    with engine name, version, input fingerprint and duration.

Usage:
    from splitbill_engines.split import SplitEngine
    from splitbill_engines.settlement import generate_settlement_transfers
    from splitbill_engines.tax import MalaysianTaxCalculator
"""

from splitbill_kernel.logging_config import get_logger

logger = get_logger("engines")

from splitbill_engines.allocation import (
    AllocationEngine,
    AllocationLine,
    AllocationResult,
)
from splitbill_engines.settlement import (
    PaymentInstruction,
    PaymentInstructions,
    SettlementEngine,
    SettlementPolicy,
    SettlementTransfer,
    calculate_payment_instructions,
    generate_settlement_transfers,
)
from splitbill_engines.split import (
    BillSplit,
    BillSplitShare,
    CalculationResult,
    CalculationSummary,
    ItemContribution,
    ParticipantBalance,
    SplitEngine,
    calculate_bill_split,
    calculate_participant_balances,
    calculate_session,
    refresh_participant_totals,
    validate_calculation,
)
from splitbill_engines.tax import (
    COMMON_ITEMS,
    MalaysianTaxCalculator,
    TaxableItem,
    TaxBreakdown,
    TaxCalculationResult,
    TaxSuggestion,
    apply_malaysian_rounding,
    calculate_item_tax,
    calculate_taxes,
    format_currency,
    suggest_tax_settings,
    taxable_items_from_session,
)
from splitbill_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Allocation
    "AllocationEngine",
    "AllocationLine",
    "AllocationResult",
    # Tax
    "COMMON_ITEMS",
    "MalaysianTaxCalculator",
    "TaxableItem",
    "TaxBreakdown",
    "TaxCalculationResult",
    "TaxSuggestion",
    "apply_malaysian_rounding",
    "calculate_item_tax",
    "calculate_taxes",
    "format_currency",
    "suggest_tax_settings",
    "taxable_items_from_session",
    # Split
    "BillSplit",
    "BillSplitShare",
    "CalculationResult",
    "CalculationSummary",
    "ItemContribution",
    "ParticipantBalance",
    "SplitEngine",
    "calculate_bill_split",
    "calculate_participant_balances",
    "calculate_session",
    "refresh_participant_totals",
    "validate_calculation",
    # Settlement
    "PaymentInstruction",
    "PaymentInstructions",
    "SettlementEngine",
    "SettlementPolicy",
    "SettlementTransfer",
    "calculate_payment_instructions",
    "generate_settlement_transfers",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
