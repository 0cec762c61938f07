"""
Tax Engine - Malaysian SST and service charge.

Responsibility:
    Map a list of taxable line items to a tax breakdown under the
    Malaysian scheme: service charge on the base amount first, then SST
    per item on (base + that item's own service charge), then the retail
    5-sen rounding of the final total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import splitbill_kernel. Rates arrive through ``TaxConfig``.

Invariants enforced:
    - Exempt items count towards the subtotal and nothing else.
    - SST is summed per item and rounded once, never on an aggregate base.
    - 5-sen rounding is exact integer arithmetic on sen.
    - ``final_total - total_before_rounding`` never exceeds 0.025 in magnitude.

Failure modes:
    - No raises. Negative amounts are a caller contract violation and are
      computed as given; non-finite amounts propagate into the result.

Usage:
    from splitbill_engines.tax import MalaysianTaxCalculator, TaxableItem
    from splitbill_kernel.domain.values import Money

    result = MalaysianTaxCalculator().calculate_taxes([
        TaxableItem(Money.of("100.00"), has_sst=True, has_service_charge=True),
    ])
    print(result.service_charge_amount)  # Money: 10.00 MYR
    print(result.sst_amount)             # Money: 6.60 MYR
    print(result.final_total)            # Money: 116.60 MYR
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from splitbill_engines.tracer import traced_engine
from splitbill_kernel.domain.session import BillItem
from splitbill_kernel.domain.tax_config import DEFAULT_TAX_CONFIG, TaxConfig
from splitbill_kernel.domain.values import DEFAULT_CURRENCY, Currency, Money
from splitbill_kernel.logging_config import amount_fields, get_logger

logger = get_logger("engines.tax")


@dataclass(frozen=True)
class TaxableItem:
    """
    One line of tax engine input.

    ``has_service_charge`` is not stored on a ``BillItem``; callers set it
    ad hoc (see ``taxable_items_from_session``).
    """

    amount: Money
    has_sst: bool = False
    has_service_charge: bool = False
    is_exempt: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Money):
            object.__setattr__(self, "amount", Money.of(self.amount))


@dataclass(frozen=True)
class TaxCalculationResult:
    """
    Complete tax breakdown for a list of items.

    All fields except ``total_before_rounding`` are rounded to sen.
    """

    subtotal: Money
    service_charge_amount: Money
    sst_amount: Money
    total_before_rounding: Money
    rounding_adjustment: Money
    final_total: Money

    @property
    def tax_total(self) -> Money:
        return self.service_charge_amount + self.sst_amount


@dataclass(frozen=True)
class TaxBreakdown:
    """Tax breakdown for a single item preview."""

    subtotal: Money
    service_charge: Money
    sst_amount: Money
    total: Money
    rounding_adjustment: Money


@dataclass(frozen=True)
class TaxSuggestion:
    """Typical tax treatment of a named menu item."""

    has_sst: bool
    has_service_charge: bool
    reason: str


_EXEMPT_REASON = "Basic food items are typically SST-exempt"
_FAST_FOOD_REASON = "Fast food items are typically subject to SST"
_BEVERAGE_REASON = "Beverages are typically subject to SST"
_RESTAURANT_REASON = "Restaurant items typically have both SST and service charge"

# Insertion order is the partial-match precedence.
COMMON_ITEMS: dict[str, TaxSuggestion] = {
    "rice": TaxSuggestion(False, False, _EXEMPT_REASON),
    "nasi lemak": TaxSuggestion(False, False, _EXEMPT_REASON),
    "roti canai": TaxSuggestion(False, False, _EXEMPT_REASON),
    "teh tarik": TaxSuggestion(False, False, _EXEMPT_REASON),
    "kopi": TaxSuggestion(False, False, _EXEMPT_REASON),
    "burger": TaxSuggestion(True, False, _FAST_FOOD_REASON),
    "pizza": TaxSuggestion(True, False, _FAST_FOOD_REASON),
    "coffee": TaxSuggestion(True, False, _BEVERAGE_REASON),
    "western food": TaxSuggestion(True, False, _FAST_FOOD_REASON),
    "fine dining": TaxSuggestion(True, True, _RESTAURANT_REASON),
    "hotel restaurant": TaxSuggestion(True, True, _RESTAURANT_REASON),
}

DEFAULT_SUGGESTION = TaxSuggestion(False, False, "Default: no taxes applied")


def _round_sen(amount: Decimal, currency: Currency) -> Decimal:
    if not amount.is_finite():
        return amount
    return amount.quantize(Decimal(10) ** -currency.decimal_places, rounding=ROUND_HALF_UP)


def apply_malaysian_rounding(amount: Money | Decimal) -> Money | Decimal:
    """
    Round to the nearest 5 sen.

    Works on whole sen: a last digit of 0-2 rounds down to the ten, 3-7
    goes to the five, 8-9 rounds up to the next ten. Returns the same type
    it was given; a bare Decimal is treated as ringgit.

    >>> apply_malaysian_rounding(Decimal("10.03"))
    Decimal('10.05')
    """
    if isinstance(amount, Money):
        if not amount.is_finite:
            return amount
        sen = amount.to_minor_units()
        return Money.from_minor_units(_round_sen_to_five(sen), amount.currency)

    if not amount.is_finite():
        return amount
    sen = int(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP).scaleb(2))
    return Decimal(_round_sen_to_five(sen)).scaleb(-2)


def _round_sen_to_five(sen: int) -> int:
    last_digit = sen % 10
    if last_digit <= 2:
        return sen - last_digit
    if last_digit <= 7:
        return sen - last_digit + 5
    return sen - last_digit + 10


class MalaysianTaxCalculator:
    """
    Calculate Malaysian SST and service charge.

    Stateless apart from the injected ``TaxConfig``: a disabled tax term
    contributes zero whatever the item flags say.
    """

    def __init__(self, config: TaxConfig = DEFAULT_TAX_CONFIG) -> None:
        self.config = config

    @traced_engine("tax", "1.0", fingerprint_fields=("items",))
    def calculate_taxes(self, items: Sequence[TaxableItem]) -> TaxCalculationResult:
        """
        Calculate the tax breakdown of ``items``.

        An empty list yields an all-zero breakdown.
        """
        t0 = time.monotonic()
        currency = Currency(self.config.currency)
        sc_rate = self.config.effective_service_charge_rate
        sst_rate = self.config.effective_sst_rate

        logger.info("tax_calculation_started", extra={
            "item_count": len(items),
            "sst_rate": str(sst_rate),
            "service_charge_rate": str(sc_rate),
        })

        subtotal = Decimal("0")
        service_charge_base = Decimal("0")
        sst_sum = Decimal("0")
        exempt_count = 0

        with localcontext() as ctx:
            # NaN and Infinity propagate as NaN instead of raising
            ctx.traps[InvalidOperation] = False

            for item in items:
                amount = item.amount.amount
                subtotal += amount
                if item.is_exempt:
                    exempt_count += 1
                    continue
                if item.has_service_charge:
                    service_charge_base += amount
                if item.has_sst:
                    item_service_charge = amount * sc_rate if item.has_service_charge else Decimal("0")
                    sst_sum += (amount + item_service_charge) * sst_rate

            service_charge_amount = _round_sen(service_charge_base * sc_rate, currency)
            sst_amount = _round_sen(sst_sum, currency)
            subtotal = _round_sen(subtotal, currency)

            total_before_rounding = Money(subtotal + service_charge_amount + sst_amount, currency)
            final_total = apply_malaysian_rounding(total_before_rounding)

            result = TaxCalculationResult(
                subtotal=Money(subtotal, currency),
                service_charge_amount=Money(service_charge_amount, currency),
                sst_amount=Money(sst_amount, currency),
                total_before_rounding=total_before_rounding,
                rounding_adjustment=(final_total - total_before_rounding).round(),
                final_total=final_total,
            )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("tax_calculation_completed", extra={
            **amount_fields(
                subtotal=result.subtotal,
                service_charge_amount=result.service_charge_amount,
                sst_amount=result.sst_amount,
                final_total=result.final_total,
                rounding_adjustment=result.rounding_adjustment,
            ),
            "exempt_count": exempt_count,
            "duration_ms": duration_ms,
        })
        return result

    def calculate_item_tax(
        self,
        amount: Money,
        has_sst: bool,
        has_service_charge: bool = False,
    ) -> TaxBreakdown:
        """Breakdown for a single non-exempt item."""
        result = self.calculate_taxes([
            TaxableItem(amount=amount, has_sst=has_sst, has_service_charge=has_service_charge),
        ])
        return TaxBreakdown(
            subtotal=result.subtotal,
            service_charge=result.service_charge_amount,
            sst_amount=result.sst_amount,
            total=result.final_total,
            rounding_adjustment=result.rounding_adjustment,
        )


def calculate_taxes(
    items: Sequence[TaxableItem],
    config: TaxConfig = DEFAULT_TAX_CONFIG,
) -> TaxCalculationResult:
    """Module-level shortcut for ``MalaysianTaxCalculator(config).calculate_taxes``."""
    return MalaysianTaxCalculator(config).calculate_taxes(items)


def calculate_item_tax(
    amount: Money | Decimal | str,
    has_sst: bool,
    has_service_charge: bool = False,
    config: TaxConfig = DEFAULT_TAX_CONFIG,
) -> TaxBreakdown:
    if not isinstance(amount, Money):
        amount = Money.of(amount, config.currency)
    return MalaysianTaxCalculator(config).calculate_item_tax(amount, has_sst, has_service_charge)


def suggest_tax_settings(item_name: str) -> TaxSuggestion:
    """
    Suggest SST and service-charge flags for a menu item name.

    Exact (case-insensitive) match first, then the first table entry where
    either name contains the other. A blank name gets the default.
    """
    name = (item_name or "").lower().strip()
    if not name:
        return DEFAULT_SUGGESTION

    if name in COMMON_ITEMS:
        return COMMON_ITEMS[name]

    for key, suggestion in COMMON_ITEMS.items():
        if key in name or name in key:
            logger.debug("tax_suggestion_partial_match", extra={
                "item_name": name,
                "matched_key": key,
            })
            return suggestion

    return DEFAULT_SUGGESTION


def taxable_items_from_session(
    items: Iterable[BillItem],
    service_charge: bool = True,
) -> list[TaxableItem]:
    """
    Build tax engine input from stored bill items.

    ``service_charge`` is applied to every item, since the stored model
    carries no per-item service-charge flag.
    """
    return [
        TaxableItem(
            amount=item.total_amount,
            has_sst=item.has_sst,
            has_service_charge=service_charge,
            is_exempt=False,
        )
        for item in items
    ]


def format_currency(amount: Money | Decimal | str, currency: str = DEFAULT_CURRENCY) -> str:
    """Display string such as ``RM 1,234.56``."""
    if not isinstance(amount, Money):
        amount = Money.of(amount, currency) if isinstance(amount, str) else Money(amount, currency)
    return amount.format()
