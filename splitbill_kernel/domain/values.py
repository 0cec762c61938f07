"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides the value types every bill computation is expressed in:
    Currency and Money. These replace primitive floats wherever an
    amount appears in domain logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    No outward dependencies except splitbill_kernel.domain.currency.

Invariants enforced:
    - Monetary amounts are Decimal, never float arithmetic.
    - Currency codes are validated at construction time.
    - Rounding precision and tolerance derive from the currency's
      decimal places (two for MYR), never hardcoded.

Failure modes:
    - ValueError on construction with an unparseable amount or unknown currency.
    - TypeError when currency is neither a Currency nor a str.
    - ValueError when arithmetic mixes different currencies.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from splitbill_kernel.domain.currency import CurrencyRegistry

DEFAULT_CURRENCY = "MYR"


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter code, validated and uppercased on construction.

    Guarantees:
        - Immutable and hashable.
        - code is always a registered currency in CurrencyRegistry.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if self.code else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code}")
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def rounding_tolerance(self) -> Decimal:
        """Tolerance used by invariant checks (0.01 for MYR)."""
        return CurrencyRegistry.get_rounding_tolerance(self.code)

    @property
    def symbol(self) -> str:
        return CurrencyRegistry.get_symbol(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency -- they are never separated.

    Guarantees:
        - Immutable and hashable.
        - amount is always a Decimal.
        - Arithmetic enforces the same-currency constraint.

    Non-goals:
        - Does NOT auto-round -- callers must explicitly call .round().
        - Does NOT reject non-finite Decimals; the ingestion boundary does
          that, so degenerate values reaching an engine stay visible.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency = DEFAULT_CURRENCY) -> Money:
        """
        Factory method for creating Money.

        Args:
            amount: The monetary amount (no float at the call site).
            currency: ISO 4217 code or Currency object. Defaults to MYR.

        Raises:
            ValueError: If amount cannot be converted or currency is unknown.
        """
        if isinstance(amount, (str, int)):
            amount = Decimal(str(amount))
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency = DEFAULT_CURRENCY) -> Money:
        """Create a zero amount in the given currency."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def total(cls, values: Iterable[Money], currency: str | Currency = DEFAULT_CURRENCY) -> Money:
        """Sum an iterable of Money; an empty iterable yields zero in ``currency``."""
        result = cls.zero(currency)
        for value in values:
            result = result + value
        return result

    @property
    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    @property
    def is_positive(self) -> bool:
        return self.amount > Decimal("0")

    @property
    def is_negative(self) -> bool:
        return self.amount < Decimal("0")

    @property
    def is_finite(self) -> bool:
        return self.amount.is_finite()

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """
        Round to the currency's decimal places.

        Non-finite amounts are returned unchanged so the degeneracy propagates.
        """
        if not self.amount.is_finite():
            return self
        decimal_places = self.currency.decimal_places
        quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
        rounded = self.amount.quantize(Decimal(quantize_str), rounding=rounding)
        return Money(amount=rounded, currency=self.currency)

    def to_minor_units(self) -> int:
        """Whole sen (or the currency's minor unit), rounded half-up."""
        rounded = self.round()
        return int(rounded.amount.scaleb(self.currency.decimal_places))

    @classmethod
    def from_minor_units(cls, units: int, currency: str | Currency = DEFAULT_CURRENCY) -> Money:
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal(units).scaleb(-currency.decimal_places), currency=currency)

    def format(self) -> str:
        """Display string, e.g. ``RM 1,234.56``."""
        rounded = self.round()
        places = self.currency.decimal_places
        return f"{self.currency.symbol} {rounded.amount:,.{places}f}"

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot add Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot subtract Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, (int, str)):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        if isinstance(divisor, (int, str)):
            divisor = Decimal(str(divisor))
        if not isinstance(divisor, Decimal):
            return NotImplemented
        return Money(amount=self.amount / divisor, currency=self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
