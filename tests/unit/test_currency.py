"""
Tests for currency validation and precision.

- Currency codes are validated at the domain boundary.
- Rounding tolerance is derived from currency precision, never hardcoded.
"""

import pytest
from decimal import Decimal

from splitbill_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from splitbill_kernel.domain.values import Currency, Money


class TestCurrencyRegistry:
    """ISO 4217 enforcement."""

    def test_valid_currency_codes_accepted(self):
        """Registered codes are accepted and returned normalized."""
        for code in ["MYR", "SGD", "USD", "JPY"]:
            assert CurrencyRegistry.is_valid(code)
            assert CurrencyRegistry.validate(code) == code

    def test_lowercase_codes_normalized(self):
        assert CurrencyRegistry.validate("myr") == "MYR"
        assert CurrencyRegistry.validate("sgd") == "SGD"

    def test_whitespace_trimmed(self):
        assert CurrencyRegistry.validate(" MYR ") == "MYR"
        assert CurrencyRegistry.validate("MYR ") == "MYR"

    def test_invalid_currency_codes_rejected(self):
        for code in ["XXY", "ABC", "123", "RM", "MYRR", "", "X"]:
            assert not CurrencyRegistry.is_valid(code)

    def test_non_string_rejected(self):
        assert not CurrencyRegistry.is_valid(None)
        assert not CurrencyRegistry.is_valid(458)

    def test_validate_raises_on_invalid_code(self):
        with pytest.raises(ValueError, match="Invalid ISO 4217 currency code"):
            CurrencyRegistry.validate("XXY")

    def test_validate_raises_on_wrong_length(self):
        with pytest.raises(ValueError, match="must be 3 characters"):
            CurrencyRegistry.validate("RM")

    def test_validate_raises_on_empty(self):
        with pytest.raises(ValueError, match="Invalid currency code"):
            CurrencyRegistry.validate("")

    def test_all_codes_contains_ringgit(self):
        assert "MYR" in CurrencyRegistry.all_codes()


class TestPrecisionDerivedTolerance:
    """Tolerance follows the currency's decimal places."""

    def test_ringgit_tolerance_is_one_sen(self):
        assert CurrencyRegistry.get_rounding_tolerance("MYR") == Decimal("0.01")

    def test_zero_decimal_currency_tolerance(self):
        assert CurrencyRegistry.get_decimal_places("JPY") == 0
        assert CurrencyRegistry.get_rounding_tolerance("JPY") == Decimal("1")

    def test_unknown_currency_defaults_to_two_places(self):
        assert CurrencyRegistry.get_decimal_places("XXX") == 2
        assert CurrencyRegistry.get_rounding_tolerance("XXX") == Decimal("0.01")

    def test_currency_info_quantize_string(self):
        info = CurrencyInfo("MYR", 2, "Malaysian Ringgit", "RM")
        assert info.quantize_string == "0.00"
        assert CurrencyInfo("JPY", 0, "Japanese Yen", "¥").quantize_string == "1"

    def test_symbol_lookup(self):
        assert CurrencyRegistry.get_symbol("MYR") == "RM"
        assert CurrencyRegistry.get_symbol("xxx") == "XXX"


class TestCurrencyValueObject:
    """Currency value object."""

    def test_normalized_on_construction(self):
        assert Currency("myr").code == "MYR"

    def test_invalid_code_raises(self):
        with pytest.raises(ValueError, match="Invalid ISO 4217 currency code"):
            Currency("ZZZ")

    def test_equality_and_hash(self):
        assert Currency("MYR") == Currency("myr")
        assert len({Currency("MYR"), Currency("MYR")}) == 1

    def test_properties(self):
        myr = Currency("MYR")
        assert myr.decimal_places == 2
        assert myr.rounding_tolerance == Decimal("0.01")
        assert myr.symbol == "RM"
        assert str(myr) == "MYR"

    def test_money_rounds_to_currency_places(self):
        assert Money.of("1234.5", "JPY").round().amount == Decimal("1235")
        assert Money.of("12.345", "MYR").round().amount == Decimal("12.35")
