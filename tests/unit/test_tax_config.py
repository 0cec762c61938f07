"""Unit tests for TaxConfig (splitbill_kernel.domain.tax_config)."""

import pytest
from decimal import Decimal

from splitbill_kernel.domain.tax_config import (
    DEFAULT_TAX_CONFIG,
    ServiceChargeScope,
    TaxConfig,
)


class TestTaxConfigDefaults:

    def test_malaysian_defaults(self):
        config = TaxConfig()
        assert config.sst_rate == Decimal("0.06")
        assert config.service_charge_rate == Decimal("0.10")
        assert config.service_charge_scope is ServiceChargeScope.ALL_PARTICIPANTS
        assert config.sst_enabled
        assert config.service_charge_enabled
        assert config.currency == "MYR"

    def test_default_instance_matches(self):
        assert DEFAULT_TAX_CONFIG == TaxConfig()

    def test_sst_only(self):
        config = TaxConfig.sst_only()
        assert config.effective_sst_rate == Decimal("0.06")
        assert config.effective_service_charge_rate == Decimal("0")


class TestTaxConfigValidation:

    def test_string_rates_coerced(self):
        config = TaxConfig(sst_rate="0.08")
        assert config.sst_rate == Decimal("0.08")

    @pytest.mark.parametrize("rate", ["-0.01", "1.5", "NaN"])
    def test_out_of_range_rate_rejected(self, rate):
        with pytest.raises(ValueError, match="must be between 0 and 1"):
            TaxConfig(service_charge_rate=Decimal(rate))

    def test_scope_from_string(self):
        config = TaxConfig(service_charge_scope="item_sharers_only")
        assert config.service_charge_scope is ServiceChargeScope.ITEM_SHARERS_ONLY

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValueError):
            TaxConfig(service_charge_scope="everyone")

    def test_unknown_currency_rejected(self):
        with pytest.raises(ValueError):
            TaxConfig(currency="ZZZ")


class TestTaxConfigDerived:

    def test_from_flags_sharers_only(self):
        config = TaxConfig.from_flags(apply_service_charge_to_all=False)
        assert config.service_charge_scope is ServiceChargeScope.ITEM_SHARERS_ONLY
        assert not config.apply_service_charge_to_all

    def test_from_flags_all(self):
        assert TaxConfig.from_flags(sst_rate="0.08").apply_service_charge_to_all

    def test_disabled_terms_have_zero_effective_rate(self):
        config = TaxConfig(sst_enabled=False, service_charge_enabled=False)
        assert config.effective_sst_rate == Decimal("0")
        assert config.effective_service_charge_rate == Decimal("0")
        assert config.sst_rate == Decimal("0.06")

    def test_with_overrides_revalidates(self):
        with pytest.raises(ValueError):
            DEFAULT_TAX_CONFIG.with_overrides(sst_rate=Decimal("2"))

    def test_with_overrides_leaves_original(self):
        changed = DEFAULT_TAX_CONFIG.with_overrides(service_charge_enabled=False)
        assert not changed.service_charge_enabled
        assert DEFAULT_TAX_CONFIG.service_charge_enabled

    def test_as_dict(self):
        assert TaxConfig.sst_only().as_dict() == {
            "sst_rate": "0.06",
            "service_charge_rate": "0.10",
            "service_charge_scope": "all_participants",
            "sst_enabled": True,
            "service_charge_enabled": False,
            "currency": "MYR",
        }
