"""
Unit tests for amm_engine/fees.py
"""

import unittest

import pytest

from amm_engine.constants import MAX_UINT256, WAD
from amm_engine.exceptions import (
    ArithmeticUnderflow,
    LengthMismatch,
    SharesExceedTotal,
    ValidationError,
)
from amm_engine.fees import (
    FeeBreakdown,
    FeeConfig,
    apply_fee,
    dynamic_fee,
    estimate_gas_fee,
    fee_distribution,
    flash_fee,
    tiered_fee,
    total_fee_breakdown,
    trading_fee,
    volume_discount,
)


class TestSingleComponentFees(unittest.TestCase):
    """Test the individual fee helpers."""

    def test_trading_fee(self):
        self.assertEqual(trading_fee(1_000_000, 30, 0, 1_000_000), 3000)

    def test_trading_fee_clamps(self):
        self.assertEqual(trading_fee(100, 30, 50, 1_000), 50)
        self.assertEqual(trading_fee(1_000_000, 30, 0, 1_000), 1_000)

    def test_trading_fee_min_above_max(self):
        with self.assertRaises(ValidationError):
            trading_fee(1_000, 30, 10, 5)

    def test_dynamic_fee_neutral(self):
        self.assertEqual(dynamic_fee(30, 0, WAD, 100), 30)

    def test_dynamic_fee_volatility(self):
        self.assertEqual(dynamic_fee(30, WAD // 2, WAD, 100), 45)
        self.assertEqual(dynamic_fee(30, WAD, WAD, 100), 60)
        # volatility multiplier saturates at 2x
        self.assertEqual(dynamic_fee(30, 5 * WAD, WAD, 1_000), 60)

    def test_dynamic_fee_liquidity(self):
        self.assertEqual(dynamic_fee(30, 0, 0, 1_000), 60)
        self.assertEqual(dynamic_fee(30, 0, WAD // 2, 1_000), 45)
        self.assertEqual(dynamic_fee(30, 0, 3 * WAD, 1_000), 30)

    def test_dynamic_fee_capped(self):
        self.assertEqual(dynamic_fee(30, WAD, 0, 1_000), 120)
        self.assertEqual(dynamic_fee(30, WAD, 0, 100), 100)

    def test_flash_fee(self):
        self.assertEqual(flash_fee(1_000_000, 9, 5), 1_400)
        self.assertEqual(flash_fee(1_000_000, 9, 0), 900)

    def test_estimate_gas_fee(self):
        self.assertEqual(estimate_gas_fee(100_000, 20, 1_000), 2_200_000)
        self.assertEqual(estimate_gas_fee(100_000, 20, 0), 2_000_000)

    def test_apply_fee(self):
        self.assertEqual(apply_fee(1_000_000, 30), 997_000)


class TestFeeConfig:
    def test_defaults(self):
        config = FeeConfig()
        assert config.base_fee_bps == 30
        assert config.max_fee == MAX_UINT256
        assert config.flash_enabled

    def test_flash_disabled(self):
        assert not FeeConfig(flash_fee_bps=0).flash_enabled

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base_fee_bps": 10_001},
            {"gas_buffer_bps": -1},
            {"min_fee": 10, "max_fee": 5},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            FeeConfig(**kwargs)

    def test_negative_max_fee(self):
        with pytest.raises(ArithmeticUnderflow):
            FeeConfig(max_fee=-1)


class TestTotalFeeBreakdown:
    @pytest.fixture
    def config(self):
        return FeeConfig(
            base_fee_bps=30,
            dynamic_fee_cap_bps=100,
            flash_fee_bps=9,
            flash_premium_bps=0,
            gas_buffer_bps=1_000,
            min_fee=0,
            max_fee=10**30,
        )

    def test_components(self, config):
        breakdown = total_fee_breakdown(1_000_000, config, 0, WAD, 100_000, 20)
        assert breakdown.trading_fee == 3_000
        assert breakdown.flash_fee == 900
        assert breakdown.gas_fee == 2_200_000
        assert breakdown.protocol_fee == 300
        assert breakdown.total_fee == 2_204_200
        assert not breakdown.is_clamped

    def test_flash_fee_only_when_enabled(self, config):
        no_flash = FeeConfig(flash_fee_bps=0, max_fee=10**30)
        breakdown = total_fee_breakdown(1_000_000, no_flash, 0, WAD, 100_000, 20)
        assert breakdown.flash_fee == 0

    def test_uses_dynamic_rate(self, config):
        breakdown = total_fee_breakdown(1_000_000, config, WAD, WAD, 0, 0)
        assert breakdown.trading_fee == 6_000
        assert breakdown.protocol_fee == 600

    def test_total_clamped_after_sum(self, config):
        capped = FeeConfig(
            base_fee_bps=30,
            dynamic_fee_cap_bps=100,
            flash_fee_bps=9,
            gas_buffer_bps=1_000,
            max_fee=5_000,
        )
        breakdown = total_fee_breakdown(1_000_000, capped, 0, WAD, 10, 100)
        # components stay unclamped: 3000 + 900 + 1100 + 300 = 5300
        assert breakdown.trading_fee == 3_000
        assert breakdown.flash_fee == 900
        assert breakdown.gas_fee == 1_100
        assert breakdown.protocol_fee == 300
        assert breakdown.component_sum == 5_300
        assert breakdown.total_fee == 5_000
        assert breakdown.is_clamped
        assert "(clamped)" in breakdown.format_log()

    @pytest.mark.parametrize("amount", [0, 1, 10_000, 10**12, 10**24])
    @pytest.mark.parametrize("volatility", [0, WAD // 3, 2 * WAD])
    def test_total_never_exceeds_max_fee(self, amount, volatility):
        config = FeeConfig(max_fee=50_000)
        breakdown = total_fee_breakdown(amount, config, volatility, WAD // 4, 21_000, 3)
        assert breakdown.total_fee <= config.max_fee
        assert breakdown.trading_fee <= config.max_fee

    def test_to_dict(self, config):
        breakdown = total_fee_breakdown(1_000_000, config, 0, WAD, 1, 1)
        assert breakdown.to_dict() == {
            "trading_fee": 3_000,
            "flash_fee": 900,
            "gas_fee": 1,
            "protocol_fee": 300,
            "total_fee": 4_201,
        }


class TestTieredFees:
    THRESHOLDS = [1_000, 10_000, 100_000]
    RATES = [30, 20, 10]

    def test_tiered_fee(self):
        assert tiered_fee(50_000, self.THRESHOLDS, self.RATES) == 100
        assert tiered_fee(100_000, self.THRESHOLDS, self.RATES) == 100
        assert tiered_fee(5_000, self.THRESHOLDS, self.RATES) == 15

    def test_tiered_fee_below_all_thresholds(self):
        assert tiered_fee(500, self.THRESHOLDS, self.RATES) == 0
        assert tiered_fee(500, self.THRESHOLDS, self.RATES, default_fee_bps=50) == 2

    def test_tiered_fee_unsorted_thresholds(self):
        thresholds = [100_000, 1_000, 10_000]
        rates = [10, 30, 20]
        assert tiered_fee(50_000, thresholds, rates) == 100

    def test_tiered_fee_length_mismatch(self):
        with pytest.raises(LengthMismatch):
            tiered_fee(1_000, [1, 2], [1])

    def test_volume_discount(self):
        assert volume_discount(250_000, [100_000, 1_000_000], [5, 10]) == 5
        assert volume_discount(2_000_000, [100_000, 1_000_000], [5, 10]) == 10
        assert volume_discount(10, [100_000, 1_000_000], [5, 10]) == 0

    def test_volume_discount_length_mismatch(self):
        with pytest.raises(LengthMismatch):
            volume_discount(1, [1], [])


class TestFeeDistribution:
    def test_split(self):
        split = fee_distribution(10_000, 1_000, 2_000, 5_000)
        assert split.protocol == 1_000
        assert split.treasury == 2_000
        assert split.liquidity == 5_000
        assert split.remainder == 2_000

    def test_rounding_remainder(self):
        split = fee_distribution(7, 3_333, 3_333, 3_334)
        assert (split.protocol, split.treasury, split.liquidity) == (2, 2, 2)
        assert split.remainder == 1

    def test_shares_exceed_total(self):
        with pytest.raises(SharesExceedTotal) as exc_info:
            fee_distribution(10_000, 5_000, 5_000, 1)
        assert exc_info.value.total_bps == 10_001


def test_fee_breakdown_component_sum():
    breakdown = FeeBreakdown(
        trading_fee=1, flash_fee=2, gas_fee=3, protocol_fee=4, total_fee=10
    )
    assert breakdown.component_sum == 10
    assert not breakdown.is_clamped
