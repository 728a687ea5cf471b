"""
Unit tests for amm_engine/price_math.py
"""

import pytest

from amm_engine.constants import WAD
from amm_engine.exceptions import ArithmeticUnderflow, LengthMismatch
from amm_engine.price_math import (
    correlation,
    covariance,
    geometric_mean,
    mean,
    price_deviation_bps,
    price_impact_bps,
    spot_price,
    standard_deviation,
    variance,
    volatility,
    weighted_average,
)


def test_spot_price():
    assert spot_price(1_000, 2_000) == 2 * WAD
    assert spot_price(2_000, 1_000) == WAD // 2


def test_spot_price_empty_pool():
    assert spot_price(0, 1_000) == 0
    assert spot_price(1_000, 0) == 0


def test_spot_price_rejects_negative_reserves():
    with pytest.raises(ArithmeticUnderflow):
        spot_price(-1, 1_000)


def test_price_impact_bps():
    # 1 / (100 + 1) of the pool
    assert price_impact_bps(1, 100, 100) == 99
    assert price_impact_bps(100, 100, 100) == 5_000
    assert price_impact_bps(0, 100, 100) == 0


def test_price_impact_empty_pool():
    assert price_impact_bps(10, 0, 100) == 10_000
    assert price_impact_bps(10, 100, 0) == 10_000


def test_price_deviation_bps():
    assert price_deviation_bps(100, 110) == 909
    assert price_deviation_bps(110, 100) == 909
    assert price_deviation_bps(0, 0) == 0
    assert price_deviation_bps(0, 5) == 10_000


class TestAverages:
    def test_mean(self):
        assert mean([1, 2, 3, 4]) == 2
        assert mean([]) == 0

    def test_geometric_mean(self):
        assert geometric_mean([WAD, 4 * WAD]) == 2 * WAD
        assert geometric_mean([2 * WAD, 2 * WAD, 2 * WAD]) == 2 * WAD
        assert geometric_mean([]) == 0

    def test_geometric_mean_with_zero(self):
        assert geometric_mean([WAD, 0, 3 * WAD]) == 0

    def test_geometric_mean_not_above_arithmetic(self):
        values = [WAD, 3 * WAD, 7 * WAD, 11 * WAD]
        assert geometric_mean(values) <= mean(values)

    def test_weighted_average(self):
        assert weighted_average([100, 200], [3, 1]) == 125
        assert weighted_average([100, 200], [0, 0]) == 0

    def test_weighted_average_length_mismatch(self):
        with pytest.raises(LengthMismatch) as exc_info:
            weighted_average([1, 2, 3], [1, 2])
        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2


class TestDispersion:
    def test_variance(self):
        assert variance([2, 4, 4, 4, 5, 5, 7, 9]) == 32 // 7
        assert variance([5]) == 0
        assert variance([]) == 0

    def test_standard_deviation(self):
        assert standard_deviation([98, 102]) == 2
        assert standard_deviation([7, 7, 7]) == 0

    def test_volatility(self):
        prices = [99 * WAD, 101 * WAD]
        # stddev sqrt(2) WAD over mean 100 WAD
        assert abs(volatility(prices) - 14142135623730950) < 10
        assert volatility([0, 0]) == 0
        assert volatility([5 * WAD] * 4) == 0

    def test_covariance_signed(self):
        assert covariance([1, 2, 3], [1, 2, 3]) == 1
        assert covariance([1, 2, 3], [3, 2, 1]) == -1

    def test_covariance_length_mismatch(self):
        with pytest.raises(LengthMismatch):
            covariance([1, 2], [1])

    def test_correlation_perfect(self):
        xs = [WAD, 2 * WAD, 3 * WAD, 4 * WAD]
        assert correlation(xs, xs) == WAD
        assert correlation(xs, list(reversed(xs))) == -WAD

    def test_correlation_degenerate(self):
        assert correlation([1], [2]) == 0
        assert correlation([5, 5, 5], [1, 2, 3]) == 0

    def test_correlation_bounded(self):
        xs = [10, 20, 13, 41, 7]
        ys = [3, 9, 2, 8, 1]
        assert -WAD <= correlation(xs, ys) <= WAD

    def test_correlation_length_mismatch(self):
        with pytest.raises(LengthMismatch):
            correlation([1, 2, 3], [1, 2])
