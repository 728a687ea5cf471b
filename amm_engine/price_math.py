"""
Stateless pricing and statistics helpers.

Spot prices, price impact and deviation are WAD/bps integers computed from
raw reserves. The statistics helpers (mean, geometric mean, weighted average,
sample variance, standard deviation, covariance, Pearson correlation) work on
sequences of WAD prices and feed the TWAP confidence band and the arbitrage
risk scores.

Degenerate inputs are not errors: empty series, a single sample or a
zero-variance series all resolve to 0.
"""

from typing import Sequence

from .constants import BPS_DENOMINATOR, WAD
from .fixed_point import abs_diff, check_uint256, mul_div, sqrt
from .utils import require_same_length


# ============================================================================
# Spot price and impact
# ============================================================================


def spot_price(reserve_in: int, reserve_out: int) -> int:
    """
    WAD price of the input token quoted in the output token.

    Returns 0 for an empty pool.
    """
    check_uint256(reserve_in, "spot_price")
    check_uint256(reserve_out, "spot_price")
    if reserve_in == 0 or reserve_out == 0:
        return 0
    return mul_div(reserve_out, WAD, reserve_in)


def price_impact_bps(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Execution price impact of a constant-product swap in basis points.

    impact = 1 - execution_price / spot_price = amount_in / (reserve_in + amount_in)

    An empty pool reports the full 10000 bps.
    """
    check_uint256(amount_in, "price_impact_bps")
    if reserve_in == 0 or reserve_out == 0:
        return BPS_DENOMINATOR
    if amount_in == 0:
        return 0
    return mul_div(amount_in, BPS_DENOMINATOR, reserve_in + amount_in)


def price_deviation_bps(price_a: int, price_b: int) -> int:
    """Relative deviation |a - b| / max(a, b) in basis points."""
    larger = price_a if price_a > price_b else price_b
    if larger == 0:
        return 0
    return mul_div(abs_diff(price_a, price_b), BPS_DENOMINATOR, larger)


# ============================================================================
# Averages
# ============================================================================


def mean(values: Sequence[int]) -> int:
    """Floor of the arithmetic mean; 0 for an empty series."""
    if not values:
        return 0
    return sum(check_uint256(v, "mean") for v in values) // len(values)


def _integer_root(x: int, n: int) -> int:
    """floor(x ** (1/n)) by Newton iteration from an overestimate."""
    if x < 2 or n == 1:
        return x
    z = 1 << -(-x.bit_length() // n)
    while True:
        y = ((n - 1) * z + x // z ** (n - 1)) // n
        if y >= z:
            return z
        z = y


def geometric_mean(values: Sequence[int]) -> int:
    """
    Geometric mean of WAD values, returned as WAD.

    The product of n WAD values carries a WAD^n scale, so its integer n-th
    root lands back on WAD. Any zero sample makes the mean zero.
    """
    if not values:
        return 0
    product = 1
    for value in values:
        check_uint256(value, "geometric_mean")
        if value == 0:
            return 0
        product *= value
    return _integer_root(product, len(values))


def weighted_average(values: Sequence[int], weights: Sequence[int]) -> int:
    """
    Weighted arithmetic mean sum(v * w) / sum(w).

    Raises:
        LengthMismatch: If values and weights differ in length
    """
    require_same_length("values", values, "weights", weights)
    total_weight = 0
    weighted_sum = 0
    for value, weight in zip(values, weights):
        check_uint256(value, "weighted_average")
        check_uint256(weight, "weighted_average")
        weighted_sum += value * weight
        total_weight += weight
    if total_weight == 0:
        return 0
    return check_uint256(weighted_sum // total_weight, "weighted_average")


# ============================================================================
# Dispersion
# ============================================================================


def variance(values: Sequence[int]) -> int:
    """Sample variance (n - 1 denominator); 0 with fewer than two samples."""
    n = len(values)
    if n < 2:
        return 0
    avg = mean(values)
    return sum((v - avg) ** 2 for v in values) // (n - 1)


def standard_deviation(values: Sequence[int]) -> int:
    """Sample standard deviation, in the same scale as the inputs."""
    return sqrt(variance(values))


def volatility(prices: Sequence[int]) -> int:
    """
    Relative volatility: sample standard deviation over the mean, as WAD.

    0.05 * WAD means prices scatter 5% around their mean.
    """
    avg = mean(prices)
    if avg == 0:
        return 0
    return mul_div(standard_deviation(prices), WAD, avg)


def covariance(xs: Sequence[int], ys: Sequence[int]) -> int:
    """
    Signed sample covariance of two parallel series.

    Raises:
        LengthMismatch: If the series differ in length
    """
    require_same_length("xs", xs, "ys", ys)
    n = len(xs)
    if n < 2:
        return 0
    mean_x = mean(xs)
    mean_y = mean(ys)
    total = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    return _truncating_div(total, n - 1)


def correlation(xs: Sequence[int], ys: Sequence[int]) -> int:
    """
    Pearson correlation of two series as a signed WAD in [-WAD, WAD].

    Returns 0 with fewer than two samples or when either series has zero
    variance.

    Raises:
        LengthMismatch: If the series differ in length
    """
    require_same_length("xs", xs, "ys", ys)
    if len(xs) < 2:
        return 0
    var_x = variance(xs)
    var_y = variance(ys)
    if var_x == 0 or var_y == 0:
        return 0
    denominator = _integer_root(var_x * var_y, 2)
    if denominator == 0:
        return 0
    result = _truncating_div(covariance(xs, ys) * WAD, denominator)
    return max(-WAD, min(result, WAD))


def _truncating_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero, for signed statistics."""
    quotient = abs(numerator) // denominator
    return -quotient if numerator < 0 else quotient
