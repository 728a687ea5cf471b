"""
Tick <-> sqrt price conversion for concentrated-liquidity pools.

Prices live on the discrete grid price = 1.0001^tick and are carried as
sqrtPriceX96 = sqrt(price) * 2^96. The conversions are integer-exact:

- sqrt_ratio_at_tick multiplies Q128.128 constants, one per set bit of |tick|,
  each equal to 1 / sqrt(1.0001)^(2^i), then inverts for positive ticks.
- tick_at_sqrt_ratio takes a base-2 logarithm (most significant bit plus 14
  fractional bits by successive squaring), converts it to base sqrt(1.0001)
  and picks between the two candidate ticks bracketing the error bound.
"""

from .constants import (
    FEE_AMOUNT_TICK_SPACING,
    MAX_SQRT_RATIO,
    MAX_TICK,
    MAX_UINT256,
    MIN_SQRT_RATIO,
    MIN_TICK,
    Q96,
    Q192,
    SQRT_RATIO_LOWER_BOUND,
    WAD,
)
from .exceptions import OutOfRange, ValidationError
from .fixed_point import check_uint256, mul_div, sqrt

# (bit of |tick|, Q128.128 multiplier) for bits 1..19; bit 0 seeds the ratio
_TICK_BIT_MULTIPLIERS = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)
_TICK_BIT0_MULTIPLIER = 0xFFFCB933BD6FAD37AA2D162D1A594001
_Q128_ONE = 0x100000000000000000000000000000000

# log_sqrt(1.0001)(2) as Q128.128, and the error bounds of the 14-bit log
_LOG_SQRT10001_OF_2 = 255738958999603826347141
_TICK_LOW_ERROR = 3402992956809132418596140100660247210
_TICK_HIGH_ERROR = 291339464771989622907027621153398088495


# ============================================================================
# Bit helpers
# ============================================================================


def most_significant_bit(x: int) -> int:
    """Index of the highest set bit of a positive integer."""
    if x <= 0:
        raise ValidationError("most_significant_bit requires x > 0", {"x": x})
    return x.bit_length() - 1


def least_significant_bit(x: int) -> int:
    """Index of the lowest set bit of a positive integer."""
    if x <= 0:
        raise ValidationError("least_significant_bit requires x > 0", {"x": x})
    return (x & -x).bit_length() - 1


# ============================================================================
# Tick math
# ============================================================================


def sqrt_ratio_at_tick(tick: int) -> int:
    """
    Calculate sqrt(1.0001^tick) * 2^96.

    Args:
        tick: Tick index in [MIN_TICK, MAX_TICK]

    Returns:
        sqrtPriceX96 as an integer

    Raises:
        OutOfRange: If tick is outside the tick domain
    """
    if not isinstance(tick, int):
        raise ValidationError(f"tick must be an integer, got {type(tick).__name__}")
    if tick < MIN_TICK or tick > MAX_TICK:
        raise OutOfRange(
            f"Tick {tick} out of bounds [{MIN_TICK}, {MAX_TICK}]",
            value=tick,
            lower=MIN_TICK,
            upper=MAX_TICK,
        )

    abs_tick = -tick if tick < 0 else tick

    ratio = _TICK_BIT0_MULTIPLIER if abs_tick & 0x1 else _Q128_ONE
    for bit, multiplier in _TICK_BIT_MULTIPLIERS:
        if abs_tick & bit:
            ratio = (ratio * multiplier) >> 128

    if tick > 0:
        ratio = MAX_UINT256 // ratio

    # Q128.128 -> Q64.96, rounding up so the result is never below the true root
    return (ratio >> 32) + (0 if ratio % (1 << 32) == 0 else 1)


def tick_at_sqrt_ratio(sqrt_price_x96: int) -> int:
    """
    Calculate the greatest tick whose sqrt ratio is <= sqrt_price_x96.

    Args:
        sqrt_price_x96: sqrt price as Q64.96 in
            [SQRT_RATIO_LOWER_BOUND, MAX_SQRT_RATIO)

    Returns:
        Tick index

    Raises:
        OutOfRange: If sqrt_price_x96 is outside the accepted range
    """
    check_uint256(sqrt_price_x96, "tick_at_sqrt_ratio")
    if sqrt_price_x96 < SQRT_RATIO_LOWER_BOUND or sqrt_price_x96 >= MAX_SQRT_RATIO:
        raise OutOfRange(
            f"sqrt price {sqrt_price_x96} out of bounds "
            f"[{SQRT_RATIO_LOWER_BOUND}, {MAX_SQRT_RATIO})",
            value=sqrt_price_x96,
            lower=SQRT_RATIO_LOWER_BOUND,
            upper=MAX_SQRT_RATIO,
        )
    if sqrt_price_x96 < MIN_SQRT_RATIO:
        return MIN_TICK

    ratio = sqrt_price_x96 << 32
    msb = most_significant_bit(ratio)

    if msb >= 128:
        r = ratio >> (msb - 127)
    else:
        r = ratio << (127 - msb)

    log_2 = (msb - 128) << 64

    # 14 fractional bits of log2 by repeated squaring
    for shift in range(63, 49, -1):
        r = (r * r) >> 127
        f = r >> 128
        log_2 |= f << shift
        r >>= f

    log_sqrt10001 = log_2 * _LOG_SQRT10001_OF_2

    tick_low = (log_sqrt10001 - _TICK_LOW_ERROR) >> 128
    tick_high = (log_sqrt10001 + _TICK_HIGH_ERROR) >> 128

    if tick_low == tick_high:
        return tick_low
    if sqrt_ratio_at_tick(tick_high) <= sqrt_price_x96:
        return tick_high
    return tick_low


# ============================================================================
# Price conversions
# ============================================================================


def sqrt_price_x96_to_price_wad(sqrt_price_x96: int) -> int:
    """Convert a Q64.96 sqrt price to a WAD-scaled price (token1 per token0)."""
    return mul_div(mul_div(sqrt_price_x96, sqrt_price_x96, Q96), WAD, Q96)


def price_wad_to_sqrt_price_x96(price_wad: int) -> int:
    """Convert a WAD-scaled price to a Q64.96 sqrt price, flooring."""
    return sqrt(mul_div(price_wad, Q192, WAD))


def price_wad_at_tick(tick: int) -> int:
    """WAD-scaled price 1.0001^tick."""
    return sqrt_price_x96_to_price_wad(sqrt_ratio_at_tick(tick))


def tick_at_price_wad(price_wad: int) -> int:
    """Greatest tick whose price does not exceed price_wad."""
    return tick_at_sqrt_ratio(price_wad_to_sqrt_price_x96(price_wad))


# ============================================================================
# Tick spacing
# ============================================================================


def tick_spacing_for_fee(fee: int) -> int:
    """
    Tick spacing for an enabled fee amount (hundredths of a bip).

    Raises:
        ValidationError: If the fee amount is not enabled
    """
    try:
        return FEE_AMOUNT_TICK_SPACING[fee]
    except KeyError:
        raise ValidationError(
            f"Fee amount {fee} is not enabled",
            {"enabled": sorted(FEE_AMOUNT_TICK_SPACING)},
        )


def round_tick_to_spacing(tick: int, tick_spacing: int) -> int:
    """Round a tick down to the nearest multiple of tick_spacing."""
    if tick_spacing <= 0:
        raise ValidationError(f"tick_spacing must be positive, got {tick_spacing}")
    return (tick // tick_spacing) * tick_spacing


def min_usable_tick(tick_spacing: int) -> int:
    """Lowest tick usable at the given spacing."""
    return -(-MIN_TICK // tick_spacing) * tick_spacing


def max_usable_tick(tick_spacing: int) -> int:
    """Highest tick usable at the given spacing."""
    return (MAX_TICK // tick_spacing) * tick_spacing
