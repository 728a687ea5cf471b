"""
Checked uint256 arithmetic and WAD/RAY fixed-point math.

Every entry point behaves like an unsigned 256-bit machine word that refuses
to wrap: results above MAX_UINT256 raise ArithmeticOverflow, results below
zero raise ArithmeticUnderflow and zero divisors raise DivisionByZero.
Python integers are arbitrary precision, so products are formed exactly and
only the final result is range-checked; that gives mul_div the full 512-bit
intermediate precision for free.

Conversion policy:
- WAD values are scaled by 10**18, RAY values by 10**27
- mul_wad/div_wad/mul_ray/div_ray round half up
- mul_div floors, mul_div_rounding_up ceils
- Decimal is used for display only (to_decimal), never for engine math
"""

from decimal import Decimal
from typing import Iterable

from .constants import (
    BPS_DENOMINATOR,
    HALF_RAY,
    HALF_WAD,
    MAX_UINT256,
    RAY,
    WAD,
    WAD_RAY_RATIO,
)
from .exceptions import (
    ArithmeticOverflow,
    ArithmeticUnderflow,
    DivisionByZero,
    ValidationError,
)


# ============================================================================
# Operand checks
# ============================================================================


def check_uint256(value: int, operation: str = "uint256") -> int:
    """Validate that value fits an unsigned 256-bit word and return it."""
    if not isinstance(value, int):
        raise ValidationError(
            f"{operation}: expected integer operand, got {type(value).__name__}",
            {"value": repr(value)},
        )
    if value < 0:
        raise ArithmeticUnderflow(
            f"{operation}: negative operand {value}",
            operation=operation,
            operands=(value,),
        )
    if value > MAX_UINT256:
        raise ArithmeticOverflow(
            f"{operation}: operand exceeds uint256",
            operation=operation,
            operands=(value,),
        )
    return value


def _checked_result(result: int, operation: str, *operands: int) -> int:
    if result > MAX_UINT256:
        raise ArithmeticOverflow(
            f"{operation} overflow", operation=operation, operands=operands
        )
    if result < 0:
        raise ArithmeticUnderflow(
            f"{operation} underflow", operation=operation, operands=operands
        )
    return result


def _check_operands(operation: str, *operands: int) -> None:
    for operand in operands:
        check_uint256(operand, operation)


def _require_nonzero(divisor: int, operation: str, *operands: int) -> None:
    if divisor == 0:
        raise DivisionByZero(
            f"{operation}: division by zero", operation=operation, operands=operands
        )


# ============================================================================
# Checked integer arithmetic
# ============================================================================


def add(a: int, b: int) -> int:
    """Return a + b, raising ArithmeticOverflow past uint256."""
    _check_operands("add", a, b)
    return _checked_result(a + b, "add", a, b)


def sub(a: int, b: int) -> int:
    """Return a - b, raising ArithmeticUnderflow when b > a."""
    _check_operands("sub", a, b)
    return _checked_result(a - b, "sub", a, b)


def mul(a: int, b: int) -> int:
    """Return a * b, raising ArithmeticOverflow past uint256."""
    _check_operands("mul", a, b)
    return _checked_result(a * b, "mul", a, b)


def div(a: int, b: int) -> int:
    """Return floor(a / b)."""
    _check_operands("div", a, b)
    _require_nonzero(b, "div", a, b)
    return a // b


def mod(a: int, b: int) -> int:
    """Return a mod b."""
    _check_operands("mod", a, b)
    _require_nonzero(b, "mod", a, b)
    return a % b


def minimum(a: int, b: int) -> int:
    """Return the smaller of two uint256 values."""
    _check_operands("min", a, b)
    return a if a < b else b


def maximum(a: int, b: int) -> int:
    """Return the larger of two uint256 values."""
    _check_operands("max", a, b)
    return a if a > b else b


def average(a: int, b: int) -> int:
    """Floor of (a + b) / 2 computed without forming a + b."""
    _check_operands("average", a, b)
    return (a & b) + ((a ^ b) >> 1)


def abs_diff(a: int, b: int) -> int:
    """Return |a - b|."""
    _check_operands("abs_diff", a, b)
    return a - b if a >= b else b - a


def sum_uint(values: Iterable[int]) -> int:
    """Checked sum of an iterable of uint256 values."""
    total = 0
    for value in values:
        total = add(total, value)
    return total


# ============================================================================
# Full precision multiply-divide
# ============================================================================


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    Calculate floor(a * b / denominator) with full precision.

    The intermediate product may exceed 256 bits; only the quotient has to
    fit. mul_div(2**255, 2, 2) == 2**255.

    Raises:
        DivisionByZero: If denominator is zero
        ArithmeticOverflow: If the quotient exceeds uint256
    """
    _check_operands("mul_div", a, b, denominator)
    _require_nonzero(denominator, "mul_div", a, b, denominator)
    return _checked_result((a * b) // denominator, "mul_div", a, b, denominator)


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """Calculate ceil(a * b / denominator) with full precision."""
    _check_operands("mul_div_rounding_up", a, b, denominator)
    _require_nonzero(denominator, "mul_div_rounding_up", a, b, denominator)
    quotient, remainder = divmod(a * b, denominator)
    if remainder:
        quotient += 1
    return _checked_result(quotient, "mul_div_rounding_up", a, b, denominator)


def bps_of(amount: int, bps: int) -> int:
    """Return floor(amount * bps / 10000)."""
    return mul_div(amount, bps, BPS_DENOMINATOR)


# ============================================================================
# WAD / RAY math
# ============================================================================


def mul_wad(a: int, b: int) -> int:
    """Multiply two WAD values, rounding half up."""
    _check_operands("mul_wad", a, b)
    if a == 0 or b == 0:
        return 0
    return _checked_result((a * b + HALF_WAD) // WAD, "mul_wad", a, b)


def div_wad(a: int, b: int) -> int:
    """Divide two WAD values, rounding half up."""
    _check_operands("div_wad", a, b)
    _require_nonzero(b, "div_wad", a, b)
    return _checked_result((a * WAD + b // 2) // b, "div_wad", a, b)


def mul_ray(a: int, b: int) -> int:
    """Multiply two RAY values, rounding half up."""
    _check_operands("mul_ray", a, b)
    if a == 0 or b == 0:
        return 0
    return _checked_result((a * b + HALF_RAY) // RAY, "mul_ray", a, b)


def div_ray(a: int, b: int) -> int:
    """Divide two RAY values, rounding half up."""
    _check_operands("div_ray", a, b)
    _require_nonzero(b, "div_ray", a, b)
    return _checked_result((a * RAY + b // 2) // b, "div_ray", a, b)


def wad_to_ray(a: int) -> int:
    """Widen a WAD value to RAY precision."""
    return mul(a, WAD_RAY_RATIO)


def ray_to_wad(a: int) -> int:
    """Narrow a RAY value to WAD precision, rounding half up."""
    _check_operands("ray_to_wad", a)
    return (a + WAD_RAY_RATIO // 2) // WAD_RAY_RATIO


# ============================================================================
# Integer square root
# ============================================================================


def sqrt(x: int) -> int:
    """
    Return floor(sqrt(x)) via Babylonian iteration.

    The first guess is a power of two at or above the true root, so each
    step decreases monotonically and the loop stops after O(log x) rounds.
    """
    check_uint256(x, "sqrt")
    if x == 0:
        return 0

    z = 1 << ((x.bit_length() + 1) >> 1)
    while True:
        y = (z + x // z) >> 1
        if y >= z:
            return z
        z = y


# ============================================================================
# Display helpers
# ============================================================================


def to_decimal(value: int, scale: int = WAD) -> Decimal:
    """Convert a fixed-point integer to a Decimal for logging and serialization."""
    return Decimal(value) / Decimal(scale)


def from_decimal(value, scale: int = WAD) -> int:
    """Convert a decimal-like value to a fixed-point integer, truncating."""
    scaled = Decimal(str(value)) * Decimal(scale)
    return check_uint256(int(scaled), "from_decimal")
