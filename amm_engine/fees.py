"""
Fee engine: trading, dynamic, flash-loan, gas, tiered and distributed fees.

Every function is pure. Rates are integer basis points (1 bps = 1/10000);
amounts are raw token units; volatility and liquidity ratio are WAD fractions.

Conversion policy:
- fee amounts floor (mul_div), never round in the payer's disfavor
- min_fee / max_fee in FeeConfig are absolute amounts, not bps
- the protocol fee is a fixed 10% share of the trading fee
"""

from dataclasses import dataclass
from typing import Sequence

from .constants import (
    BPS_DENOMINATOR,
    DEFAULT_CONFIG,
    MAX_DYNAMIC_MULTIPLIER,
    PROTOCOL_FEE_SHARE_BPS,
    WAD,
)
from .exceptions import SharesExceedTotal, ValidationError
from .fixed_point import add, bps_of, check_uint256, mul, mul_div, sub
from .utils import clamp, get_logger, is_valid_basis_points, require_same_length

logger = get_logger(__name__)


# ============================================================================
# Value objects
# ============================================================================


@dataclass(frozen=True)
class FeeConfig:
    """
    Immutable fee parameters.

    Attributes:
        base_fee_bps: Trading fee before dynamic scaling (e.g., 30 for 0.30%)
        dynamic_fee_cap_bps: Upper bound for the dynamically scaled rate
        flash_fee_bps: Flash loan fee; 0 means flash loans are not part of the trade
        flash_premium_bps: Fixed premium added on top of the flash fee
        gas_buffer_bps: Safety buffer added to the raw gas estimate
        min_fee: Floor for the trading fee amount
        max_fee: Ceiling for the trading fee amount and the reported total
    """

    base_fee_bps: int = DEFAULT_CONFIG["BASE_FEE_BPS"]
    dynamic_fee_cap_bps: int = DEFAULT_CONFIG["DYNAMIC_FEE_CAP_BPS"]
    flash_fee_bps: int = DEFAULT_CONFIG["FLASH_FEE_BPS"]
    flash_premium_bps: int = DEFAULT_CONFIG["FLASH_PREMIUM_BPS"]
    gas_buffer_bps: int = DEFAULT_CONFIG["GAS_BUFFER_BPS"]
    min_fee: int = DEFAULT_CONFIG["MIN_FEE"]
    max_fee: int = DEFAULT_CONFIG["MAX_FEE"]

    def __post_init__(self):
        for name in (
            "base_fee_bps",
            "dynamic_fee_cap_bps",
            "flash_fee_bps",
            "flash_premium_bps",
            "gas_buffer_bps",
        ):
            value = getattr(self, name)
            if not is_valid_basis_points(value):
                raise ValidationError(
                    f"{name} must be within [0, {BPS_DENOMINATOR}], got {value}"
                )
        check_uint256(self.min_fee, "min_fee")
        check_uint256(self.max_fee, "max_fee")
        if self.min_fee > self.max_fee:
            raise ValidationError(
                f"min_fee {self.min_fee} exceeds max_fee {self.max_fee}"
            )

    @property
    def flash_enabled(self) -> bool:
        return self.flash_fee_bps > 0


@dataclass(frozen=True)
class FeeBreakdown:
    """
    Fee components of one transaction.

    total_fee is clamped to FeeConfig.max_fee after summing, without
    rescaling the components, so component_sum may exceed total_fee.
    """

    trading_fee: int
    flash_fee: int
    gas_fee: int
    protocol_fee: int
    total_fee: int

    @property
    def component_sum(self) -> int:
        return self.trading_fee + self.flash_fee + self.gas_fee + self.protocol_fee

    @property
    def is_clamped(self) -> bool:
        return self.component_sum > self.total_fee

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "trading_fee": self.trading_fee,
            "flash_fee": self.flash_fee,
            "gas_fee": self.gas_fee,
            "protocol_fee": self.protocol_fee,
            "total_fee": self.total_fee,
        }

    def format_log(self) -> str:
        """Format for consistent logging."""
        clamped = " (clamped)" if self.is_clamped else ""
        return (
            f"Total {self.total_fee}{clamped} = "
            f"Trading {self.trading_fee} + "
            f"Flash {self.flash_fee} + "
            f"Gas {self.gas_fee} + "
            f"Protocol {self.protocol_fee}"
        )


@dataclass(frozen=True)
class FeeDistribution:
    """Split of a fee total; remainder is whatever the shares leave undistributed."""

    protocol: int
    treasury: int
    liquidity: int
    remainder: int


# ============================================================================
# Single-component fees
# ============================================================================


def trading_fee(amount: int, fee_bps: int, min_fee: int, max_fee: int) -> int:
    """
    amount * fee_bps / 10000, clamped to [min_fee, max_fee].

    Example:
        >>> trading_fee(1_000_000, 30, 0, 1_000_000)
        3000
    """
    if min_fee > max_fee:
        raise ValidationError(f"min_fee {min_fee} exceeds max_fee {max_fee}")
    return clamp(bps_of(amount, fee_bps), min_fee, max_fee)


def dynamic_fee(
    base_fee: int, volatility: int, liquidity_ratio: int, cap: int
) -> int:
    """
    Scale base_fee for volatility and thin liquidity, then cap.

    Args:
        base_fee: Base rate in bps
        volatility: Relative volatility as WAD; WAD or more doubles the fee
        liquidity_ratio: Available over target liquidity as WAD; 0 doubles
            the fee, WAD or more leaves it unchanged
        cap: Maximum rate in bps

    Returns:
        Rate in bps: base * (1 + min(vol, 1)) * (1 + (1 - min(liq, 1))), capped
    """
    check_uint256(volatility, "dynamic_fee")
    check_uint256(liquidity_ratio, "dynamic_fee")

    volatility_multiplier = min(WAD + volatility, MAX_DYNAMIC_MULTIPLIER)
    liquidity_shortfall = WAD - liquidity_ratio if liquidity_ratio < WAD else 0
    liquidity_multiplier = WAD + liquidity_shortfall

    scaled = mul_div(base_fee, volatility_multiplier, WAD)
    scaled = mul_div(scaled, liquidity_multiplier, WAD)
    return min(scaled, cap)


def flash_fee(amount: int, fee_bps: int, premium_bps: int) -> int:
    """Base flash fee plus a fixed premium, each taken on amount and summed."""
    return add(bps_of(amount, fee_bps), bps_of(amount, premium_bps))


def estimate_gas_fee(gas_limit: int, gas_price: int, buffer_bps: int) -> int:
    """gas_limit * gas_price plus a buffer_bps safety margin."""
    base = mul(gas_limit, gas_price)
    return add(base, bps_of(base, buffer_bps))


def apply_fee(amount: int, fee_bps: int) -> int:
    """Amount left after deducting fee_bps."""
    return sub(amount, bps_of(amount, fee_bps))


# ============================================================================
# Composite fees
# ============================================================================


def total_fee_breakdown(
    amount: int,
    config: FeeConfig,
    volatility: int,
    liquidity_ratio: int,
    gas_limit: int,
    gas_price: int,
) -> FeeBreakdown:
    """
    Compose trading, flash, gas and protocol fees for one transaction.

    The trading rate is the dynamic rate derived from base_fee_bps. The flash
    fee applies only when the config enables it. The protocol fee is 10% of
    the trading fee. The total is the plain sum clamped to config.max_fee;
    components are reported unclamped.
    """
    rate_bps = dynamic_fee(
        config.base_fee_bps, volatility, liquidity_ratio, config.dynamic_fee_cap_bps
    )
    trading = trading_fee(amount, rate_bps, config.min_fee, config.max_fee)

    flash = 0
    if config.flash_enabled:
        flash = flash_fee(amount, config.flash_fee_bps, config.flash_premium_bps)

    gas = estimate_gas_fee(gas_limit, gas_price, config.gas_buffer_bps)
    protocol = bps_of(trading, PROTOCOL_FEE_SHARE_BPS)

    total = trading + flash + gas + protocol
    clamped_total = min(total, config.max_fee)
    if clamped_total < total:
        logger.debug(
            f"Fee total {total} clamped to max_fee {config.max_fee} "
            f"(rate {rate_bps} bps on {amount})"
        )

    return FeeBreakdown(
        trading_fee=trading,
        flash_fee=flash,
        gas_fee=gas,
        protocol_fee=protocol,
        total_fee=clamped_total,
    )


def _select_tier(
    value: int, thresholds: Sequence[int], rates: Sequence[int], default: int
) -> int:
    tiers = sorted(zip(thresholds, rates), key=lambda tier: tier[0], reverse=True)
    for threshold, rate in tiers:
        if value >= threshold:
            return rate
    return default


def tiered_fee(
    amount: int,
    thresholds: Sequence[int],
    fees: Sequence[int],
    default_fee_bps: int = 0,
) -> int:
    """
    Fee amount at the rate of the highest threshold not exceeding amount.

    Amounts below every threshold pay default_fee_bps.

    Raises:
        LengthMismatch: If thresholds and fees differ in length
    """
    require_same_length("thresholds", thresholds, "fees", fees)
    rate = _select_tier(amount, thresholds, fees, default_fee_bps)
    return bps_of(amount, rate)


def volume_discount(
    volume: int, thresholds: Sequence[int], rates: Sequence[int]
) -> int:
    """
    Discount rate in bps for the highest volume threshold reached.

    Raises:
        LengthMismatch: If thresholds and rates differ in length
    """
    require_same_length("thresholds", thresholds, "rates", rates)
    return _select_tier(volume, thresholds, rates, 0)


def fee_distribution(
    total: int, protocol_bps: int, treasury_bps: int, liquidity_bps: int
) -> FeeDistribution:
    """
    Split total into protocol, treasury and liquidity-provider shares.

    Raises:
        SharesExceedTotal: If the three shares sum above 10000 bps
    """
    share_total = protocol_bps + treasury_bps + liquidity_bps
    if share_total > BPS_DENOMINATOR:
        raise SharesExceedTotal(
            f"Fee shares sum to {share_total} bps, above {BPS_DENOMINATOR}",
            total_bps=share_total,
        )

    protocol = bps_of(total, protocol_bps)
    treasury = bps_of(total, treasury_bps)
    liquidity = bps_of(total, liquidity_bps)
    return FeeDistribution(
        protocol=protocol,
        treasury=treasury,
        liquidity=liquidity,
        remainder=total - protocol - treasury - liquidity,
    )
