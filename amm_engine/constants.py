"""
Constants and enums for the AMM math engine.

Centralizes fixed-point scales, integer width limits, tick bounds and
default engine parameters so every layer agrees on the same numbers.
"""

from enum import Enum


class SearchMode(Enum):
    """Optimal trade size search strategy."""

    GRID = "grid"
    REFINED = "refined"


class RejectionReason(Enum):
    """Why a scan did not yield an actionable opportunity."""

    NO_CANDIDATES = "no_candidates"
    NOT_PROFITABLE = "not_profitable"
    BELOW_MIN_PROFIT = "below_min_profit"
    STALE_TWAP = "stale_twap"
    TWAP_DEVIATION = "twap_deviation"
    RISK_TOO_HIGH = "risk_too_high"


# Fixed-point scales
WAD = 10**18
RAY = 10**27
HALF_WAD = WAD // 2
HALF_RAY = RAY // 2
WAD_RAY_RATIO = 10**9

# Integer width
MAX_UINT256 = 2**256 - 1

# Basis points
BPS_DENOMINATOR = 10_000

# Q64.96
Q96 = 2**96
Q192 = 2**192

# Tick domain
MIN_TICK = -887272
MAX_TICK = 887272

# sqrt(1.0001^MIN_TICK) * 2^96 and sqrt(1.0001^MAX_TICK) * 2^96
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Smallest sqrt price accepted by tick_at_sqrt_ratio; inputs between this and
# MIN_SQRT_RATIO resolve to MIN_TICK.
SQRT_RATIO_LOWER_BOUND = 4295048016

# Fee amount (hundredths of a bip) -> tick spacing, as enabled by the pool factory
FEE_AMOUNT_TICK_SPACING = {
    500: 10,
    3000: 60,
    10000: 200,
}

# Fee engine
PROTOCOL_FEE_SHARE_BPS = 1_000  # protocol takes 10% of the trading fee
MAX_DYNAMIC_MULTIPLIER = 2 * WAD

# Arbitrage engine
FLASH_ARBITRAGE_PREMIUM_BPS = 5
DEFAULT_SEARCH_STEPS = 10
SIZE_RISK_THRESHOLD_BPS = 1_000  # trade larger than 10% of liquidity
SIZE_RISK_PENALTY = 2_000
MAX_SCORE = 10_000

# Default configuration constants
DEFAULT_CONFIG = {
    "BASE_FEE_BPS": 30,
    "DYNAMIC_FEE_CAP_BPS": 100,
    "FLASH_FEE_BPS": 9,
    "FLASH_PREMIUM_BPS": 0,
    "GAS_BUFFER_BPS": 1_000,
    "MIN_FEE": 0,
    "MAX_FEE": MAX_UINT256,
    "OBSERVATION_PERIOD": 1_800,
    "MAX_OBSERVATION_AGE": 3_600,
    "MIN_OBSERVATIONS": 2,
    "MAX_DEVIATION_BPS": 500,
    "GAS_LIMIT": 220_000,
    "MIN_NET_PROFIT": 0,
    "MAX_TRADE_AMOUNT": 0,
    "SEARCH_STEPS": DEFAULT_SEARCH_STEPS,
    "BASE_SUCCESS_RATE_BPS": 9_000,
    "MAX_RISK_SCORE": 7_500,
    "SIZE_RISK_THRESHOLD_BPS": SIZE_RISK_THRESHOLD_BPS,
}

# Observability constants
METRICS_CONSTANTS = {
    "METRIC_PREFIX": "amm_engine",
    "HISTOGRAM_BUCKETS_PROFIT_BPS": [0, 1, 5, 10, 25, 50, 100, 250, 500, 1000],
    "HISTOGRAM_BUCKETS_DEVIATION_BPS": [0, 10, 50, 100, 250, 500, 1000, 5000],
}
