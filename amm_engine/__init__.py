"""
AMM Math Engine.

Integer fixed-point math for automated market makers: checked uint256
arithmetic, concentrated-liquidity tick math, TWAP tracking with manipulation
checks, a fee engine and cross-pool arbitrage detection.
"""

from amm_engine.version import __version__

PROJECT_NAME = "amm-engine"
VERSION = __version__

# Export main components for easier imports
from amm_engine.arbitrage import (
    ArbitrageOpportunity,
    ArbitragePath,
    DEXPool,
    amount_out,
    find_best_path,
    optimal_amount,
    simple_arbitrage,
    triangular_arbitrage,
)
from amm_engine.config_loader import EngineConfig, get_default_config, load_engine_config
from amm_engine.exceptions import (
    AmmEngineError,
    ArithmeticOverflow,
    ArithmeticUnderflow,
    ConfigurationError,
    DivisionByZero,
    InvalidTimestamp,
    LengthMismatch,
    OutOfRange,
    SharesExceedTotal,
    ValidationError,
)
from amm_engine.fees import FeeBreakdown, FeeConfig, total_fee_breakdown
from amm_engine.scanner import ArbitrageScanner, ScanResult
from amm_engine.twap import TWAPConfig, TWAPOracle, TWAPState

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "ArbitrageOpportunity",
    "ArbitragePath",
    "DEXPool",
    "amount_out",
    "find_best_path",
    "optimal_amount",
    "simple_arbitrage",
    "triangular_arbitrage",
    "EngineConfig",
    "get_default_config",
    "load_engine_config",
    "AmmEngineError",
    "ArithmeticOverflow",
    "ArithmeticUnderflow",
    "ConfigurationError",
    "DivisionByZero",
    "InvalidTimestamp",
    "LengthMismatch",
    "OutOfRange",
    "SharesExceedTotal",
    "ValidationError",
    "FeeBreakdown",
    "FeeConfig",
    "total_fee_breakdown",
    "ArbitrageScanner",
    "ScanResult",
    "TWAPConfig",
    "TWAPOracle",
    "TWAPState",
]
