"""
Configuration loading and normalization for the AMM math engine.

Loads YAML, validates it against the pydantic schema and normalizes it into
frozen dataclasses consumed by the fee engine, the TWAP oracle and the
arbitrage scanner.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import pydantic
import yaml

from .config_schema import EngineSettings, validate_engine_config
from .constants import BPS_DENOMINATOR, DEFAULT_CONFIG, MAX_SCORE, SearchMode
from .exceptions import ConfigurationError, ValidationError
from .fees import FeeConfig
from .fixed_point import check_uint256
from .twap import TWAPConfig
from .utils import is_valid_basis_points


@dataclass(frozen=True)
class ArbitrageConfig:
    """Normalized arbitrage search configuration."""

    gas_limit: int = DEFAULT_CONFIG["GAS_LIMIT"]
    min_net_profit: int = DEFAULT_CONFIG["MIN_NET_PROFIT"]
    max_trade_amount: int = DEFAULT_CONFIG["MAX_TRADE_AMOUNT"]
    search_steps: int = DEFAULT_CONFIG["SEARCH_STEPS"]
    refine_search: bool = False

    def __post_init__(self):
        if self.gas_limit <= 0:
            raise ValidationError(f"gas_limit must be positive, got {self.gas_limit}")
        check_uint256(self.min_net_profit, "min_net_profit")
        check_uint256(self.max_trade_amount, "max_trade_amount")
        if self.search_steps < 1:
            raise ValidationError(
                f"search_steps must be at least 1, got {self.search_steps}"
            )

    @property
    def search_mode(self) -> SearchMode:
        return SearchMode.REFINED if self.refine_search else SearchMode.GRID


@dataclass(frozen=True)
class RiskConfig:
    """Normalized risk scoring configuration."""

    base_success_rate_bps: int = DEFAULT_CONFIG["BASE_SUCCESS_RATE_BPS"]
    max_risk_score: int = DEFAULT_CONFIG["MAX_RISK_SCORE"]
    size_risk_threshold_bps: int = DEFAULT_CONFIG["SIZE_RISK_THRESHOLD_BPS"]

    def __post_init__(self):
        for name in ("base_success_rate_bps", "max_risk_score"):
            value = getattr(self, name)
            if not 0 <= value <= MAX_SCORE:
                raise ValidationError(
                    f"{name} must be within [0, {MAX_SCORE}], got {value}"
                )
        if self.size_risk_threshold_bps <= 0 or not is_valid_basis_points(
            self.size_risk_threshold_bps
        ):
            raise ValidationError(
                f"size_risk_threshold_bps must be within (0, {BPS_DENOMINATOR}], "
                f"got {self.size_risk_threshold_bps}"
            )


@dataclass(frozen=True)
class EngineConfig:
    """Immutable runtime configuration object."""

    name: str = "amm_engine"
    fees: FeeConfig = field(default_factory=FeeConfig)
    twap: TWAPConfig = field(default_factory=TWAPConfig)
    arbitrage: ArbitrageConfig = field(default_factory=ArbitrageConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to load config {config_path}: {e}") from e

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping in {config_path}, "
            f"got {type(config_dict).__name__}"
        )
    return config_dict


def normalize_settings(settings: EngineSettings) -> EngineConfig:
    """Convert validated settings into frozen runtime dataclasses."""
    return EngineConfig(
        name=settings.name,
        fees=FeeConfig(**settings.fees.model_dump()),
        twap=TWAPConfig(**settings.twap.model_dump()),
        arbitrage=ArbitrageConfig(**settings.arbitrage.model_dump()),
        risk=RiskConfig(**settings.risk.model_dump()),
    )


def build_engine_config(config_dict: Dict[str, Any]) -> EngineConfig:
    """
    Validate and normalize an in-memory configuration dictionary.

    Raises:
        ValidationError: If the configuration fails schema validation
    """
    try:
        settings = validate_engine_config(config_dict)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Configuration validation failed: {e}",
            {"errors": e.errors(include_url=False)},
        ) from e
    return normalize_settings(settings)


def load_engine_config(config_path: Union[str, Path]) -> EngineConfig:
    """
    Load and normalize an engine configuration file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Normalized and frozen engine configuration

    Raises:
        ConfigurationError: If the configuration cannot be loaded
        ValidationError: If the configuration fails schema validation
    """
    return build_engine_config(load_yaml_config(config_path))


def get_default_config() -> EngineConfig:
    """Get a default configuration for testing or fallback purposes."""
    return EngineConfig()
