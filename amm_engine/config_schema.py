"""
Configuration schema validation using Pydantic
"""

from pathlib import Path
from typing import Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import BPS_DENOMINATOR, DEFAULT_CONFIG, MAX_SCORE, MAX_UINT256


class FeeSettings(BaseModel):
    """Fee engine configuration"""

    base_fee_bps: int = Field(
        ge=0, le=BPS_DENOMINATOR, default=DEFAULT_CONFIG["BASE_FEE_BPS"],
        description="Trading fee before dynamic scaling",
    )
    dynamic_fee_cap_bps: int = Field(
        ge=0, le=BPS_DENOMINATOR, default=DEFAULT_CONFIG["DYNAMIC_FEE_CAP_BPS"]
    )
    flash_fee_bps: int = Field(
        ge=0, le=BPS_DENOMINATOR, default=DEFAULT_CONFIG["FLASH_FEE_BPS"],
        description="Flash loan fee; 0 disables flash fees",
    )
    flash_premium_bps: int = Field(
        ge=0, le=BPS_DENOMINATOR, default=DEFAULT_CONFIG["FLASH_PREMIUM_BPS"]
    )
    gas_buffer_bps: int = Field(
        ge=0, le=BPS_DENOMINATOR, default=DEFAULT_CONFIG["GAS_BUFFER_BPS"]
    )
    min_fee: int = Field(ge=0, le=MAX_UINT256, default=DEFAULT_CONFIG["MIN_FEE"])
    max_fee: int = Field(ge=0, le=MAX_UINT256, default=DEFAULT_CONFIG["MAX_FEE"])

    @model_validator(mode="after")
    def validate_fee_bounds(self):
        if self.min_fee > self.max_fee:
            raise ValueError(
                f"min_fee ({self.min_fee}) cannot exceed max_fee ({self.max_fee})"
            )
        return self

    model_config = {"extra": "forbid"}


class TWAPSettings(BaseModel):
    """TWAP oracle configuration"""

    observation_period: int = Field(
        gt=0, default=DEFAULT_CONFIG["OBSERVATION_PERIOD"],
        description="Seconds of history for a fully covered TWAP",
    )
    max_observation_age: int = Field(
        gt=0, default=DEFAULT_CONFIG["MAX_OBSERVATION_AGE"],
        description="Seconds after the last update before the TWAP is stale",
    )
    min_observations: int = Field(ge=1, default=DEFAULT_CONFIG["MIN_OBSERVATIONS"])
    max_deviation_bps: int = Field(
        ge=0, le=BPS_DENOMINATOR, default=DEFAULT_CONFIG["MAX_DEVIATION_BPS"]
    )

    model_config = {"extra": "forbid"}


class ArbitrageSettings(BaseModel):
    """Arbitrage search configuration"""

    gas_limit: int = Field(gt=0, default=DEFAULT_CONFIG["GAS_LIMIT"])
    min_net_profit: int = Field(ge=0, default=DEFAULT_CONFIG["MIN_NET_PROFIT"])
    max_trade_amount: int = Field(
        ge=0, le=MAX_UINT256, default=DEFAULT_CONFIG["MAX_TRADE_AMOUNT"],
        description="Upper bound on trade size; 0 means unbounded",
    )
    search_steps: int = Field(ge=1, le=1000, default=DEFAULT_CONFIG["SEARCH_STEPS"])
    refine_search: bool = False

    model_config = {"extra": "forbid"}


class RiskSettings(BaseModel):
    """Risk scoring configuration"""

    base_success_rate_bps: int = Field(
        ge=0, le=MAX_SCORE, default=DEFAULT_CONFIG["BASE_SUCCESS_RATE_BPS"]
    )
    max_risk_score: int = Field(
        ge=0, le=MAX_SCORE, default=DEFAULT_CONFIG["MAX_RISK_SCORE"]
    )
    size_risk_threshold_bps: int = Field(
        gt=0, le=BPS_DENOMINATOR, default=DEFAULT_CONFIG["SIZE_RISK_THRESHOLD_BPS"]
    )

    model_config = {"extra": "forbid"}


class EngineSettings(BaseModel):
    """Complete engine configuration schema"""

    name: str = Field(default="amm_engine", min_length=1, max_length=100)
    fees: FeeSettings = Field(default_factory=FeeSettings)
    twap: TWAPSettings = Field(default_factory=TWAPSettings)
    arbitrage: ArbitrageSettings = Field(default_factory=ArbitrageSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Engine name cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_dynamic_cap(self):
        if self.fees.dynamic_fee_cap_bps < self.fees.base_fee_bps:
            raise ValueError(
                "dynamic_fee_cap_bps must not be below base_fee_bps"
            )
        return self

    model_config = {
        "extra": "forbid",  # Disallow extra fields
        "validate_assignment": True,
    }


def validate_engine_config(config_dict: Optional[Dict]) -> EngineSettings:
    """
    Validate an engine configuration dictionary

    Args:
        config_dict: Dictionary representation of engine config; None or
            empty yields all defaults

    Returns:
        Validated EngineSettings object

    Raises:
        pydantic.ValidationError: If configuration is invalid
    """
    return EngineSettings(**(config_dict or {}))


def validate_config_file(config_path: Union[str, Path]) -> EngineSettings:
    """
    Validate an engine configuration file

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If configuration is invalid
        yaml.YAMLError: If YAML parsing fails
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        config_dict = yaml.safe_load(f)

    return validate_engine_config(config_dict)
