"""Tests for the config_loader and config_schema modules."""

from pathlib import Path
from tempfile import NamedTemporaryFile

import pydantic
import pytest
import yaml

from amm_engine.config_loader import (
    ArbitrageConfig,
    EngineConfig,
    RiskConfig,
    build_engine_config,
    get_default_config,
    load_engine_config,
    load_yaml_config,
)
from amm_engine.config_schema import (
    EngineSettings,
    validate_config_file,
    validate_engine_config,
)
from amm_engine.constants import MAX_UINT256, SearchMode
from amm_engine.exceptions import (
    ArithmeticUnderflow,
    ConfigurationError,
    ValidationError,
)
from amm_engine.fees import FeeConfig
from amm_engine.twap import TWAPConfig

VALID_CONFIG = {
    "name": "mainnet_scanner",
    "fees": {"base_fee_bps": 25, "dynamic_fee_cap_bps": 80, "max_fee": 10**24},
    "twap": {"observation_period": 900, "max_deviation_bps": 300},
    "arbitrage": {"gas_limit": 300_000, "search_steps": 20, "refine_search": True},
    "risk": {"max_risk_score": 6_000},
}


def write_yaml(path: Path, data) -> Path:
    path.write_text(yaml.dump(data))
    return path


def test_load_yaml_config_valid():
    """Test loading a valid YAML configuration."""
    with NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(VALID_CONFIG, f)
        f.flush()

        result = load_yaml_config(f.name)
        assert result == VALID_CONFIG

    Path(f.name).unlink()


def test_load_yaml_config_file_not_found():
    """Test loading config from non-existent file."""
    with pytest.raises(ConfigurationError, match="Configuration file not found"):
        load_yaml_config("/non/existent/file.yaml")


def test_load_yaml_config_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    with pytest.raises(ConfigurationError, match="Empty configuration file"):
        load_yaml_config(path)


def test_load_yaml_config_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("invalid: yaml: content: [")
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_yaml_config(path)


def test_load_yaml_config_non_mapping_root(tmp_path):
    path = write_yaml(tmp_path / "list.yaml", [1, 2, 3])
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        load_yaml_config(path)


def test_default_config():
    config = get_default_config()
    assert isinstance(config, EngineConfig)
    assert config.name == "amm_engine"
    assert config.fees == FeeConfig()
    assert config.twap == TWAPConfig()
    assert config.fees.max_fee == MAX_UINT256
    assert config.arbitrage.max_trade_amount == 0
    assert config.arbitrage.search_mode is SearchMode.GRID


def test_arbitrage_config_search_mode():
    assert ArbitrageConfig(refine_search=True).search_mode is SearchMode.REFINED


def test_risk_config_defaults():
    config = RiskConfig()
    assert config.base_success_rate_bps == 9_000
    assert config.max_risk_score == 7_500
    assert config.size_risk_threshold_bps == 1_000


@pytest.mark.parametrize(
    "kwargs",
    [
        {"size_risk_threshold_bps": 0},
        {"size_risk_threshold_bps": 10_001},
        {"max_risk_score": 10_001},
        {"base_success_rate_bps": -1},
    ],
)
def test_risk_config_rejects_invalid(kwargs):
    with pytest.raises(ValidationError):
        RiskConfig(**kwargs)


@pytest.mark.parametrize("kwargs", [{"gas_limit": 0}, {"search_steps": 0}])
def test_arbitrage_config_rejects_invalid(kwargs):
    with pytest.raises(ValidationError):
        ArbitrageConfig(**kwargs)


def test_arbitrage_config_rejects_negative_amounts():
    with pytest.raises(ArithmeticUnderflow):
        ArbitrageConfig(min_net_profit=-1)
    with pytest.raises(ArithmeticUnderflow):
        ArbitrageConfig(max_trade_amount=-1)


def test_load_engine_config(tmp_path):
    path = write_yaml(tmp_path / "engine.yaml", VALID_CONFIG)
    config = load_engine_config(path)

    assert config.name == "mainnet_scanner"
    assert config.fees.base_fee_bps == 25
    assert config.fees.dynamic_fee_cap_bps == 80
    assert config.fees.max_fee == 10**24
    # untouched sections keep their defaults
    assert config.fees.flash_fee_bps == 9
    assert config.twap.observation_period == 900
    assert config.twap.max_observation_age == 3_600
    assert config.arbitrage.gas_limit == 300_000
    assert config.arbitrage.search_mode is SearchMode.REFINED
    assert config.risk.max_risk_score == 6_000


def test_runtime_config_is_frozen():
    config = build_engine_config({})
    with pytest.raises(AttributeError):
        config.name = "other"


class TestBuildEngineConfig:
    @pytest.mark.parametrize(
        "config_dict",
        [
            {"fees": {"base_fee_bps": 10_001}},
            {"fees": {"min_fee": 10, "max_fee": 5}},
            {"fees": {"base_fee_bps": 50, "dynamic_fee_cap_bps": 40}},
            {"twap": {"observation_period": 0}},
            {"arbitrage": {"gas_limit": 0}},
            {"arbitrage": {"search_steps": 0}},
            {"risk": {"size_risk_threshold_bps": 0}},
            {"unknown_section": {}},
            {"fees": {"typo_bps": 1}},
            {"name": "   "},
        ],
    )
    def test_invalid_config(self, config_dict):
        with pytest.raises(ValidationError) as exc_info:
            build_engine_config(config_dict)
        assert exc_info.value.details["errors"]

    def test_name_is_stripped(self):
        assert build_engine_config({"name": "  scanner  "}).name == "scanner"

    def test_invalid_file_raises_validation_error(self, tmp_path):
        path = write_yaml(tmp_path / "bad.yaml", {"twap": {"min_observations": 0}})
        with pytest.raises(ValidationError):
            load_engine_config(path)


class TestSchema:
    def test_validate_engine_config_none(self):
        settings = validate_engine_config(None)
        assert settings == EngineSettings()

    def test_schema_raises_pydantic_errors(self):
        with pytest.raises(pydantic.ValidationError):
            validate_engine_config({"risk": {"max_risk_score": 10_001}})

    def test_validate_assignment(self):
        settings = EngineSettings()
        with pytest.raises(pydantic.ValidationError):
            settings.name = ""

    def test_validate_config_file(self, tmp_path):
        path = write_yaml(tmp_path / "engine.yaml", VALID_CONFIG)
        settings = validate_config_file(path)
        assert settings.arbitrage.search_steps == 20

    def test_validate_config_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            validate_config_file(tmp_path / "missing.yaml")
