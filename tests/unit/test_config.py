"""Unit tests for configuration management."""

from pathlib import Path

import pytest
import yaml

from yieldvault.utils.config import DEFAULT_CONFIG_PATH, Config, load_config
from yieldvault.utils.exceptions import ConfigurationError


class TestConfig:
    """Test cases for Config class."""

    def test_from_file_valid_yaml(self, tmp_path: Path) -> None:
        """Test loading valid YAML configuration file."""
        config_file = tmp_path / "engine.yaml"
        config_data = {
            "router": {"batch_interval": 600},
            "logging": {"level": "DEBUG"},
        }
        config_file.write_text(yaml.dump(config_data))

        config = Config.from_file(config_file)
        assert config.get("router.batch_interval") == 600
        assert config.get("logging.level") == "DEBUG"

    def test_from_file_empty_yaml(self, tmp_path: Path) -> None:
        """Test loading empty YAML file."""
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")

        config = Config.from_file(config_file)
        assert config.to_dict() == {}

    def test_from_file_not_found(self) -> None:
        """Test loading non-existent file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            Config.from_file("nonexistent.yaml")

    def test_from_file_non_mapping_root(self, tmp_path: Path) -> None:
        """Test a YAML list at the root is rejected."""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="must be a mapping"):
            Config.from_file(config_file)

    def test_get_nested_key(self) -> None:
        """Test getting nested configuration values."""
        config = Config({"vault": {"performance_fee_bps": 1000, "deploy_on_deposit": False}})

        assert config.get("vault.performance_fee_bps") == 1000
        assert config.get("vault.deploy_on_deposit") is False

    def test_get_default_value(self) -> None:
        """Test getting default value for missing key."""
        config = Config({"existing": "value"})

        assert config.get("missing.key", "default") == "default"
        assert config.get("existing.deeper", "default") == "default"
        assert config.get("existing", "default") == "value"

    def test_section(self) -> None:
        """Test section returns mappings and empty dicts for missing keys."""
        config = Config({"router": {"batch_interval": 60}, "owner": "ops"})

        assert config.section("router") == {"batch_interval": 60}
        assert config.section("vault") == {}

        with pytest.raises(ConfigurationError, match="must be a mapping"):
            config.section("owner")

    def test_set_creates_sections(self) -> None:
        """Test dot-notation set creates intermediate sections."""
        config = Config({})
        config.set("logging.level", "WARNING")

        assert config.get("logging.level") == "WARNING"

    def test_getitem(self) -> None:
        """Test bracket access and missing key error."""
        config = Config({"owner": "ops"})

        assert config["owner"] == "ops"
        with pytest.raises(KeyError, match="Configuration key not found"):
            config["missing"]

    def test_to_dict_is_a_copy(self) -> None:
        """Test mutating to_dict output leaves the config unchanged."""
        config = Config({"tiers": {"low": {"venues": []}}})

        data = config.to_dict()
        data["tiers"]["low"]["venues"].append("x")

        assert config.get("tiers.low.venues") == []


class TestLoadConfig:
    """Test cases for load_config."""

    def test_load_explicit_path(self, tmp_path: Path) -> None:
        """Test loading an explicit file."""
        config_file = tmp_path / "custom.yaml"
        config_file.write_text(yaml.dump({"owner": "treasury"}))

        config = load_config(config_file, env_file=tmp_path / "missing.env")
        assert config.get("owner") == "treasury"

    def test_env_config_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test YIELDVAULT_CONFIG selects the file."""
        config_file = tmp_path / "env.yaml"
        config_file.write_text(yaml.dump({"owner": "from-env"}))
        monkeypatch.setenv("YIELDVAULT_CONFIG", str(config_file))

        config = load_config(env_file=tmp_path / "missing.env")
        assert config.get("owner") == "from-env"

    def test_log_level_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test YIELDVAULT_LOG_LEVEL overrides logging.level."""
        config_file = tmp_path / "levels.yaml"
        config_file.write_text(yaml.dump({"logging": {"level": "INFO"}}))
        monkeypatch.setenv("YIELDVAULT_LOG_LEVEL", "DEBUG")

        config = load_config(config_file, env_file=tmp_path / "missing.env")
        assert config.get("logging.level") == "DEBUG"

    def test_dotenv_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test variables from a .env file are applied."""
        monkeypatch.delenv("YIELDVAULT_LOG_LEVEL", raising=False)
        config_file = tmp_path / "base.yaml"
        config_file.write_text(yaml.dump({"logging": {"level": "INFO"}}))
        env_file = tmp_path / ".env"
        env_file.write_text("YIELDVAULT_LOG_LEVEL=ERROR\n")

        config = load_config(config_file, env_file=env_file)
        assert config.get("logging.level") == "ERROR"

    def test_default_config_is_valid(self) -> None:
        """Test the shipped default configuration parses and has tiers."""
        config = Config.from_file(DEFAULT_CONFIG_PATH)

        assert set(config.section("tiers")) == {"low", "medium", "high"}
        assert config.get("router.batch_interval") == 3600
        assert config.get("asset.decimals") == 6
