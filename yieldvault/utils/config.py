"""Configuration management for YieldVault.

This module provides YAML configuration loading with dot-notation access
and optional environment overrides read from a ``.env`` file.
"""

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from yieldvault.utils.exceptions import ConfigurationError

ROOT_DIR = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = ROOT_DIR / "config" / "default.yaml"

# Environment variables consulted by load_config()
ENV_CONFIG_PATH = "YIELDVAULT_CONFIG"
ENV_LOG_LEVEL = "YIELDVAULT_LOG_LEVEL"


class Config:
    """Configuration loader and accessor.

    Loads YAML configuration files and provides dict-like access to settings.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> interval = config.get("router.batch_interval", 3600)
        >>> low_tier = config.section("tiers.low")
    """

    def __init__(self, config_dict: dict[str, Any]) -> None:
        """Initialize with configuration dictionary.

        Args:
            config_dict: Configuration data as nested dictionary
        """
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML configuration file

        Returns:
            Config instance with loaded configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If the document is not a mapping
            yaml.YAMLError: If YAML parsing fails
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping, got {type(config_dict).__name__}"
            )

        return cls(config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g. "vault.performance_fee_bps")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._config

        for k in key.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(k)
            if value is None:
                return default

        return value

    def section(self, key: str) -> dict[str, Any]:
        """Get a nested mapping, or an empty dict when it is missing.

        Raises:
            ConfigurationError: If the key exists but is not a mapping
        """
        value = self.get(key, {})
        if not isinstance(value, dict):
            raise ConfigurationError(f"Configuration section '{key}' must be a mapping")
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a value using dot notation, creating sections as needed."""
        keys = key.split(".")
        node = self._config
        for k in keys[:-1]:
            node = node.setdefault(k, {})
        node[keys[-1]] = value

    def __getitem__(self, key: str) -> Any:
        """Get configuration value using bracket notation.

        Raises:
            KeyError: If key not found
        """
        value = self.get(key)
        if value is None:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def to_dict(self) -> dict[str, Any]:
        """Get a deep copy of the full configuration."""
        return copy.deepcopy(self._config)


def load_config(filepath: str | Path | None = None, env_file: str | Path | None = None) -> Config:
    """Load configuration, applying overrides from the environment.

    Resolution order for the YAML file: explicit ``filepath``, then the
    ``YIELDVAULT_CONFIG`` variable, then ``config/default.yaml``. A ``.env``
    file at the project root (or ``env_file``) is loaded first when present.
    ``YIELDVAULT_LOG_LEVEL`` overrides ``logging.level``.

    Args:
        filepath: Path to YAML configuration file
        env_file: Path to a dotenv file

    Returns:
        Config instance
    """
    env_path = Path(env_file) if env_file is not None else ROOT_DIR / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if filepath is None:
        filepath = os.getenv(ENV_CONFIG_PATH) or DEFAULT_CONFIG_PATH

    config = Config.from_file(filepath)

    log_level = os.getenv(ENV_LOG_LEVEL)
    if log_level:
        config.set("logging.level", log_level)

    return config
