"""Configuration management for CoinPulse.

This module provides simple YAML configuration loading and access, plus
API credential loading from a ``.env`` file.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent.parent


class Config:
    """Simple configuration loader and accessor.

    Loads YAML configuration files and provides dict-like access to settings.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> ttl = config.get("cache.default_ttl_seconds", 15)
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
            yaml.YAMLError: If YAML parsing fails
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}

        return cls(config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key (supports dot notation for nested keys)
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get("polling.interval_ms")
            60000
            >>> config.get("missing.key", "fallback")
            'fallback'
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def section(self, key: str) -> dict[str, Any]:
        """Get a nested section as a plain dict (empty if missing)."""
        value = self.get(key, {})
        return dict(value) if isinstance(value, dict) else {}

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
        """Get the full configuration as dictionary."""
        return self._config.copy()


def load_config(filepath: str | Path = None) -> Config:
    """Helper function to load configuration.

    Args:
        filepath: Path to YAML configuration file. If None, uses default path.

    Returns:
        Config instance
    """
    if filepath is None:
        filepath = ROOT_DIR / "config" / "default.yaml"
    return Config.from_file(filepath)


def load_api_credentials(env_file: str | Path = None) -> dict[str, str | None]:
    """Load market data API credentials from the environment.

    Values in a ``.env`` file (project root by default) are loaded first if
    the file exists. The CoinCap key is optional: the public endpoints work
    without it under a lower rate limit.

    Returns:
        Dict with ``api_key`` (or None) and ``base_url`` (or None)

    Example:
        >>> creds = load_api_credentials()
        >>> provider = CoinCapProvider(api_key=creds["api_key"])
    """
    env_path = Path(env_file) if env_file else ROOT_DIR / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return {
        "api_key": os.getenv("COINCAP_API_KEY") or None,
        "base_url": os.getenv("COINCAP_BASE_URL") or None,
    }
