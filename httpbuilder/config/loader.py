"""Configuration loader for httpbuilder.

This module loads the YAML configuration shipped in the package's config/
directory (or the directory named by HTTPBUILDER_CONFIG_DIR) and provides a
singleton config object for easy access throughout the library.
"""

import os
from pathlib import Path
from typing import Any, cast

import yaml

from ..exceptions import ConfigurationError
from ..logging_config import get_module_logger

logger = get_module_logger("config")

CONFIG_DIR_ENV = "HTTPBUILDER_CONFIG_DIR"


class Config:
    """Configuration manager that loads and provides access to all config files."""

    def __init__(self, config_dict: dict[str, Any] | None = None):
        """
        Initialize the configuration manager.

        Args:
            config_dict: Optional dictionary of config values for testing.
                        If provided, config files won't be loaded from disk.
        """
        self._configs: dict[str, Any]
        self._config_dir: Path | None

        if config_dict is not None:
            # Testing mode: use provided config
            self._configs = dict(config_dict)
            self._config_dir = None
        else:
            self._configs = {}
            self._config_dir = self._find_config_dir()
            self._load_all_configs()

    def _find_config_dir(self) -> Path:
        """Find the config directory, honouring the environment override."""
        override = os.environ.get(CONFIG_DIR_ENV)
        if override:
            config_dir = Path(override)
            if not config_dir.is_dir():
                raise ConfigurationError(
                    f"Config directory {config_dir} does not exist", config_key=CONFIG_DIR_ENV
                )
            return config_dir

        return Path(__file__).resolve().parent

    def _load_all_configs(self):
        """Load all YAML configuration files from the config directory."""
        if self._config_dir is None:
            return

        config_files = ["http_config.yaml"]

        for filename in config_files:
            config_path = self._config_dir / filename
            if not config_path.exists():
                logger.warning(f"Config file {filename} not found at {config_path}")
                continue

            with open(config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                continue

            # Validate that loaded config is a dictionary
            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Config file {filename} must contain a dictionary, "
                    f"got {type(loaded_config).__name__}. Ignoring it."
                )
                continue

            # Sections of the file become top-level sections
            self._configs.update(loaded_config)

    def get(self, path: str, default: Any = None) -> Any:
        """Get a configuration value using dot notation.

        Args:
            path: Dot-separated path to the config value (e.g., "waiters.timeout")
            default: Default value to return if path is not found

        Returns:
            The configuration value or default if not found

        Example:
            >>> config.get("tls.minimum_version")
            'TLSv1.2'
        """
        parts = path.split(".")
        value = self._configs

        for part in parts:
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value

    def get_required(self, path: str) -> Any:
        """Get a configuration value that must be present.

        Raises:
            ConfigurationError: If the path is missing or set to null
        """
        value = self.get(path)
        if value is None:
            raise ConfigurationError("required value is missing", config_key=path)
        return value

    @property
    def client(self) -> dict[str, Any]:
        """Get HTTP client configuration."""
        return cast(dict[str, Any], self._configs.get("client", {}))

    @property
    def tls(self) -> dict[str, Any]:
        """Get TLS configuration."""
        return cast(dict[str, Any], self._configs.get("tls", {}))

    @property
    def waiters(self) -> dict[str, Any]:
        """Get waiter configuration."""
        return cast(dict[str, Any], self._configs.get("waiters", {}))

    def reload(self):
        """Reload all configuration files (no-op for injected config)."""
        if self._config_dir is None:
            return
        self._configs.clear()
        self._load_all_configs()


# Create a singleton instance
config = Config()
