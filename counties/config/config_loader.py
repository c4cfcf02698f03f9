"""
Configuration loader for the county lookup system.

This module provides the ConfigLoader class that handles loading and validating
JSON configuration files for multi-environment deployments.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional
from functools import lru_cache

from pydantic import ValidationError

from ..exceptions import CountiesConfigurationError, CountiesValidationError
from ..utils import get_logger
from .config_models import DataPaths, LookupConfig

DATA_DIR_ENV_VAR = "COUNTIES_DATA_DIR"


class ConfigLoader:
    """
    Configuration loader and validator for the county lookup system.

    Loads environment-specific configuration from ``environment_config.json``,
    merges in the ``shared`` section and gives typed access to the ``data``
    and ``lookup`` sections.
    """

    REQUIRED_KEYS = ["data", "logging", "lookup"]

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing configuration files (defaults to 'config/')
        """
        self.logger = get_logger(__name__)
        self.config_dir = Path(config_dir) if config_dir else Path("config")

    @lru_cache(maxsize=2)
    def load_environment_config(self, environment: str) -> Dict[str, Any]:
        """
        Load configuration for a specific environment.

        Args:
            environment: Environment name (development/production)

        Returns:
            Dictionary containing environment-specific configuration merged with shared config

        Raises:
            CountiesConfigurationError: If configuration cannot be loaded or validated
        """
        env_config_path = self.config_dir / "environment_config.json"

        if not env_config_path.exists():
            raise CountiesConfigurationError(
                f"Environment configuration file not found: {env_config_path}"
            )

        try:
            with open(env_config_path, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise CountiesConfigurationError(
                f"Invalid JSON in environment configuration: {str(e)}",
                {"path": str(env_config_path)}
            )

        self._validate_environment_config(config_data, environment)

        env_config = {
            key: (dict(value) if isinstance(value, dict) else value)
            for key, value in config_data["environments"][environment].items()
        }

        # Shared sections fill in whatever the environment leaves unset
        for key, shared_value in config_data.get("shared", {}).items():
            if key not in env_config:
                env_config[key] = shared_value
            elif isinstance(shared_value, dict) and isinstance(env_config[key], dict):
                merged = dict(shared_value)
                merged.update(env_config[key])
                env_config[key] = merged

        env_config["_validation"] = config_data.get("validation", {})

        self.logger.info(f"Loaded configuration for environment: {environment}")
        return env_config

    def get_data_paths(self, environment: str) -> DataPaths:
        """
        Get data file locations for an environment.

        The ``COUNTIES_DATA_DIR`` environment variable overrides ``data_dir``.

        Raises:
            CountiesValidationError: If the data section is malformed
        """
        data_config = dict(self.load_environment_config(environment).get("data", {}))
        override = os.getenv(DATA_DIR_ENV_VAR)
        if override:
            data_config["data_dir"] = override
        try:
            return DataPaths(**data_config)
        except ValidationError as e:
            raise CountiesValidationError(
                f"Invalid data configuration for {environment}: {e}"
            )

    def get_lookup_config(self, environment: str) -> LookupConfig:
        """
        Get dataset loading and index settings for an environment.

        Raises:
            CountiesValidationError: If the lookup section is malformed
        """
        lookup_config = self.load_environment_config(environment).get("lookup", {})
        try:
            return LookupConfig(**lookup_config)
        except ValidationError as e:
            raise CountiesValidationError(
                f"Invalid lookup configuration for {environment}: {e}"
            )

    def validate_environment_variables(self, environment: str) -> None:
        """
        Validate that required environment variables are set.

        Raises:
            CountiesValidationError: If required environment variables are missing
        """
        env_config = self.load_environment_config(environment)
        required_vars = env_config.get("_validation", {}).get("required_environment_variables", [])

        missing_vars = [var for var in required_vars if not os.getenv(var)]
        if missing_vars:
            raise CountiesValidationError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )

        self.logger.info(f"Environment variables validated for: {environment}")

    def _validate_environment_config(self, config_data: Dict[str, Any], environment: str) -> None:
        """
        Validate environment configuration structure.

        Raises:
            CountiesValidationError: If configuration is invalid
        """
        if "environments" not in config_data:
            raise CountiesValidationError("Missing 'environments' key in configuration")

        if environment not in config_data["environments"]:
            available_envs = list(config_data["environments"].keys())
            raise CountiesValidationError(
                f"Environment '{environment}' not found. Available: {available_envs}"
            )

        env_config = config_data["environments"][environment]
        shared_keys = set(config_data.get("shared", {}).keys())

        for key in self.REQUIRED_KEYS:
            if key not in env_config and key not in shared_keys:
                raise CountiesValidationError(
                    f"Missing required key '{key}' in {environment} configuration"
                )

    def clear_cache(self) -> None:
        """Clear the configuration cache."""
        self.load_environment_config.cache_clear()
        self.logger.info("Configuration cache cleared")
