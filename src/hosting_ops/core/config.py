"""Configuration management for the hosting ops toolkit.

This module handles YAML configuration loading, validation, and
environment variable override support for account resolution,
credential brokering and script defaults.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml


DEFAULT_CONFIG_PATHS = ("hosting-ops.yaml", "config/hosting-ops.yaml")

VALID_SOURCES = ("static", "organizations")

DEFAULT_MAX_WORKERS = 8


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Configuration:
    """Configuration management with YAML loading and validation.

    This class handles loading configuration from YAML files,
    validating the structure, and supporting environment variable
    overrides for per-invocation defaults.
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        If None, auto-detects hosting-ops.yaml in current directory.

        Raises:
            ConfigurationError: When configuration file is invalid
        """
        self._config: Dict[str, Any] = {}
        self._config_path = self._resolve_config_path(config_path)
        self._load_configuration()
        self._apply_environment_overrides()
        self._validate_configuration()

    @property
    def path(self) -> Path:
        """Path of the loaded configuration file."""
        return self._config_path

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path.

        Args:
            config_path: Optional path to configuration file

        Returns:
            Resolved Path object to configuration file

        Raises:
            ConfigurationError: When configuration file not found
        """
        if config_path:
            path = Path(config_path)
        else:
            path = Path(DEFAULT_CONFIG_PATHS[0])
            for candidate in DEFAULT_CONFIG_PATHS:
                if Path(candidate).exists():
                    path = Path(candidate)
                    break

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}. "
                "Please create a configuration file or specify a valid path."
            )

        return path

    def _load_configuration(self) -> None:
        """Load configuration from YAML file.

        Raises:
            ConfigurationError: When YAML file is invalid
        """
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file {self._config_path}: {e}"
            )
        except IOError as e:
            raise ConfigurationError(
                f"Unable to read configuration file {self._config_path}: {e}"
            )

        if not isinstance(self._config, dict):
            raise ConfigurationError(
                f"Configuration file {self._config_path} must contain a mapping"
            )

    def _validate_configuration(self) -> None:
        """Validate configuration has required fields.

        Raises:
            ConfigurationError: When required fields are missing
        """
        if "directory" not in self._config:
            raise ConfigurationError(
                "Required configuration section 'directory' is missing"
            )

        directory = self._config["directory"]
        if not isinstance(directory, dict):
            raise ConfigurationError("Section 'directory' must be a mapping")

        source = directory.get("source")
        if source not in VALID_SOURCES:
            raise ConfigurationError(
                f"Field 'directory.source' must be one of {', '.join(VALID_SOURCES)}"
            )

        if source == "static" and not directory.get("accounts_file"):
            raise ConfigurationError(
                "Field 'directory.accounts_file' is required for the static source"
            )

        patterns = directory.get("patterns", {})
        if not isinstance(patterns, dict):
            raise ConfigurationError("Field 'directory.patterns' must be a mapping")

        allowed_roles = self.get("credentials.allowed_roles")
        if allowed_roles is not None and not isinstance(allowed_roles, list):
            raise ConfigurationError(
                "Field 'credentials.allowed_roles' must be a list"
            )

        max_workers = self.get("concurrency.max_workers", DEFAULT_MAX_WORKERS)
        if not isinstance(max_workers, int) or max_workers < 1:
            raise ConfigurationError(
                "Field 'concurrency.max_workers' must be a positive integer"
            )

        # Accounts files are resolved relative to the configuration file
        accounts_file = directory.get("accounts_file")
        if accounts_file and not Path(accounts_file).is_absolute():
            directory["accounts_file"] = str(
                self._config_path.parent / accounts_file
            )

    def _apply_environment_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        if "OPS_STAGE" in os.environ:
            self._set_nested_value("defaults.stage", os.environ["OPS_STAGE"])

        if "OPS_REGION" in os.environ:
            self._set_nested_value("defaults.region", os.environ["OPS_REGION"])

        if "AWS_PROFILE" in os.environ:
            self._set_nested_value("aws.profile_name", os.environ["AWS_PROFILE"])

        if "OPS_ACCOUNTS_FILE" in os.environ:
            self._set_nested_value(
                "directory.accounts_file",
                str(Path(os.environ["OPS_ACCOUNTS_FILE"]).resolve()),
            )

    def _set_nested_value(self, key_path: str, value: Any) -> None:
        """Set nested configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'defaults.stage')
            value: Value to set
        """
        keys = key_path.split(".")
        current = self._config

        for key in keys[:-1]:
            if key not in current or not isinstance(current[key], dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'directory.source')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def get_directory_config(self) -> Dict[str, Any]:
        """Get account directory configuration.

        Returns:
            Directory configuration dictionary
        """
        return self._config.get("directory", {})

    def get_default_stage(self) -> Optional[str]:
        """Get default deployment stage, if configured."""
        return self.get("defaults.stage")

    def get_default_region(self) -> Optional[str]:
        """Get default region code, if configured."""
        return self.get("defaults.region")

    def get_default_role(self) -> str:
        """Get default permission role.

        Returns:
            Role name, ReadOnly unless configured otherwise
        """
        return self.get("defaults.role", "ReadOnly")

    def get_profile_name(self) -> Optional[str]:
        """Get operator AWS profile name used to reach the broker."""
        return self.get("aws.profile_name")

    def get_allowed_roles(self) -> Optional[List[str]]:
        """Get roles the credential provider may hand out for any account."""
        return self.get("credentials.allowed_roles")

    def get_low_risk_account_ids(self) -> List[str]:
        """Get accounts where high-risk roles may be assumed freely."""
        return [str(a) for a in self.get("credentials.low_risk_account_ids", [])]

    def get_max_workers(self) -> int:
        """Get fan-out concurrency limit.

        Returns:
            Maximum concurrent workers, 8 by default
        """
        return self.get("concurrency.max_workers", DEFAULT_MAX_WORKERS)

    def to_dict(self) -> Dict[str, Any]:
        """Get complete configuration as dictionary.

        Returns:
            Complete configuration dictionary
        """
        return self._config.copy()
