"""
Configuration management for the Proxmox compute resource.

This module validates cluster connection settings and loads configuration
from files and environment variables.
"""

import os
import re
import yaml
from typing import Optional
from urllib.parse import urlparse
from pydantic import BaseModel, Field, field_validator, ConfigDict

from .exceptions import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)


USER_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


class ConnectionSettings(BaseModel):
    """Credentials and endpoint of a Proxmox cluster.

    ``user`` must carry its authentication realm (``root@pam``) and ``url``
    must be an http(s) URL with a host.
    """

    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1)
    user: str = Field(min_length=1)
    password: str = Field(min_length=1)
    verify_ssl: bool = True
    node: str = Field(default="pve", min_length=1)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError("url must be an http or https URL")
        return v

    @field_validator("user")
    @classmethod
    def validate_user(cls, v: str) -> str:
        if not USER_PATTERN.match(v):
            raise ValueError("user must be in the form name@realm, e.g. root@pam")
        return v


class AppConfig(BaseModel):
    """Application configuration with Pydantic validation.

    Configuration can be loaded from:
    1. Explicit config file path
    2. Default config file locations
    3. Environment variables (highest priority)

    Environment variables:
    - PVE_COMPUTE_URL: Cluster API url
    - PVE_COMPUTE_USER: User in name@realm form
    - PVE_COMPUTE_PASSWORD: User password
    - PVE_COMPUTE_VERIFY_SSL: Verify the server certificate (true/false)
    - PVE_COMPUTE_NODE: Default node
    - PVE_COMPUTE_TIMEOUT: Request timeout in seconds
    - PVE_COMPUTE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    model_config = ConfigDict(extra="forbid")

    url: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    verify_ssl: bool = True
    default_node: str = Field(default="pve", description="Node used for listings")
    timeout: int = Field(default=30, gt=0, description="Request timeout in seconds")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v

    def connection_settings(self) -> ConnectionSettings:
        """
        Validated connection settings.

        Raises:
            ConfigurationError: If url, user or password is missing or invalid
        """
        try:
            return ConnectionSettings(
                url=self.url or "",
                user=self.user or "",
                password=self.password or "",
                verify_ssl=self.verify_ssl,
                node=self.default_node,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid connection settings: {e}")


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value}")


class ConfigLoader:
    """Loads and validates configuration."""

    def __init__(self) -> None:
        self.logger = logger

    def load_config(self, config_path: Optional[str] = None) -> AppConfig:
        """
        Load configuration from file and environment variables.

        Priority (highest to lowest):
        1. Environment variables
        2. Config file (explicit path or default locations)
        3. Default values

        Args:
            config_path: Path to configuration file. If None, looks in default locations.

        Returns:
            AppConfig: Loaded configuration
        """
        if config_path:
            config_data = self._load_data_from_file(config_path)
        else:
            default_paths = [
                os.path.expanduser("~/.config/pve-compute/config.yaml"),
                "/etc/pve-compute/config.yaml",
                "config.yaml",
            ]

            config_data = {}
            for path in default_paths:
                if os.path.exists(path):
                    self.logger.info(f"Loading configuration from {path}", path=path)
                    config_data = self._load_data_from_file(path)
                    break

            if not config_data:
                self.logger.info("No configuration file found, using defaults and environment variables")

        config_data = self._apply_env_overrides(config_data)

        try:
            return AppConfig(**config_data)
        except ValueError as e:
            self.logger.error(f"Invalid configuration: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid configuration: {e}")

    def _apply_env_overrides(self, config_data: dict) -> dict:
        """Apply environment variable overrides to config data."""
        env_mappings = {
            'PVE_COMPUTE_URL': 'url',
            'PVE_COMPUTE_USER': 'user',
            'PVE_COMPUTE_PASSWORD': 'password',
            'PVE_COMPUTE_VERIFY_SSL': ('verify_ssl', _to_bool),
            'PVE_COMPUTE_NODE': 'default_node',
            'PVE_COMPUTE_TIMEOUT': ('timeout', int),
            'PVE_COMPUTE_LOG_LEVEL': 'log_level',
        }

        for env_var, mapping in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                if isinstance(mapping, tuple):
                    config_key, converter = mapping
                    try:
                        config_data[config_key] = converter(env_value)
                        self.logger.debug(f"Applied environment override: {env_var}")
                    except (ValueError, TypeError) as e:
                        self.logger.warning(
                            f"Invalid value for {env_var}: {env_value}, ignoring. Error: {e}"
                        )
                else:
                    config_data[mapping] = env_value
                    self.logger.debug(f"Applied environment override: {env_var}")

        return config_data

    def _load_data_from_file(self, path: str) -> dict:
        """Load configuration data from a specific file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            self.logger.error(
                f"Failed to parse configuration file {path}: {e}",
                path=path,
                exc_info=True,
            )
            raise ConfigurationError(f"Failed to parse configuration file: {e}")
        except OSError as e:
            self.logger.error(
                f"Failed to load configuration from {path}: {e}",
                path=path,
                exc_info=True,
            )
            raise ConfigurationError(f"Failed to load configuration: {e}")

        if data is None:
            return {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid configuration format in {path}")

        return data


config_loader = ConfigLoader()
