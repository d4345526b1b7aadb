"""Configuration loading and validation for the Lambda proxy adapter.

Configuration comes from the ``LAMBDA_PROXY_CONFIG`` environment variable
(JSON, set by the deployment) or from a ``config.yaml`` file for local runs.
"""

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.request import CUSTOM_HOST_VARIABLE, DEFAULT_SERVER_ADDRESS

logger = logging.getLogger(__name__)

CONFIG_ENV_VARIABLE = "LAMBDA_PROXY_CONFIG"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


def _validate_host(v: str) -> str:
    result = urlparse(v)
    if not result.scheme or not result.netloc:
        raise ValueError("Host must include scheme (http/https) and hostname")
    if result.scheme not in ("http", "https"):
        raise ValueError("Host scheme must be http or https")
    return v.rstrip("/")


class LoggingConfig(BaseModel):
    """Logging section of the configuration."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="INFO", description="Root log level")
    pretty: bool = Field(default=False, description="Indented JSON output for local runs")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate that the level is a known logging level."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class AdapterConfig(BaseModel):
    """Configuration schema for the Lambda proxy adapter."""

    model_config = ConfigDict(extra="forbid")

    app: str = Field(..., description="WSGI application import string, e.g. 'myapp.wsgi:app'")
    host: Optional[str] = Field(
        None, description="Scheme and host used for generated request URLs"
    )
    strip_base_path: str = Field(default="", description="Base path removed before routing")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("app")
    @classmethod
    def validate_app(cls, v: str) -> str:
        """Validate the ``module:attribute`` form of the app import string."""
        module_path, _, attribute = v.partition(":")
        if not module_path or not attribute:
            raise ValueError("App must be given as 'module.path:attribute'")
        return v

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the host is an absolute http(s) URL."""
        if v is None:
            return v
        return _validate_host(v)


def validate_config(config: Any) -> AdapterConfig:
    """Validate a parsed configuration dictionary.

    Raises:
        ConfigurationError: If the structure or any value is invalid
    """
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a dictionary")
    try:
        return AdapterConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_and_validate_config(config_path: str = "config.yaml") -> AdapterConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If validation fails
        FileNotFoundError: If config file doesn't exist
    """
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            "Create config.yaml based on config.example.yaml."
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if config is None:
        raise ConfigurationError(f"Configuration file {config_path} is empty")

    validated = validate_config(config)
    logger.info(f"Configuration validated: app={validated.app}")
    return validated


def load_config(
    config_path: str = "config.yaml", environ: Optional[Mapping[str, str]] = None
) -> AdapterConfig:
    """Load configuration from the environment, falling back to a YAML file.

    Args:
        config_path: YAML file used when the environment variable is unset
        environ: Environment mapping, defaults to ``os.environ``

    Raises:
        ConfigurationError: If the configuration is invalid
        FileNotFoundError: If neither source is available
    """
    environ = os.environ if environ is None else environ
    config_json = environ.get(CONFIG_ENV_VARIABLE)
    if config_json:
        try:
            config: Dict[str, Any] = json.loads(config_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {CONFIG_ENV_VARIABLE}: {e}") from e
        validated = validate_config(config)
        logger.info("Loaded configuration from environment variable")
        return validated

    return load_and_validate_config(config_path)


def resolve_host(config: AdapterConfig, environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the host for generated requests.

    The configured host wins, then the ``GO_API_HOST`` environment variable,
    then the default placeholder host.

    Raises:
        ConfigurationError: If ``GO_API_HOST`` is not an absolute http(s) URL
    """
    if config.host:
        return config.host
    environ = os.environ if environ is None else environ
    custom_host = environ.get(CUSTOM_HOST_VARIABLE)
    if custom_host is None:
        return DEFAULT_SERVER_ADDRESS
    try:
        return _validate_host(custom_host)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {CUSTOM_HOST_VARIABLE}: {e}") from e
