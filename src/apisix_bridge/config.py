"""Configuration management for APISIX Bridge using Pydantic.

This module provides type-safe configuration models for the gateway
connection, connection pool tuning, the capability detection policy and
logging.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _validate_http_url(v: str) -> str:
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    return v.rstrip("/")


class GatewayConfig(BaseModel):
    """Connection settings for one gateway (Admin and Control API)."""

    admin_url: str = Field(..., description="Admin API base URL, e.g. http://127.0.0.1:9180")
    control_url: str = Field(
        default="http://127.0.0.1:9090", description="Control API base URL"
    )
    api_key: str | None = Field(default=None, description="Admin API key (X-API-KEY header)")
    admin_prefix: str = Field(default="/apisix/admin", description="Admin API path prefix")
    timeout: float = Field(
        default=30.0, gt=0, le=600, description="Default request timeout in seconds"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Extra headers sent on every request"
    )
    declared_version: str | None = Field(
        default=None,
        description="Known server version; skips capability probing when set",
    )

    @field_validator("admin_url", "control_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize URL."""
        return _validate_http_url(v)

    @field_validator("admin_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Normalize the prefix to a leading slash and no trailing slash."""
        v = v.strip("/")
        return f"/{v}" if v else ""

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str | None) -> str | None:
        """Reject blank API keys."""
        if v is not None and v.strip() == "":
            raise ValueError("API key cannot be blank")
        return v


class PerformanceConfig(BaseModel):
    """Connection pool and throttling settings."""

    rate_limit: int = Field(
        default=0, ge=0, le=1000, description="Requests per second limit (0 = unlimited)"
    )
    http_max_connections: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Maximum number of connections in the connection pool",
    )
    http_max_keepalive_connections: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum number of keepalive connections",
    )


class CapabilityPolicy(BaseModel):
    """Policy for detecting what the connected gateway supports.

    Secrets and stream routes are assumed supported unless the gateway gives
    an explicit negative signal; pagination and credentials must be proven.
    """

    assume_secrets: bool = Field(
        default=True, description="Assume the secrets API exists unless proven otherwise"
    )
    assume_stream_routes: bool = Field(
        default=True, description="Assume stream routes exist unless proven otherwise"
    )
    probe_optional_features: bool = Field(
        default=True,
        description="Probe the secrets and stream route APIs for negative signals",
    )
    probe_endpoint: str = Field(
        default="routes", description="Collection used for the pagination probe"
    )
    credentials_probe_consumer: str = Field(
        default="apisix_bridge_capability_probe",
        description="Consumer name used to probe the credentials sub-API",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(
        default="DEBUG",
        description="File log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: str = Field(default="json", description="Log file format (json or console)")
    file: str | None = Field(default=None, description="Log file path")
    log_payloads: bool = Field(
        default=False,
        description=(
            "Enable request/response payload logging at DEBUG level. "
            "Sensitive fields are redacted."
        ),
    )
    max_payload_size: int = Field(
        default=10000,
        ge=100,
        le=1000000,
        description="Maximum payload size (characters) to log before truncation",
    )

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class ClientSettings(BaseSettings):
    """Top-level client configuration.

    Values can come from keyword arguments, a YAML file (see
    ``load_config_from_yaml``) or ``APISIX_BRIDGE_*`` environment variables,
    e.g. ``APISIX_BRIDGE_GATEWAY__ADMIN_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="APISIX_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    gateway: GatewayConfig = Field(..., description="Gateway connection configuration")
    performance: PerformanceConfig = Field(
        default_factory=PerformanceConfig, description="Performance configuration"
    )
    capabilities: CapabilityPolicy = Field(
        default_factory=CapabilityPolicy, description="Capability detection policy"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )


def load_config_from_yaml(config_path: str | Path) -> ClientSettings:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        ClientSettings: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is empty or references a missing variable
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        raise ValueError(f"Empty configuration file: {config_path}")

    config_data = _expand_env_vars(config_data)

    return ClientSettings(**config_data)


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ``${VAR_NAME}`` references in config values.

    Args:
        data: Configuration value (dict, list, str or scalar)

    Returns:
        The value with environment variables substituted
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment."
                )
            return env_value
        return data
    else:
        return data


def save_config_to_yaml(config: ClientSettings, output_path: str | Path) -> None:
    """Save configuration to YAML file with the API key redacted.

    Args:
        config: Configuration to save
        output_path: Path to output YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump()
    if config_dict["gateway"].get("api_key"):
        config_dict["gateway"]["api_key"] = "${APISIX_ADMIN_KEY}"

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
