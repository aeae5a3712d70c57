"""
Configuration management for the data-access client.

This module provides centralized configuration loading and validation using
Pydantic settings. Values are loaded from environment variables or .env
files; every tuning constant of the client (timeouts, TTLs, retry budget)
is exposed here so that tests and deployments can override it.
"""

import os
import sys
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """Read ENVIRONMENT; unknown or missing values mean development."""
    value = os.environ.get("ENVIRONMENT", "").strip().lower()
    if value in {member.value for member in Environment}:
        return Environment(value)
    return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    .env files for an environment, in load order.

    The base file comes first so that `.env.<environment>` overrides it.
    """
    return (".env", f".env.{environment.value}")


def get_user_config_dir() -> Path:
    """Per-user configuration directory, used for durable token storage."""
    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "resilient-data-client"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "resilient-data-client"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "resilient-data-client"
    return Path.home() / ".config" / "resilient-data-client"


class ClientSettings(BaseSettings):
    """
    Client settings loaded from environment variables.

    No field is strictly required: a bare environment yields a client that
    targets a local primary backend. Environment-specific configuration is
    supported through .env.development, .env.staging and .env.production,
    selected by the ENVIRONMENT variable.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Primary backend
    api_base_url: str = Field(
        default="http://localhost:3001/api",
        description="Base URL of the primary REST service"
    )

    # Secondary backend
    secondary_url: Optional[str] = Field(
        default=None,
        description="Base URL of the secondary data service"
    )
    secondary_api_key: Optional[str] = Field(
        default=None,
        description="Fixed API key for the secondary data service"
    )
    use_secondary: Optional[bool] = Field(
        default=None,
        description=(
            "Route supported operations to the secondary service. When unset, "
            "derived from whether the secondary URL and key are both configured"
        )
    )

    # Request policy
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Hard deadline for a single network attempt"
    )
    cache_ttl_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Maximum age of a cached read response"
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Re-attempts after the first attempt for retryable failures"
    )
    retry_initial_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Backoff delay before the first re-attempt; doubles each time"
    )
    retry_max_delay_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional cap on the backoff delay"
    )
    coalesce_inflight_reads: bool = Field(
        default=False,
        description="Share one in-flight attempt between concurrent identical reads"
    )

    # Token storage
    token_storage_type: str = Field(
        default="file",
        description="Durable token storage: 'memory', 'file' or 'redis'"
    )
    token_storage_path: Path = Field(
        default_factory=lambda: get_user_config_dir() / "tokens.json",
        description="JSON file used by the 'file' token storage"
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for the 'redis' token storage"
    )
    invalidate_token_on_start: bool = Field(
        default=True,
        description="Discard any persisted token when the client starts"
    )

    # Observability Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    otel_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry collector endpoint URL"
    )
    otel_service_name: str = Field(
        default="resilient-data-client",
        description="Service name for OpenTelemetry traces"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Validate that api_base_url is a non-empty HTTP/HTTPS URL."""
        if not v or not v.strip():
            raise ValueError("api_base_url cannot be empty")
        v = v.strip().rstrip("/")
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("api_base_url must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("secondary_url")
    @classmethod
    def validate_secondary_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate secondary_url format when provided; blank means unset."""
        if v is None or not v.strip():
            return None
        v = v.strip().rstrip("/")
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("secondary_url must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("secondary_api_key")
    @classmethod
    def validate_secondary_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank key as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("token_storage_type")
    @classmethod
    def validate_token_storage_type(cls, v: str) -> str:
        """Validate that token_storage_type is a known storage."""
        v = v.strip().lower()
        if v not in {"memory", "file", "redis"}:
            raise ValueError("token_storage_type must be 'memory', 'file' or 'redis'")
        return v

    @model_validator(mode="after")
    def validate_backend_config(self) -> "ClientSettings":
        """Validate cross-field requirements for the secondary backend and token storage."""
        if self.use_secondary and not self.secondary_configured:
            raise ValueError(
                "secondary_url and secondary_api_key are required when use_secondary is true"
            )
        if self.token_storage_type == "redis" and not self.redis_url:
            # In development, a missing redis_url falls back to in-memory storage
            if self.environment != Environment.DEVELOPMENT:
                raise ValueError(
                    "redis_url is required when token_storage_type is 'redis' "
                    "in non-development environments"
                )
        return self

    @property
    def secondary_configured(self) -> bool:
        """Whether both secondary URL and API key are present."""
        return bool(self.secondary_url and self.secondary_api_key)

    @property
    def secondary_by_default(self) -> bool:
        """Initial value of the process-wide secondary routing flag."""
        if self.use_secondary is None:
            return self.secondary_configured
        return self.use_secondary


class ConfigurationError(Exception):
    """
    Raised when settings cannot be loaded or fail startup validation.

    Attributes:
        message: Summary of the failure
        missing_fields: Required settings that were not provided
        invalid_fields: Setting name -> validation message
    """

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = list(missing_fields or [])
        self.invalid_fields = dict(invalid_fields or {})
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        lines = [self.message]
        if self.missing_fields:
            lines.append(f"Missing required fields: {', '.join(self.missing_fields)}")
        if self.invalid_fields:
            lines.append("Invalid field values:")
            lines.extend(f"  - {name}: {reason}" for name, reason in self.invalid_fields.items())
        return "\n".join(lines)

    @classmethod
    def from_validation_error(cls, message: str, error: ValidationError) -> "ConfigurationError":
        """Split a pydantic ValidationError into missing and invalid fields."""
        missing: List[str] = []
        invalid = {}
        for detail in error.errors():
            name = ".".join(str(part) for part in detail.get("loc", ())) or "settings"
            if detail.get("type") == "missing":
                missing.append(name)
            else:
                invalid[name] = detail.get("msg", "invalid value")
        return cls(message, missing_fields=missing, invalid_fields=invalid)


def create_settings_for_environment(environment: Optional[Environment] = None) -> ClientSettings:
    """
    Load settings with the .env files of one environment.

    Args:
        environment: Environment whose files are loaded; detected from
            ENVIRONMENT when omitted

    Returns:
        ClientSettings: Validated settings

    Raises:
        ConfigurationError: If any setting is missing or invalid
    """
    environment = environment or _detect_environment()
    try:
        # Missing files are skipped by the dotenv source
        return ClientSettings(_env_file=_get_env_files(environment))
    except ValidationError as e:
        raise ConfigurationError.from_validation_error(
            f"Failed to load configuration for environment '{environment.value}'", e
        ) from e


_settings_cache: Optional[ClientSettings] = None


def get_settings() -> ClientSettings:
    """
    Return the process-wide settings, loading them on first use.

    Raises:
        ConfigurationError: If settings are missing or invalid
    """
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()
    return _settings_cache


def clear_settings_cache() -> None:
    """Forget the loaded settings so the next get_settings() reloads them."""
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[ClientSettings] = None) -> None:
    """
    Validate settings before the client issues any request.

    Raises:
        ConfigurationError: If any settings are invalid for the environment.
    """
    settings = settings or get_settings()

    validation_errors = {}

    # Bearer tokens must not travel in clear text outside development
    if settings.environment == Environment.PRODUCTION:
        if not settings.api_base_url.startswith("https://"):
            validation_errors["api_base_url"] = (
                f"Production environment requires an HTTPS primary URL: {settings.api_base_url}"
            )
        if settings.secondary_url and not settings.secondary_url.startswith("https://"):
            validation_errors["secondary_url"] = (
                f"Production environment requires an HTTPS secondary URL: {settings.secondary_url}"
            )

    if settings.token_storage_type == "file":
        parent = settings.token_storage_path.parent
        if parent.exists() and not parent.is_dir():
            validation_errors["token_storage_path"] = (
                f"Token storage directory is not a directory: {parent}"
            )

    if settings.retry_max_delay_seconds is not None:
        if settings.retry_max_delay_seconds < settings.retry_initial_delay_seconds:
            validation_errors["retry_max_delay_seconds"] = (
                "retry_max_delay_seconds must not be lower than retry_initial_delay_seconds"
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )


def get_environment_info() -> dict:
    """Describe the detected environment and which of its .env files exist."""
    environment = _detect_environment()
    env_files = _get_env_files(environment)
    return {
        "environment": environment.value,
        "env_files_checked": list(env_files),
        "env_files_loaded": [name for name in env_files if Path(name).exists()],
    }
