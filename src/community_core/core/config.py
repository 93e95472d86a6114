# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Configuration management using Pydantic Settings."""

from beartype import beartype
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with immutable configuration."""

    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        frozen=True,  # Immutable settings
        validate_default=True,
        extra="forbid",
    )

    # Database
    database_url: str | None = Field(
        default=None,
        description="PostgreSQL connection URL (required for connect() to succeed)",
    )
    db_connect_timeout: float = Field(
        default=10.0,
        ge=0.1,
        le=120.0,
        description="Connection handshake timeout in seconds",
    )
    db_command_timeout: float = Field(
        default=45.0,
        ge=1.0,
        le=600.0,
        description="Per-command (socket) timeout in seconds",
    )
    db_reconnect_delay: float = Field(
        default=5.0,
        gt=0.0,
        le=300.0,
        description="Delay before a scheduled reconnect attempt in seconds",
    )
    db_reconnect_exponential: bool = Field(
        default=False,
        description="Double the reconnect delay after each consecutive failure",
    )
    db_reconnect_max_delay: float = Field(
        default=30.0,
        gt=0.0,
        le=3600.0,
        description="Upper bound for the exponential reconnect delay in seconds",
    )
    db_watchdog_interval: float = Field(
        default=30.0,
        gt=0.0,
        le=3600.0,
        description="Interval of the background connection check in seconds",
    )
    db_ready_timeout: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="How long the readiness probe waits for a connection",
    )

    # API Configuration
    app_name: str = Field(
        default="Community Core",
        description="Application name",
        min_length=1,
    )
    api_host: str = Field(
        default="0.0.0.0",  # nosec B104 - Binding to all interfaces is needed for containerized deployment
        description="API host to bind to",
    )
    api_port: int = Field(
        default=5000,
        ge=1,
        le=65535,
        description="API port to bind to",
    )
    api_env: str = Field(
        default="development",
        pattern="^(development|test|staging|production)$",
        description="API environment",
    )
    api_cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed CORS origins",
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level",
    )

    # Security
    jwt_secret: str | None = Field(
        default=None,
        description="JWT signing secret; requests fail with ConfigError when unset",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT algorithm",
    )
    jwt_expiration_minutes: int = Field(
        default=60,
        ge=5,
        le=1440,  # Max 24 hours
        description="JWT token expiration in minutes",
    )

    # Token verification cache
    auth_cache_ttl_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=3600.0,
        description="How long a verified token skips re-verification",
    )
    auth_log_interval_seconds: float = Field(
        default=10.0,
        ge=0.0,
        le=3600.0,
        description="Minimum interval between verification log lines per token",
    )
    auth_cache_prune_threshold: int = Field(
        default=100,
        ge=1,
        description="Cache size above which stale entries are pruned",
    )
    auth_expired_cache_ttl_seconds: float = Field(
        default=300.0,
        ge=0.0,
        le=86400.0,
        description="Age after which a known-expired entry may be pruned",
    )
    auth_expired_cache_prune_threshold: int = Field(
        default=500,
        ge=1,
        description="Expired-token cache size above which old entries are pruned",
    )

    @field_validator("api_cors_origins")
    @classmethod
    def validate_cors_origins(cls: type["Settings"], v: list[str]) -> list[str]:
        """Validate CORS origins are proper URLs."""
        for origin in v:
            if not origin.startswith(("http://", "https://")):
                raise ValueError(f"Invalid CORS origin: {origin}")
        return v

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(
        cls: type["Settings"], v: str | None, info: ValidationInfo
    ) -> str | None:
        """Ensure test JWT secrets are not used in production."""
        if v is not None and not v.strip():
            return None
        if "api_env" in info.data and info.data["api_env"] == "production":
            if v is not None and v.startswith("test-"):
                raise ValueError(
                    "Test JWT secret cannot be used in production. "
                    "Set JWT_SECRET environment variable."
                )
        return v

    @field_validator("db_reconnect_max_delay")
    @classmethod
    def validate_reconnect_delays(
        cls: type["Settings"], v: float, info: ValidationInfo
    ) -> float:
        """Ensure the backoff cap is not below the base delay."""
        if "db_reconnect_delay" in info.data:
            base = info.data["db_reconnect_delay"]
            if v < base:
                raise ValueError(
                    f"db_reconnect_max_delay ({v}) must be >= db_reconnect_delay ({base})"
                )
        return v

    @property
    @beartype
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.api_env == "production"

    @property
    @beartype
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.api_env == "development"


_settings: Settings | None = None


@beartype
def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


@beartype
def clear_settings_cache() -> None:
    """Clear settings cache (for testing)."""
    global _settings
    _settings = None
