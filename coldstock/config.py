import secrets
from typing import Final

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_PORT, MIN_SECRET_KEY_LENGTH
from .domain.constants import (
    DEFAULT_LOCATION_CAPACITY_KG,
    EXPIRATION_WARNING_DAYS,
)

_DEFAULT_SECRET: Final = "dev-secret-key-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    # Server configuration
    debug: bool = Field(default=True, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="Server port")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./coldstock.db", description="Database connection URL"
    )

    # Application configuration
    app_name: str = Field(default="Coldstock", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")

    # Security configuration
    secret_key: str = Field(
        default=_DEFAULT_SECRET,
        min_length=MIN_SECRET_KEY_LENGTH,
        description="Secret key used to sign access and refresh tokens",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(
        default=60 * 24, ge=1, description="Access token lifetime in minutes"
    )
    refresh_token_expire_days: int = Field(
        default=7, ge=1, description="Refresh token lifetime in days"
    )

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate and potentially generate a secure secret key."""
        if v == _DEFAULT_SECRET:
            secure_key = secrets.token_urlsafe(64)
            print(
                "⚠️  WARNING: Using default secret key. "
                "Generated secure key for this session."
            )
            print(
                "💡 For production, set SECRET_KEY environment variable "
                "or add to .env file:"
            )
            print(f"   SECRET_KEY={secure_key}")
            return secure_key

        if len(v) < MIN_SECRET_KEY_LENGTH:
            raise ValueError(
                f"Secret key must be at least {MIN_SECRET_KEY_LENGTH} characters long"
            )

        return v

    # Warehouse configuration
    default_location_capacity_kg: float = Field(
        default=DEFAULT_LOCATION_CAPACITY_KG,
        gt=0,
        description="Capacity assigned to generated locations",
    )
    expiration_warning_days: int = Field(
        default=EXPIRATION_WARNING_DAYS,
        ge=1,
        description="Products expiring within this many days are reported",
    )

    # Bootstrap administrator, created on startup when no user exists
    admin_email: str | None = Field(
        default=None, description="Email of the initial administrator"
    )
    admin_password: str | None = Field(
        default=None, description="Password of the initial administrator"
    )

    # Logging configuration
    log_to_file: bool = Field(
        default=False, description="Force logging to file even in debug mode"
    )

    # Requests per minute and client IP
    rate_limit_general: int = Field(default=100, ge=1)
    rate_limit_write: int = Field(default=30, ge=1)
    rate_limit_auth: int = Field(default=10, ge=1)

    # Observability
    enable_telemetry: bool = Field(
        default=False, description="Install OpenTelemetry tracing and metrics"
    )
    metrics_port: int = Field(default=8080, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def effective_database_url(self) -> str:
        """Database URL with the legacy ``postgres://`` scheme normalized."""
        if self.database_url.startswith("postgres://"):
            return "postgresql://" + self.database_url.removeprefix("postgres://")
        return self.database_url


# Global settings instance
settings: Final = Settings()
