"""Application settings with Pydantic validation."""

import sys
from typing import Any, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ...constants import Pricing, Routing


class BookingSettings(BaseSettings):
    """Booking core settings with validation and environment variable support."""

    # Environment
    env: str = Field(
        default="production", description="Environment (production, development, testing)"
    )

    @model_validator(mode="before")
    @classmethod
    def default_env_for_pytest(cls, data: Any) -> Any:
        """Auto-detect testing environment when running under pytest."""
        if not isinstance(data, dict):
            return data

        if ("env" not in data or not data.get("env")) and "pytest" in sys.modules:
            data["env"] = "testing"

        return data

    # Pricing
    wait_rate_per_hour: float = Field(
        default=Pricing.WAIT_RATE_PER_HOUR,
        ge=0,
        description="Fixed rate charged per hour of wait time",
    )
    booking_reference_prefix: str = Field(
        default=Pricing.REFERENCE_PREFIX,
        min_length=1,
        max_length=8,
        description="Prefix of human-readable booking references",
    )

    # Routing service
    routing_base_url: str = Field(
        default=Routing.DEFAULT_BASE_URL, description="Base URL of the OSRM routing service"
    )
    routing_profile: str = Field(
        default=Routing.DEFAULT_PROFILE, description="OSRM routing profile"
    )
    routing_timeout_seconds: float = Field(
        default=Routing.TIMEOUT_SECONDS,
        gt=0,
        le=60,
        description="Upper bound on a routing call; a timeout counts as failure",
    )
    routing_failure_threshold: int = Field(
        default=Routing.FAILURE_THRESHOLD,
        ge=1,
        description="Consecutive routing failures before the circuit opens",
    )
    routing_recovery_seconds: float = Field(
        default=Routing.RECOVERY_SECONDS,
        gt=0,
        description="Seconds an open routing circuit waits before a trial call",
    )

    # Close protection enquiry email
    smtp_host: str = Field(default="localhost", description="SMTP server host")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP server port")
    smtp_username: Optional[str] = Field(default=None, description="SMTP login")
    smtp_password: Optional[SecretStr] = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Use STARTTLS")
    enquiry_sender: str = Field(
        default="bookings@example.com", description="From address of enquiry emails"
    )
    enquiry_recipient: str = Field(
        default="security@example.com", description="Inbox receiving protection enquiries"
    )

    # Logging
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_json: bool = Field(default=False, description="Write JSON log lines to file")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        allowed = {"production", "development", "testing", "staging"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"env must be one of {sorted(allowed)}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return v_upper

    @field_validator("routing_base_url")
    @classmethod
    def validate_routing_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("routing_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("enquiry_sender", "enquiry_recipient")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate email format."""
        if "@" not in v:
            raise ValueError("Invalid email format")
        return v

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env == "development"

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"


# Singleton instance
_settings: Optional[BookingSettings] = None


def get_settings() -> BookingSettings:
    """
    Get the settings singleton, loading it from the environment on first use.

    Returns:
        BookingSettings instance
    """
    global _settings
    if _settings is None:
        _settings = BookingSettings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (used by tests)."""
    global _settings
    _settings = None
