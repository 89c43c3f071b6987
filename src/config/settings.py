"""Application settings using Pydantic Settings.

Centralized configuration for the prospect pipeline.

Production requires the following environment variables:
- PIPELINE_FRONTEND_URL: Public URL used in email links (not localhost)
- PIPELINE_SENDER_EMAIL: From address for pipeline emails
"""

import logging
import sys
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class SMTPSettings(BaseSettings):
    """SMTP server used by the SMTP email provider."""

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        extra="ignore",
    )

    host: Optional[str] = Field(default=None, description="SMTP host; unset disables SMTP")
    port: int = Field(default=587, description="SMTP port")
    username: Optional[str] = Field(default=None, description="SMTP username")
    password: Optional[str] = Field(default=None, description="SMTP password")
    use_tls: bool = Field(default=True, description="Use STARTTLS")
    use_ssl: bool = Field(default=False, description="Use implicit SSL")
    timeout: int = Field(default=30, description="Connection timeout in seconds")

    @property
    def is_configured(self) -> bool:
        return bool(self.host)


class PipelineSettings(BaseSettings):
    """Prospect pipeline settings."""

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", description="Environment name")

    # Email links and sender
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Base URL for links in pipeline emails",
    )
    sender_name: str = Field(default="Fund Investor Relations", description="From name")
    sender_email: str = Field(default="noreply@localhost", description="From address")

    # Reminder schedules, in hours after the triggering status change
    kyc_reminder_hours: List[int] = Field(
        default=[48, 5 * 24, 10 * 24],
        description="KYC reminder delays after the KYC link is sent",
    )
    onboarding_reminder_hours: List[int] = Field(
        default=[48, 96, 144],
        description="Onboarding reminder delays after the account is created",
    )

    @field_validator("frontend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("kyc_reminder_hours", "onboarding_reminder_hours")
    @classmethod
    def _positive_delays(cls, value: List[int]) -> List[int]:
        if any(hours <= 0 for hours in value):
            raise ValueError("Reminder delays must be positive")
        return sorted(value)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod", "staging")

    @property
    def kyc_reminder_delays(self) -> Tuple[timedelta, ...]:
        return tuple(timedelta(hours=h) for h in self.kyc_reminder_hours)

    @property
    def onboarding_reminder_delays(self) -> Tuple[timedelta, ...]:
        return tuple(timedelta(hours=h) for h in self.onboarding_reminder_hours)

    def validate_production_settings(self) -> List[str]:
        """
        Validate settings required in production.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.is_production:
            return errors

        if "localhost" in self.frontend_url or "127.0.0.1" in self.frontend_url:
            errors.append("PIPELINE_FRONTEND_URL: Must point at the public frontend in production")

        if self.sender_email.endswith("@localhost"):
            errors.append("PIPELINE_SENDER_EMAIL: Must be a deliverable address in production")

        return errors


# =============================================================================
# STARTUP VALIDATION
# =============================================================================

class StartupConfigurationError(Exception):
    """Raised when configuration validation fails at startup."""
    pass


def validate_startup_settings(settings: PipelineSettings, exit_on_failure: bool = True) -> bool:
    """
    Validate settings at application startup.

    Args:
        settings: Pipeline settings instance
        exit_on_failure: If True, exit the process on failure (default)

    Returns:
        True if validation passes

    Raises:
        StartupConfigurationError: If validation fails and exit_on_failure is False
    """
    errors = settings.validate_production_settings()

    if not errors:
        if settings.is_production:
            logger.info("Production configuration validation PASSED")
        return True

    error_msg = "Invalid production configuration:\n" + "\n".join(
        f"  {i}. {err}" for i, err in enumerate(errors, 1)
    )
    logger.critical(error_msg)

    if exit_on_failure:
        print(error_msg, file=sys.stderr)
        sys.exit(1)
    raise StartupConfigurationError(error_msg)


@lru_cache
def get_settings() -> PipelineSettings:
    """
    Get cached pipeline settings instance.

    Returns:
        PipelineSettings: Cached settings loaded from environment.
    """
    return PipelineSettings()


@lru_cache
def get_smtp_settings() -> SMTPSettings:
    return SMTPSettings()
