"""
Configuration module for the authentication front door.

This module uses Pydantic Settings to load and validate environment variables
for the Stytch B2B project credentials, the browser session cookie, the
session inactivity window, and the HTTP server.

Environment variables are loaded from .env file or system environment.
Missing project credentials abort startup.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


TEST_API_URL = "https://test.stytch.com"
LIVE_API_URL = "https://api.stytch.com"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Identity authority credentials, browser session policy and server
    binding are all defined here.
    """

    # =========================================================================
    # Identity Authority (Stytch B2B)
    # =========================================================================

    STYTCH_PROJECT_ID: str = Field(
        ...,
        description="Stytch project identifier (project-test-... or project-live-...)",
        min_length=1,
    )

    STYTCH_SECRET: str = Field(
        ...,
        description="Stytch project secret",
        min_length=1,
    )

    STYTCH_API_URL: Optional[str] = Field(
        None,
        description="Override for the authority base URL (derived from the project id when unset)",
    )

    AUTHORITY_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout applied to every authority request",
        gt=0,
    )

    # =========================================================================
    # Browser Session Configuration
    # =========================================================================

    SESSION_COOKIE_SECRET: str = Field(
        ...,
        description="Secret key for signing the browser session cookie",
        min_length=32,
    )

    SESSION_COOKIE_NAME: str = Field(
        default="frontdoor_session",
        description="Name of the cookie carrying the browser identifier",
        min_length=1,
    )

    SESSION_COOKIE_SECURE: bool = Field(
        default=False,
        description="Send the session cookie over HTTPS only",
    )

    SESSION_INACTIVITY_SECONDS: int = Field(
        default=60,
        description="Idle time after which a browser session is discarded",
        ge=10,
        le=86400,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the server",
    )

    PORT: int = Field(
        default=3000,
        description="Port to bind the server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_test_project(self) -> bool:
        """Whether the credentials belong to a Stytch test environment."""
        return self.STYTCH_PROJECT_ID.startswith("project-test-")

    @property
    def authority_base_url(self) -> str:
        """
        Resolve the authority base URL.

        Returns:
            Explicit override when configured, otherwise the test or live
            API host matching the project id. No trailing slash.
        """
        if self.STYTCH_API_URL:
            return self.STYTCH_API_URL.rstrip("/")
        return TEST_API_URL if self.is_test_project else LIVE_API_URL

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("STYTCH_PROJECT_ID", "STYTCH_SECRET")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject credentials made only of whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Project id or secret not provided")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate the log level is a stdlib level name.

        Args:
            v: Log level string (any case)

        Returns:
            Upper-cased level name

        Raises:
            ValueError: If the level is unknown
        """
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        level = v.strip().upper()
        if level not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Cached so settings are loaded once per process.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.

    Example:
        >>> from frontdoor.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.authority_base_url)
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate configuration settings and return a status report.

    Called during application startup; errors abort startup, warnings are
    logged.

    Returns:
        Dictionary with validation status, errors and warnings.
    """
    errors = []
    warnings = []

    if not settings.is_test_project and not settings.SESSION_COOKIE_SECURE:
        warnings.append("Live project configured without SESSION_COOKIE_SECURE")

    if settings.STYTCH_API_URL and not settings.STYTCH_API_URL.startswith("https://"):
        warnings.append("STYTCH_API_URL is not an https URL")

    if settings.SESSION_COOKIE_SECRET == settings.STYTCH_SECRET:
        errors.append("SESSION_COOKIE_SECRET must differ from STYTCH_SECRET")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "authority_url": settings.authority_base_url,
        "inactivity_seconds": settings.SESSION_INACTIVITY_SECONDS,
    }


def log_configuration(settings: Settings, logger: logging.Logger) -> None:
    """Log non-sensitive configuration and any validation warnings."""
    status = validate_configuration(settings)

    logger.info(
        "Loaded configuration",
        extra={
            "authority_url": status["authority_url"],
            "inactivity_seconds": status["inactivity_seconds"],
        }
    )
    for warning in status["warnings"]:
        logger.warning(warning)
    if not status["valid"]:
        raise ValueError("; ".join(status["errors"]))
