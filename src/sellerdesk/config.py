"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces webhook secrets in production mode.

IMPORTANT: This module has ZERO imports from the ``sellerdesk`` package to
prevent circular imports.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields keep webhook secrets out of logs and reprs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    webhook_port: int = 8000
    public_base_url: str = ""

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/sellerdesk.db")
    database_busy_timeout: float = 5.0

    # -- Inbound webhooks (secrets) --------------------------------------------
    twilio_auth_token: SecretStr = SecretStr("")
    email_webhook_secret: SecretStr = SecretStr("")


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list, never the exception text,
        # which may contain raw secret values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce webhook secret presence at startup.

    In **production** mode a missing secret stops the process, because
    unsigned webhooks would let anyone inject messages.  In development mode
    each missing secret is logged as a warning and signature checks are
    skipped for that channel.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.twilio_auth_token.get_secret_value():
        errors.append("TWILIO_AUTH_TOKEN is empty or not set")

    if not settings.email_webhook_secret.get_secret_value():
        errors.append("EMAIL_WEBHOOK_SECRET is empty or not set")

    if settings.production and not settings.public_base_url:
        errors.append("PUBLIC_BASE_URL is required to verify Twilio signatures")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
