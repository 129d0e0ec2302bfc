"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by a ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a
``validate_credentials()`` startup gate that is strict in production mode.

This module imports nothing from the rest of ``mailrelay`` so every other
module can depend on it.
"""

from __future__ import annotations

import sys
from email.utils import parseaddr
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Relay settings loaded from environment variables and ``.env``.

    The webhook URL embeds its token, so it is held as a ``SecretStr``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    sentry_dsn: str = ""

    # -- Gmail -----------------------------------------------------------------
    email_address: str = ""
    gmail_credentials_path: Path = Path("credentials.json")
    gmail_token_path: Path = Path("token.json")
    fetching_interval_minutes: int = 5

    # -- Caches ----------------------------------------------------------------
    email_cache_path: Path = Path("data/email_cache.json")
    id_mapping_cache_path: Path = Path("data/id_mapping_cache.json")
    only_build_email_cache: bool = False

    # -- Content ---------------------------------------------------------------
    strip_quoted_history: bool = True

    # -- Discord ---------------------------------------------------------------
    discord_webhook_url: SecretStr = SecretStr("")
    max_post_length: int = 2000
    max_title_length: int = 100
    webhook_retry_attempts: int = 3
    webhook_retry_delay_seconds: float = 5.0


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # The structured error list never contains raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def _is_email_address(value: str) -> bool:
    _, address = parseaddr(value)
    local, _, domain = address.partition("@")
    return bool(local) and "." in domain


def validate_credentials(settings: Settings) -> None:
    """Check that the relay has what it needs to start.

    In **production** mode the process exits with an error block if anything
    is missing.  In **development** mode each problem is logged as a warning
    and startup continues.
    """
    errors: list[str] = []

    if not settings.gmail_credentials_path.exists():
        errors.append(f"Gmail credentials file not found: {settings.gmail_credentials_path}")

    if not _is_email_address(settings.email_address):
        errors.append(f"EMAIL_ADDRESS is not a valid email address: {settings.email_address!r}")

    if not settings.only_build_email_cache and not settings.discord_webhook_url.get_secret_value():
        errors.append("DISCORD_WEBHOOK_URL is empty or not set")

    if settings.fetching_interval_minutes < 1:
        errors.append(f"Fetching interval must be at least one minute, got {settings.fetching_interval_minutes}")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing or invalid settings for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
