"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Telegram Alert Relay, loading and validating environment variables at
startup.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramSettings(BaseSettings):
    """Telegram Bot API settings."""

    # Nested settings do not inherit the parent's env_file
    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    bot_token: SecretStr = Field(
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token",
    )
    api_url: str = Field(
        default="https://api.telegram.org",
        alias="TELEGRAM_API_URL",
        description="Telegram Bot API base URL",
    )
    poll_timeout: int = Field(
        default=60,
        alias="TELEGRAM_POLL_TIMEOUT",
        description="Long-poll timeout in seconds for inbound updates",
        ge=0,
        le=600,
    )

    @field_validator("bot_token")
    @classmethod
    def validate_token(cls, v: SecretStr) -> SecretStr:
        """Validate that the bot token is not blank."""
        if not v.get_secret_value().strip():
            raise ValueError("TELEGRAM_BOT_TOKEN must not be empty")
        return v

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate API URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("TELEGRAM_API_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from telegram_alert_relay.config import get_settings

        settings = get_settings()
        print(settings.listen_port)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    telegram: TelegramSettings = Field(default_factory=TelegramSettings)

    listen_host: str = Field(
        default="0.0.0.0",
        alias="LISTEN_HOST",
        description="Interface the HTTP server binds to",
    )
    listen_port: int = Field(
        default=9087,
        alias="LISTEN_PORT",
        description="HTTP port for the webhook endpoints",
        ge=1,
        le=65535,
    )
    template_path: str | None = Field(
        default=None,
        alias="TEMPLATE_PATH",
        description="Optional Jinja2 template for alert messages",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    @field_validator("template_path")
    @classmethod
    def validate_template_path(cls, v: str | None) -> str | None:
        """Treat an empty template path as unset."""
        if v is not None and not v.strip():
            return None
        return v

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with the bot token masked.
        """
        return {
            "bot_token": self._redact_token(self.telegram.bot_token.get_secret_value()),
            "api_url": self.telegram.api_url,
            "poll_timeout": str(self.telegram.poll_timeout),
            "listen": f"{self.listen_host}:{self.listen_port}",
            "template_path": self.template_path or "(not set)",
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_token(token: str) -> str:
        """Keep only the bot ID part of a ``<id>:<secret>`` token."""
        if ":" in token:
            return f"{token.split(':', 1)[0]}:***"
        return "***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
