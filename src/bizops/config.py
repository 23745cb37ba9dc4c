"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.bizops.core.errors import ConfigurationError


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Access control (comma-separated list of e-mail addresses)
    ALLOWED_EMAILS: str = ""

    # Firebase Realtime Database + Identity Toolkit
    FIREBASE_API_KEY: str = ""
    FIREBASE_DATABASE_URL: str = ""
    FIREBASE_PROJECT_ID: str = ""

    # Store client
    STORE_TIMEOUT: int = 30
    STORE_READ_MAX_RETRIES: int = 3

    @property
    def allowed_emails(self) -> list[str]:
        """Parsed allow-list, trimmed and lower-cased, empty entries dropped."""
        return [
            email.strip().lower()
            for email in self.ALLOWED_EMAILS.split(",")
            if email.strip()
        ]

    def missing_store_credentials(self) -> list[str]:
        """Names of the store settings that are required but empty."""
        required = {
            "FIREBASE_API_KEY": self.FIREBASE_API_KEY,
            "FIREBASE_DATABASE_URL": self.FIREBASE_DATABASE_URL,
            "FIREBASE_PROJECT_ID": self.FIREBASE_PROJECT_ID,
        }
        return [name for name, value in required.items() if not value]

    def is_store_configured(self) -> bool:
        return not self.missing_store_credentials()

    def require_store_credentials(self) -> None:
        """Raise ConfigurationError when any store credential is missing.

        The console cannot start without them; the caller is expected to
        render a static setup view and stop.
        """
        missing = self.missing_store_credentials()
        if missing:
            raise ConfigurationError(missing)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
