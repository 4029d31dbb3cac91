"""
Application configuration models and helpers.

Centralizes settings for the admin API and the client-side session components
so both read the same configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()

_SETTINGS_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class IdentitySettings(BaseSettings):
    """Configuration for the hosted identity provider."""

    model_config = _SETTINGS_CONFIG

    project_id: str = Field(..., validation_alias="IDENTITY_PROJECT_ID")
    api_key: Optional[str] = Field(
        None,
        validation_alias="IDENTITY_API_KEY",
        description="Web API key used for client-side sign-in calls.",
    )
    credentials_file: Optional[str] = Field(
        None,
        validation_alias="GOOGLE_APPLICATION_CREDENTIALS",
        description="Service-account JSON; application-default credentials when unset.",
    )
    oauth_request_uri: str = Field(
        "http://localhost", validation_alias="IDENTITY_OAUTH_REQUEST_URI"
    )


class EmailSettings(BaseSettings):
    """Transactional email (Brevo) configuration."""

    model_config = _SETTINGS_CONFIG

    brevo_api_key: Optional[str] = Field(None, validation_alias="BREVO_API_KEY")
    email_from: Optional[str] = Field(
        None,
        validation_alias="EMAIL_FROM",
        description="Either 'Name <address>' or a bare address.",
    )
    sender_name: str = Field("WebCraft", validation_alias="EMAIL_SENDER_NAME")


class SessionSettings(BaseSettings):
    """Token lifecycle timings and client storage location."""

    model_config = _SETTINGS_CONFIG

    token_ttl_seconds: int = Field(7 * 24 * 60 * 60, validation_alias="TOKEN_TTL_SECONDS")
    refresh_threshold_seconds: int = Field(
        24 * 60 * 60, validation_alias="TOKEN_REFRESH_THRESHOLD_SECONDS"
    )
    expiration_check_seconds: int = Field(
        30 * 60, validation_alias="TOKEN_EXPIRATION_CHECK_SECONDS"
    )
    refresh_check_seconds: int = Field(5 * 60, validation_alias="TOKEN_REFRESH_CHECK_SECONDS")
    expiration_warning_minutes: int = Field(60, validation_alias="EXPIRATION_WARNING_MINUTES")
    local_storage_path: str = Field(
        "data/local_storage.db", validation_alias="LOCAL_STORAGE_PATH"
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _SETTINGS_CONFIG

    ledger_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="LEDGER_ENCRYPTION_SECRET",
        description="Secret used to derive the key that seals the token ledger.",
    )


class StoreSettings(BaseSettings):
    """Profile document store selection."""

    model_config = _SETTINGS_CONFIG

    backend: Literal["firestore", "sqlite"] = Field(
        "sqlite", validation_alias="PROFILE_STORE_BACKEND"
    )
    sqlite_path: str = Field("data/profiles.db", validation_alias="PROFILE_STORE_PATH")
    profile_collection: str = Field("users", validation_alias="PROFILE_COLLECTION")

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: str) -> str:
        """Accept the backend name in any case."""
        return value.strip().lower() if isinstance(value, str) else value


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    def ledger_secret(self) -> str:
        """Secret for sealing the ledger, falling back to identity values."""
        return (
            self.security.ledger_encryption_secret
            or self.identity.api_key
            or self.identity.project_id
        )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "EmailSettings",
    "IdentitySettings",
    "SecuritySettings",
    "SessionSettings",
    "StoreSettings",
    "get_settings",
]
