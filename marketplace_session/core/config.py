"""
Client configuration models and helpers.

Centralizes settings management so the session layer, the push registration
pipeline and the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
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
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class ApiSettings(BaseSettings):
    """Backend location and the endpoints consumed by the session layer."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    base_url: AnyHttpUrl = Field(..., validation_alias="MARKETPLACE_API_BASE_URL")
    timeout_seconds: float = Field(10.0, validation_alias="MARKETPLACE_API_TIMEOUT")
    refresh_path: str = "/auth/refresh"
    logout_path: str = "/auth/logout"
    login_path: str = "/auth/login"
    register_user_path: str = "/auth/register/user"
    register_merchant_path: str = "/auth/register/merchant"
    profile_path: str = "/auth/user"
    devices_path: str = "/api/v1/devices"

    @property
    def root_url(self) -> str:
        """Base URL without the trailing slash pydantic appends."""
        return str(self.base_url).rstrip("/")


class StorageSettings(BaseSettings):
    """Local durable storage configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    db_path: str = Field(
        "data/marketplace_session.db",
        validation_alias="MARKETPLACE_STORAGE_PATH",
        description="SQLite file backing the string-keyed local store.",
    )
    token_encryption_secret: str = Field(
        ...,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description="Secret used to derive the symmetric key for stored tokens.",
    )

    @field_validator("token_encryption_secret")
    @classmethod
    def _require_secret(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("TOKEN_ENCRYPTION_SECRET must not be blank.")
        return value


class PushSettings(BaseSettings):
    """Push registration behaviour."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    device_type: Optional[str] = Field(
        None,
        validation_alias="MARKETPLACE_DEVICE_TYPE",
        description="Override for the reported device_type; derived from the host when omitted.",
    )
    update_in_place: bool = Field(
        False,
        validation_alias="MARKETPLACE_PUSH_UPDATE_IN_PLACE",
        description=(
            "Send token rotations as PUT /devices/:id/token instead of re-posting the record."
        ),
    )
    request_permission: bool = Field(
        True,
        validation_alias="MARKETPLACE_REQUEST_PERMISSION",
        description="Whether the registration pipeline may prompt for notification permission.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the session layer."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    api: ApiSettings = Field(default_factory=ApiSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    push: PushSettings = Field(default_factory=PushSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "ApiSettings",
    "AppSettings",
    "PushSettings",
    "StorageSettings",
    "get_settings",
]
