"""Configuration management for the Cuidar+ calendar service."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

DEFAULT_GOOGLE_SCOPES = [
    "openid",
    "email",
    "profile",
    "https://www.googleapis.com/auth/calendar",
]
OAUTH_CALLBACK_PATH = "/api/v1/google-oauth"


class Settings(BaseModel):
    """Application configuration loaded from environment variables."""

    app_env: str = "dev"
    database_url: str = "sqlite:///./cuidar.db"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    version: str = "0.1.0"
    google_client_id: str = ""
    google_client_secret: str = ""
    public_base_url: str = "http://localhost:8000"
    google_scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_GOOGLE_SCOPES))
    auth_base_url: str = ""
    auth_api_key: str = ""
    default_time_zone: str = "UTC"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            if not value:
                return []
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        if isinstance(value, list):
            return value
        return []

    @field_validator("google_scopes", mode="before")
    @classmethod
    def assemble_google_scopes(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            if not value:
                return list(DEFAULT_GOOGLE_SCOPES)
            return [scope for scope in value.replace(",", " ").split() if scope]
        if isinstance(value, list):
            return value
        return list(DEFAULT_GOOGLE_SCOPES)

    @property
    def google_redirect_uri(self) -> str:
        """The OAuth redirect target, which is the authorization endpoint itself."""
        return f"{self.public_base_url.rstrip('/')}{OAUTH_CALLBACK_PATH}"

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("sqlite+aiosqlite://"):
            return self.database_url
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///")
        if self.database_url.startswith("sqlite://"):
            return self.database_url.replace("sqlite://", "sqlite+aiosqlite://")
        return self.database_url


def _build_settings() -> Settings:
    raw_values: dict[str, Any] = {
        "app_env": os.getenv("APP_ENV"),
        "database_url": os.getenv("DATABASE_URL"),
        "cors_origins": os.getenv("CORS_ORIGINS"),
        "version": os.getenv("APP_VERSION"),
        "google_client_id": os.getenv("GOOGLE_CLIENT_ID"),
        "google_client_secret": os.getenv("GOOGLE_CLIENT_SECRET"),
        "public_base_url": os.getenv("PUBLIC_BASE_URL"),
        "google_scopes": os.getenv("GOOGLE_SCOPES"),
        "auth_base_url": os.getenv("AUTH_BASE_URL"),
        "auth_api_key": os.getenv("AUTH_API_KEY"),
        "default_time_zone": os.getenv("DEFAULT_TIME_ZONE"),
    }
    filtered_values = {key: value for key, value in raw_values.items() if value is not None}
    return Settings(**filtered_values)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return _build_settings()
