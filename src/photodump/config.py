"""Application configuration."""

import logging
import os

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_anon_key: str
    public_base_url: str = "http://localhost:8000"
    oauth_provider: str = "google"
    idle_timeout_seconds: float = 15 * 60
    signed_url_ttl_seconds: int = 60
    gallery_page_size: int = 100
    photos_bucket: str = "photos"
    avatars_bucket: str = "avatars"
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("supabase_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("supabase_url must be an http(s) URL")
        return cleaned

    @field_validator("supabase_anon_key")
    @classmethod
    def _check_key(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("supabase_anon_key must not be empty")
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def redirect_target(self) -> str:
        """Return the OAuth callback URL for this deployment."""
        return f"{self.public_base_url.rstrip('/')}/auth/callback"
