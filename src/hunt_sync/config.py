"""Application configuration."""

import os
import secrets

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class Settings(BaseSettings):
    """Server settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    photo_bucket: str = "hunt-photos"
    upload_folder: str = "scavenger/entries"
    lock_ttl_seconds: int = 86400
    device_hint_seed: str = "default-seed"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    allow_large_uploads: bool = False
    orchestrated_max_bytes: int = 15 * 1024 * 1024
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


class ClientSettings(BaseSettings):
    """Device-side settings for the sync client."""

    api_base_url: str = "http://localhost:8000"
    debounce_seconds: float = 1.0
    revalidate_interval_seconds: float = 30.0
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    allow_large_uploads: bool = False
    compress_max_dimension: int = 1600
    compress_quality: int = 80
    request_timeout_seconds: float = 20.0
    # Sent with every lock request; set HUNT_DEVICE_FINGERPRINT to keep it
    # stable across restarts.
    device_fingerprint: str = Field(default_factory=lambda: secrets.token_hex(8))

    model_config = SettingsConfigDict(
        env_prefix="HUNT_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def normalize_team_code(raw: str | None) -> str | None:
    """Normalize a shared team code for lookup."""
    if raw is None:
        return None
    cleaned = raw.strip().upper()
    return cleaned or None
