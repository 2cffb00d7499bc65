"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    storage_backend: str = "memory"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    session_ttl_hours: int = 24
    session_cookie_name: str = "session"
    default_username: str = "admin"
    default_password: str = "password123"
    min_password_length: int = 6
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "observe-report/0.1"
    geocode_cache_ttl_seconds: int = 86400
    field_encryption_key: str | None = None
    upload_dir: str = "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def uses_supabase(settings: Settings) -> bool:
    """Return True when the Supabase backend is selected and configured."""
    backend = settings.storage_backend.strip().lower()
    if backend == "memory":
        return False
    if backend != "supabase":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
    if not settings.supabase_url or not settings.supabase_service_key:
        raise ValueError("Supabase backend requires SUPABASE_URL and key")
    return True
