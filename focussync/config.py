"""Configuration settings for focussync."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

from focussync.types import MERGE_COOLDOWN_SECONDS


class Settings(BaseSettings):
    """Settings loaded from environment."""

    # Supabase
    supabase_url: str | None = None
    # New key system (preferred)
    supabase_publishable_key: str | None = None  # Client/public access
    # Legacy key (deprecated)
    supabase_anon_key: str | None = None

    # Sync
    sync_user_id: str | None = None  # Signed-in account, for the CLI
    sync_db_path: Path = Path.home() / ".focussync" / "local.db"
    sync_merge_cooldown_seconds: int = MERGE_COOLDOWN_SECONDS

    # App
    log_level: str = "WARNING"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
