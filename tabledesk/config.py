"""
Application configuration using pydantic-settings.

Loads configuration from environment variables (prefix ``TABLEDESK_``) with
sensible defaults for an editing session.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TABLEDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Remote document store
    remote_base_url: str = "http://localhost:8000/api/v1"
    request_timeout_seconds: float = 30.0
    auth_token: Optional[str] = None

    # Liveness probe
    probe_interval_seconds: float = 30.0
    probe_timeout_seconds: float = 3.0

    # Editing
    history_max_depth: int = 50
    inference_sample_rows: int = 50

    # Local backup storage (SQLite by default)
    backup_database_url: str = "sqlite:///./tabledesk_backups.db"
    backup_key_prefix: str = "editor_backup_"

    # Application
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
