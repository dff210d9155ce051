from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent
# project root (one level above app/)
PROJECT_ROOT = BASE_DIR.parent


class Settings(BaseSettings):
    # General
    app_name: str = "Swipe Matching Core"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str
    db_statement_timeout_ms: int = 5000

    # JWT
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # Change feed (Redis pub/sub)
    redis_dsn: str = "redis://localhost:6379/0"
    change_feed_enabled: bool = True
    change_feed_channel_prefix: str = "changes"

    # Retry of transient storage failures
    storage_retry_attempts: int = 3
    storage_retry_base_delay: float = 0.1  # seconds
    storage_retry_max_delay: float = 2.0

    # Pagination
    messages_page_size: int = 50
    posts_page_size: int = 20

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
