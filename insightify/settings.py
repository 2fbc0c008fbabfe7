"""Application settings using Pydantic BaseSettings."""

import os
import re

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_async_database_url() -> str:
    """Get database URL converted for asyncpg driver."""
    url = os.environ.get("DATABASE_URL", "") or settings.database_url
    # Convert postgres:// to postgresql+asyncpg:// for SQLAlchemy async
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    # asyncpg doesn't support sslmode, it uses ssl parameter
    if "sslmode=" in url:
        url = re.sub(r'[?&]sslmode=[^&]*', '', url)
        url = url.rstrip('?&')
    return url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Postgres (sqlite+aiosqlite works for local dev)
    database_url: str = "sqlite+aiosqlite:///./insightify.db"

    # Redis (optional)
    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = False  # Disable Redis by default for dev

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:5173"]

    # Live presence
    live_activity_window_seconds: int = 300
    live_purge_after_seconds: int = 600
    live_sweep_interval_seconds: int = 300

    # Real-time broadcast
    broadcast_queue_size: int = 256

    # Queries and retention
    query_timeout_seconds: float = 30.0
    analytics_retention_days: int = 90

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
