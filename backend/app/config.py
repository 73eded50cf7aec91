"""Configuration settings for the Holarchy pages backend."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment (HOLARCHY_* variables)."""

    # Storage
    data_dir: Path = Path("data")
    storage_backend: Literal["auto", "sqlite", "json"] = "auto"

    # Event stream
    sse_retry_ms: int = 10_000
    sse_heartbeat_seconds: float = 25.0
    subscriber_queue_size: int = 256  # Messages buffered per subscriber before drops

    # Rate limiting for bulk writes (sync push, import)
    sync_rate_limit: str = "600/minute"

    # App
    debug: bool = False
    log_level: str = "INFO"
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    class Config:
        env_prefix = "HOLARCHY_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
