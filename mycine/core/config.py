"""Application configuration using environment-aware settings."""

from __future__ import annotations

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration pulled from environment variables."""

    db_url: str = os.environ.get("MC_DB_URL", "sqlite:///./mycine.db")
    log_level: str = os.environ.get("MC_LOG_LEVEL", "INFO")
    user_header: str = os.environ.get("MC_USER_HEADER", "X-User-Id")
    leaderboard_limit: int = int(os.environ.get("MC_LEADERBOARD_LIMIT", "50"))


settings = Settings()
