"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from nextstep.config import settings

    # Access settings
    db_url = settings.DATABASE_URL_RESOLVED
    milestones = settings.STREAK_MILESTONES
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings

from nextstep.enums.api import RateLimitType


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "NextStep"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "nextstep"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "nextstep"

    # Full SQLAlchemy URL override (e.g. sqlite+aiosqlite:///:memory: in tests)
    DATABASE_URL: str = ""

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL_RESOLVED(self) -> str:
        """URL the async engine connects to: DATABASE_URL if set, else PostgreSQL."""
        return self.DATABASE_URL or self.POSTGRES_URL

    # Daily stats
    # A day counts as "active" (for streaks) at this many study minutes,
    # or as soon as one step is completed.
    ACTIVE_DAY_MIN_MINUTES: int = 30

    # Streaks
    STREAK_MILESTONES: list[int] = [3, 7, 14, 30, 60, 100, 365]

    # Heatmap activity levels (ratio of the day's activity to the max day)
    ACTIVITY_LEVEL_HIGH: float = 0.75
    ACTIVITY_LEVEL_MEDIUM_HIGH: float = 0.5
    ACTIVITY_LEVEL_MEDIUM: float = 0.25

    # Roadmaps
    DEFAULT_DAILY_GOAL_HOURS: int = 1

    # Usage history window returned by the usage endpoints
    USAGE_HISTORY_DAYS: int = 30

    # Rate limiting (slowapi limit strings)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_ACTIVITY: str = "60/minute"
    RATE_LIMIT_ANALYTICS: str = "30/minute"

    def get_rate_limit(self, rate_limit_type: RateLimitType) -> str:
        """Return the slowapi limit string for an endpoint category."""
        limits = {
            RateLimitType.DEFAULT: self.RATE_LIMIT_DEFAULT,
            RateLimitType.ACTIVITY: self.RATE_LIMIT_ACTIVITY,
            RateLimitType.ANALYTICS: self.RATE_LIMIT_ANALYTICS,
        }
        return limits.get(rate_limit_type, self.RATE_LIMIT_DEFAULT)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
