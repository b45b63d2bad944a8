"""Application settings and configuration management."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    SESSION_STORE: Literal["redis", "memory"] = "redis"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CONNECT_TIMEOUT_S: float = Field(default=1.0, gt=0)
    SESSION_TTL_SECONDS: int = Field(default=60 * 60 * 24, ge=1)
    SESSION_KEY_PREFIX: str = "interview:session:"

    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_TIMEOUT_S: float = Field(default=30.0, gt=0)
    MAX_FILE_SIZE: int = Field(default=100_000, ge=1)
    MAX_REPO_FILES: int = Field(default=500, ge=1)

    HINTS_PER_QUESTION: int = Field(default=3, ge=1)
    AUTO_FOLLOW_UP: bool = False

    APP_CONFIG_PATH: str = "app_config.json"

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()
