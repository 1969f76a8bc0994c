"""
Application configuration using Pydantic Settings.

Environment-based infrastructure switching is controlled by the ENVIRONMENT variable.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./lifeplanner.db"

    # ===========================================
    # Auth
    # ===========================================
    # When disabled every request runs as the mock "dev_user".
    AUTH_ENABLED: bool = False

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    # ===========================================
    # Repeat scheduler
    # ===========================================
    REPEAT_SCHEDULER_ENABLED: bool = True
    REPEAT_CHECK_INTERVAL_MINUTES: int = Field(60, ge=1)
    REPEAT_DEDUP_WINDOW_HOURS: int = Field(24, ge=0)
    REPEAT_WEEKLY_SCAN_DAYS: int = Field(14, ge=1)

    # Timezone used only to render the "(Mon D)" label of generated task names.
    DISPLAY_TIMEZONE: str = "UTC"

    @property
    def is_test(self) -> bool:
        """Check if running in test environment."""
        return self.ENVIRONMENT == "test"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT == "local"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
