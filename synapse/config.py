"""
Configuration settings for the synapse review service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from synapse.core.mastery import MasteryStage


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SYNAPSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    state_db_path: Path = Field(
        default=Path.home() / ".synapse" / "state.db",
        description="SQLite file holding vocabulary items and the review log",
    )

    # ========================================
    # Review Queue
    # ========================================
    due_review_limit: int = Field(
        default=20,
        ge=1,
        description="Maximum items returned by a due-review request",
    )
    excluded_stages: str = Field(
        default="solid",
        description="Comma-separated mastery stages that are never due",
    )

    # ========================================
    # Analytics
    # ========================================
    challenging_words_limit: int = Field(
        default=10,
        ge=1,
        description="Number of lowest-ease words reported as most challenging",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="WARNING",
        description="Loguru level for the CLI sink",
    )

    def get_excluded_stages(self) -> frozenset[MasteryStage]:
        """Parse excluded_stages into MasteryStage members."""
        return frozenset(
            MasteryStage.parse(part) for part in self.excluded_stages.split(",") if part.strip()
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
