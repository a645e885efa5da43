"""Runtime settings, overridable through SKILLGRAPH_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Routing
    keyword_weight: float = Field(default=1.0, ge=0)
    domain_weight: float = Field(default=2.0, ge=0)
    dependency_discount: float = Field(default=0.5, ge=0, lt=1)
    default_top_k: int = Field(default=5, ge=0)

    # Integration tier
    judge_threshold: float = Field(default=4.0, ge=0, le=5)
    judge_tolerance: float = Field(default=0.5, ge=0)
    judge_timeout: float = Field(default=30.0, gt=0)
    min_judges: int = Field(default=1, ge=1)
    max_concurrent_judges: int = Field(default=4, ge=1)

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_prefix="SKILLGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
