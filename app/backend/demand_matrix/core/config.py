"""Application configuration."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Demand Matrix Filtering"
    app_env: str = "development"
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    filter_cache_enabled: bool = True
    filter_cache_max_entries: int = Field(default=1000, ge=1)
    filter_cache_ttl_seconds: float = Field(default=600.0, gt=0)

    monitor_history_size: int = Field(default=1000, ge=1)
    monitor_alert_history_size: int = Field(default=100, ge=1)
    slow_filter_threshold_ms: float = Field(default=200.0, gt=0)
    low_retention_threshold: float = Field(default=0.1, ge=0, le=1)
    low_cache_hit_rate_threshold: float = Field(default=0.5, ge=0, le=1)
    # Cache hit-rate alerts stay quiet until the cache has seen this many lookups.
    cache_hit_rate_min_lookups: int = Field(default=10, ge=1)

    # Keep .env support for comma-separated values (non-JSON).
    allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, value: str) -> str:
        return str(value).strip().upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""

    return Settings()
