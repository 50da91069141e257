"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_anon_key: str
    meal_scanner_function: str = "Meal_Scanner"
    retry_max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
    backfill_threshold: int = 10
    backfill_delay_seconds: float = 0.1
    filter_restore_timeout_seconds: float = 0.2
    filter_save_delay_seconds: float = 0.3
    cache_ttl_seconds: int = 300
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
