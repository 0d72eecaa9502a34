"""
Centralized Configuration System
Environment-aware settings for the scoring service.

Tenant scoring tables (weights, mappings, penalties) are NOT settings:
they live in the settings collection and are injected per call.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Production-grade configuration management.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # MONGODB
    # ============================================
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "pipeline_scoring"
    mongodb_max_pool_size: int = 20
    mongodb_min_pool_size: int = 2
    mongodb_server_selection_timeout_ms: int = 5000

    # ============================================
    # SCORING OPERATIONS
    # ============================================
    scoring_config_key: str = "pipeline_scoring_config"
    score_batch_size: int = 25
    score_batch_delay_seconds: float = 0.2
    score_stale_after_hours: int = 23       # Slack for cron drift
    score_error_rate_alert_threshold: float = 0.5
    enable_daily_sweep: bool = True
    daily_sweep_interval_seconds: int = 86400

    # ============================================
    # SECURITY
    # ============================================
    admin_api_token: Optional[str] = None

    # ============================================
    # LOGGING
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "test", "staging", "production"] = "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()


# Convenience accessor for common use
settings = get_settings()
