"""
Configuration management for the Household Insights engine
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Household Insights Engine"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4

    # Database
    database_url: str = "sqlite:///./household_insights.db"

    # LLM Configuration
    anthropic_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    enable_llm_insights: bool = True
    llm_max_tokens: int = 1000
    default_prompt_style: Optional[str] = None  # comprehensive, focused, conversational

    # Insight generation
    insight_record_limit: int = 1000  # Most recent records fetched per household
    insights_cache_ttl_seconds: int = 4 * 60 * 60

    # Suggestion lookups
    suggestion_cache_ttl_seconds: int = 5 * 60

    # Cache housekeeping
    memory_cache_cleanup_interval_seconds: int = 15 * 60
    durable_cache_cleanup_interval_minutes: int = 60
    cache_write_workers: int = 2

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
