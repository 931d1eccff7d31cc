"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "resiliencehub"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    secret_key: str = ""

    # Public URL used for dashboard links in emails
    app_url: str = "http://localhost:8000"

    # API Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Postgres
    database_url: str = ""

    # Redis (Celery broker + per-user scheduler locks)
    redis_url: str = "redis://localhost:6379/0"

    # SparkPost email delivery
    sparkpost_api_key: str = ""
    sparkpost_api_url: str = "https://api.sparkpost.com/api/v1/transmissions"
    mail_from: str = "ResilienceHub <noreply@resiliencehub.app>"

    # OpenAI (practice scenario generation)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"

    # Timezone
    default_timezone: str = "America/Chicago"

    # Admin
    admin_api_key: str = ""

    # Notifier delivery retries
    notifier_max_attempts: int = 3
    notifier_backoff_seconds: float = 1.0

    # Practice results submission client
    results_api_url: str = "http://localhost:8000"
    results_max_attempts: int = 5
    results_backoff_seconds: float = 0.5
    results_outbox_dir: str = ".outbox"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
