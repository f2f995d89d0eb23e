"""Application configuration via environment variables."""

from functools import lru_cache
from typing import ClassVar

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    database_url: str = "sqlite+aiosqlite:///./uptodate.db"
    admin_api_key: str = "change-me"
    api_host: str = "0.0.0.0"
    api_port: int = 8787
    cors_origins: str = "*"
    environment: str = "development"

    # Echo upstream status/message on ?debug=1 error responses
    expose_error_details: bool = False

    # Summarization provider
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-3.5-turbo"
    openai_temperature: float = 0.4
    openai_max_tokens: int = 2500
    summarization_timeout_seconds: float = 120.0

    # Ingestion
    content_max_items: int = 300
    content_fetch_timeout_seconds: float = 10.0
    generation_item_limit: int = 300
    engagement_window_hours: int = 24
    engagement_scan_limit: int = 5000
    fanout_top_k: int = 10
    ingest_run_stale_seconds: int = 3600

    # Rate limits
    feed_rate_limit_per_minute: int = 120
    events_rate_limit_per_minute: int = 240

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    INSECURE_SECRETS: ClassVar[set[str]] = {"change-me", "change-me-in-production", "secret", ""}

    def validate_production(self) -> None:
        """Raise if running in production with insecure settings."""
        if self.environment != "production":
            return
        if self.admin_api_key in self.INSECURE_SECRETS:
            raise RuntimeError(
                "ADMIN_API_KEY must be changed from default in production. "
                'Generate one: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        if self.expose_error_details:
            raise RuntimeError(
                "EXPOSE_ERROR_DETAILS must be disabled in production; "
                "it echoes upstream error details to clients."
            )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
