"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # Evolution API (WhatsApp gateway)
    evolution_api_url: str = "http://localhost:8080"
    evolution_api_key: str = ""
    gateway_timeout_seconds: float = 30.0

    # LLM Providers
    openai_api_key: str = ""
    google_api_key: str = ""
    anthropic_api_key: str = ""

    # LiteLLM
    litellm_primary_model: str = "gpt-4o-mini"
    litellm_fallback_model: str = "gemini/gemini-1.5-flash"
    transcription_model: str = "whisper-1"
    vision_model: str = "gpt-4o-mini"

    # Dashboard origins allowed by CORS (any origin in development)
    dashboard_origins: list[str] = []

    # Firestore
    gcp_project_id: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    # Debounce
    debounce_window_seconds: float = 10.0
    buffer_write_attempts: int = 5

    # Conversation settings
    history_limit: int = 8
    default_timezone: str = "America/Sao_Paulo"
    fallback_message: str = "I couldn't understand the media you sent, please describe it in text."

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
