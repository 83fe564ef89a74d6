"""
Application configuration using pydantic-settings.
Loads values from environment variables or a .env file in the project root.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # PipeRun API settings
    piperun_api_token: str = ""
    piperun_api_base_url: str = "https://api.pipe.run/v1"
    piperun_timeout: float = 30.0

    # Activity type ids of the client account (Meeting / Call)
    activity_type_meeting_id: int = 243787
    activity_type_call_id: int = 243785

    # Default search window for upserts (clamped by the paginator)
    search_max_pages: int = 5
    search_page_size: int = 200

    log_level: str = "INFO"

    @property
    def api_token_configured(self) -> bool:
        """Check if a process-wide default token is configured."""
        return bool(self.piperun_api_token.strip())

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
