"""
Configuration settings for Briefcast
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Google Gemini (comma-separated list allowed for key rotation)
    gemini_api_key: str = ""
    gemini_text_model: str = "gemini-2.5-flash"
    gemini_tts_model: str = "gemini-2.5-flash-preview-tts"

    # Voices
    host_speaker: str = "Host"
    guest_speaker: str = "Guest"
    host_voice: str = "Kore"
    guest_voice: str = "Puck"
    language: str = "en"

    # OAuth clients
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    notion_client_id: Optional[str] = None
    notion_client_secret: Optional[str] = None
    slack_client_id: Optional[str] = None
    slack_client_secret: Optional[str] = None

    # Supabase
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    storage_bucket: str = "podcasts"

    # Database
    database_url: str = "sqlite:///briefcast.db"

    # Calendar day boundaries for one-briefing-per-day
    timezone: str = "Asia/Seoul"

    # Timeouts (seconds)
    source_fetch_timeout_seconds: float = 30.0
    video_fetch_timeout_seconds: float = 180.0  # sequential transcript extraction
    llm_timeout_seconds: float = 180.0
    tts_timeout_seconds: float = 300.0

    # Fetch sizing and pacing
    fetch_concurrency: int = Field(default=3, ge=1)
    transcript_pause_seconds: float = Field(default=2.0, ge=0)
    max_videos: int = 5
    items_per_source: int = 10
    trend_topic_limit: int = 3

    # Retries
    upload_max_attempts: int = Field(default=3, ge=1)
    token_expiry_skew_seconds: int = 300

    # Rate limiting for generation requests
    generation_rate_limit: int = 5
    generation_rate_window_seconds: int = 60

    # Logging
    log_level: str = "INFO"
    log_json_path: Optional[str] = None

    # Refuse to start when a required service is unavailable
    strict_startup: bool = False

    @property
    def gemini_api_keys(self) -> list[str]:
        return [key.strip() for key in self.gemini_api_key.split(",") if key.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
