"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Echoes of Logos configuration. All values come from environment variables."""

    # Anthropic (character replies)
    anthropic_api_key: str = Field(default="")
    default_chat_model: str = Field(default="sonnet")
    max_response_tokens: int = Field(default=1000)

    # OpenAI (speech synthesis + transcription)
    openai_api_key: str = Field(default="")
    tts_model: str = Field(default="tts-1")
    tts_speed: float = Field(default=1.3)
    stt_model: str = Field(default="whisper-1")
    stt_language: str = Field(default="en")

    # Response resolution
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    recent_window: int = Field(default=100, ge=1)

    # Audio
    audio_cache_max_entries: int = Field(default=256, ge=1)
    audio_timeout_seconds: float = Field(default=5.0, gt=0)

    # Conversation
    conversation_window_size: int = Field(default=50)
    max_open_views: int = Field(default=500, ge=1)
    view_idle_seconds: float = Field(default=1800.0, gt=0)

    # Database
    database_path: Path = Field(default=Path("data/logos.db"))

    # Turso (hosted libSQL) — when set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Object storage for synthesized audio
    audio_dir: Path = Field(default=Path("data/audio"))
    public_base_url: str = Field(default="http://localhost:8080")

    # Web server
    web_host: str = Field(default="0.0.0.0")
    web_port: int = Field(default=8080)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def model_configured(self) -> bool:
        """True when character replies can be generated by the model."""
        return bool(self.anthropic_api_key.strip())

    def speech_configured(self) -> bool:
        """True when speech synthesis and transcription are available."""
        return bool(self.openai_api_key.strip())

    def get_public_base_url(self) -> str:
        """PUBLIC_BASE_URL without a trailing slash."""
        return self.public_base_url.rstrip("/")


settings = Settings()
