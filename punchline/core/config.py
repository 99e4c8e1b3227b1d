"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Punchline application settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        openai_api_key: Credential for the speech-to-text API.
        hume_api_key: Credential for the emotion-inference job API. Empty
            disables emotion analysis (records get empty emotions).
        database_url: Async SQLAlchemy connection string.
        storage_dir: Root directory for stored audio objects.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Transcription ---
    openai_api_key: str = ""
    transcription_model: str = "whisper-1"
    transcription_timeout: float = 120.0  # Seconds per request

    # --- Emotion inference ---
    hume_api_key: str = ""
    hume_base_url: str = "https://api.hume.ai/v0/batch/jobs"
    hume_model: str = "prosody"  # Speech-emotion model selector
    emotion_poll_interval: float = 5.0  # Seconds between status polls
    emotion_poll_attempts: int = 10
    emotion_top_n: int = 3

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level
    cors_origins: list[str] = ["http://localhost:3000"]
    max_upload_bytes: int = 50 * 1024 * 1024

    # --- Storage ---
    # Paths are relative to the project root; absolute paths also supported
    database_url: str = "sqlite+aiosqlite:///data/punchline.db"
    storage_dir: str = "data/storage"  # Audio object root
    scratch_dir: str = ""  # Empty = system temp directory


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()


def setup_logging(level: str | None = None) -> None:
    """Configure root logging from settings (idempotent)."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
