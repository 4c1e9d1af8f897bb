"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """VoiceStitch application settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        recordings_dir: Directory the capture engine writes segment WAV files to.
        start_timeout_seconds: Upper bound on waiting for the engine to
            acknowledge a start command.
        finalize_timeout_seconds: Upper bound on waiting for the last segment
            file of a burst when a session is stopped.
        join_strict_format: Reject joins whose segments differ in format.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level

    # --- Storage ---
    # Paths are relative to the project root; absolute paths also supported
    recordings_dir: str = "data/recordings"  # Segment WAV output directory
    joined_filename_prefix: str = "joined_audio"

    # --- Capture engine ---
    start_timeout_seconds: float = 10.0
    finalize_timeout_seconds: float = 3.0
    capability_timeout_seconds: float = 30.0  # Wait for the device permission prompt

    # Recording defaults merged under caller-supplied capture options
    default_language: str = "en-US"
    interim_results: bool = True
    continuous: bool = True
    output_sample_rate: int = 16000
    output_encoding: str = "pcmFormatInt16"

    # --- Joiner ---
    join_strict_format: bool = True  # False = log mismatches and join anyway


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
