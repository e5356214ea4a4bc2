"""Application configuration using Pydantic BaseSettings."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """tubeshift configuration loaded from environment variables."""

    model_config = {"env_prefix": "TUBESHIFT_", "env_file": ".env", "extra": "ignore"}

    # Directories
    playlists_dir: Path = Path("playlists")
    downloads_dir: Path = Path("downloads")
    merged_dir: Path = Path("merged")
    uploaded_dir: Path = Path("uploaded")

    # State files
    progress_file: Path = Path("pipeline_progress.json")
    playlist_state_file: Path = Path("playlist_state.json")

    # Media classification
    video_extensions: list[str] = [".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v"]
    audio_extensions: list[str] = [".m4a", ".mp3", ".aac", ".wav", ".webm", ".opus", ".ogg", ".flac"]

    # Matching
    fuzzy_matching: bool = True
    min_term_length: int = 4

    # Pacing
    item_delay_seconds: float = 5.0
    stage_delay_seconds: float = 2.0
    playlist_delay_seconds: float = 30.0

    # Retries
    max_attempts: int = 3
    backoff_base_seconds: float = 5.0
    backoff_factor: float = 2.0
    backoff_max_seconds: float = 60.0

    # Timeouts
    merge_timeout_seconds: float = 1800.0
    probe_timeout_seconds: float = 30.0
    upload_timeout_seconds: float = 300.0
    extractor_socket_timeout: float = 60.0

    # Extractor
    video_format: str = "bestvideo[height>720]/bestvideo"
    audio_format: str = "bestaudio[abr>=128]/bestaudio"
    cookies_file: Path | None = None

    # Encoder
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    merge_audio_codec: str = "aac"
    validate_merged_output: bool = True
    delete_sources_after_merge: bool = True

    # Object storage
    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None
    s3_key_prefix: str = "media/"
    post_upload_action: Literal["move", "delete", "keep"] = "move"

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None


def get_settings() -> Settings:
    """Return a settings instance built from the current environment."""
    return Settings()
