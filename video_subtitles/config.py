"""Configuration for the subtitle service, loaded from environment variables."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # HTTP listener
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # Directories
    tmp_dir: str = Field(default="tmp")  # scratch space for video and audio files
    subtitles_dir: str = Field(default="subtitles")

    # Audio extraction
    sample_rate: int = Field(default=16000)  # Hz, Amazon Transcribe accepts 8000-48000
    audio_channels: int = Field(default=2)
    audio_bitrate: str = Field(default="32k")
    ffmpeg_binary: str = Field(default="ffmpeg")

    # Amazon Transcribe
    aws_region: str = Field(default="eu-west-1")
    aws_profile: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    default_language: str = Field(default="pt-BR")

    # Uploads
    max_upload_size: int = Field(default=1 << 30)  # 1 GiB
    max_concurrent_pipelines: int = Field(default=0)  # 0 means unbounded

    # Logging
    log_level: str = Field(default="DEBUG")

    def has_aws_credentials(self) -> bool:
        """Tell whether a profile or a static key pair is configured."""
        if self.aws_profile:
            return True
        return bool(self.aws_access_key_id and self.aws_secret_access_key)
