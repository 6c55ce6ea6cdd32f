# Application settings and environment variable loading (Pydantic BaseSettings)

from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from transcoder.schemas import DEFAULT_QUALITY_PRESETS, QualityPreset


class Settings(BaseSettings):
    """Transcoder settings with environment variable support"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Database Settings
    database_url: str = Field(default="sqlite:///./dev.db")

    # Redis / Celery Settings
    redis_url: str = Field(default="redis://localhost:6379/0")
    queue_name: str = Field(default="transcode")
    queue_attempts: int = Field(default=3, ge=1)
    queue_backoff: int = Field(default=5, ge=1)  # seconds, doubled on every retry

    # Transcoding Settings
    use_gpu: bool = Field(default=False)
    transcode_concurrency: int = Field(default=1, ge=1)
    qualities: List[QualityPreset] = Field(default_factory=lambda: list(DEFAULT_QUALITY_PRESETS))
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None

    # Output layout
    media_root: str = Field(default="./data")
    hls_url_prefix: str = Field(default="/hls")
    thumbnail_url_prefix: str = Field(default="/thumbnails")

    # Storage backend: plain filesystem, or filesystem mirrored into MinIO
    storage_backend: Literal["local", "minio"] = Field(default="local")
    s3_endpoint: Optional[str] = None
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_bucket: Optional[str] = None

    # Worker lifecycle
    shutdown_timeout: float = Field(default=30.0, ge=0)
    log_level: str = Field(default="INFO")


# Global settings instance
settings = Settings()
