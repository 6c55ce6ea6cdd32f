# Pydantic value types shared by the pipeline - metadata, presets, progress, job payloads

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MediaMetadata(BaseModel):
    """Source facts reported by ffprobe"""

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    duration: float = Field(ge=0)  # seconds, can be fractional
    codec: Optional[str] = None
    bitrate: Optional[int] = Field(default=None, ge=0)  # bits per second
    fps: Optional[float] = Field(default=None, ge=0)  # None when unknown


class QualityPreset(BaseModel):
    """One rung of the HLS quality ladder"""

    model_config = ConfigDict(frozen=True)

    name: str
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    bitrate: str  # e.g. "800k", "2500k"
    audio_bitrate: Optional[str] = None  # encoder falls back to 128k


DEFAULT_QUALITY_PRESETS: List[QualityPreset] = [
    QualityPreset(name="360p", width=640, height=360, bitrate="800k", audio_bitrate="96k"),
    QualityPreset(name="720p", width=1280, height=720, bitrate="2500k", audio_bitrate="128k"),
    QualityPreset(name="1080p", width=1920, height=1080, bitrate="5000k", audio_bitrate="192k"),
]


class EncodingOptions(BaseModel):
    video_encoder: str = "libx264"
    audio_encoder: str = "aac"
    preset: str = "medium"

    @classmethod
    def for_hardware(cls, use_gpu: bool) -> "EncodingOptions":
        """NVENC with the fast preset on GPU hosts, x264 medium otherwise"""
        if use_gpu:
            return cls(video_encoder="h264_nvenc", audio_encoder="aac", preset="fast")
        return cls(video_encoder="libx264", audio_encoder="aac", preset="medium")


class TranscodeProgress(BaseModel):
    percent: float = Field(ge=0, le=100)
    current_quality: Optional[str] = None
    fps: Optional[float] = None
    speed: Optional[float] = None  # realtime multiplier, e.g. 2.5x


class TranscodeJobData(BaseModel):
    """Queue payload for one transcode job"""

    video_id: str = Field(min_length=1)
    input_path: str = Field(min_length=1)
    output_dir: str = Field(min_length=1)


class ThumbnailOptions(BaseModel):
    width: int = Field(default=640, gt=0)
    quality: int = Field(default=5, ge=1, le=31)  # JPEG qscale, lower is better


class SpriteSheetOptions(BaseModel):
    columns: int = Field(default=10, gt=0)
    rows: int = Field(default=10, gt=0)
    thumb_width: int = Field(default=160, gt=0)
    interval: float = Field(default=5, gt=0)  # minimum seconds between frames


class SpriteSheetResult(BaseModel):
    vtt_content: str
    sprite_width: int
    sprite_height: int


class TranscodeStatus(BaseModel):
    """Video status joined with its latest job attempt"""

    video_id: str
    status: str
    progress: int = 0
    error: Optional[str] = None
