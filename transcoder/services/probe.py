# Media prober - source resolution, duration, codec, bitrate and frame rate via ffprobe

import logging
from typing import Optional

from transcoder.core.exceptions import FFmpegError, ProbeError
from transcoder.schemas import MediaMetadata

from .engine import FFmpegEngine, get_engine

logger = logging.getLogger(__name__)

# Used only when ffprobe reports a video stream without dimensions
FALLBACK_WIDTH = 1920
FALLBACK_HEIGHT = 1080


def parse_frame_rate(frame_rate: Optional[str]) -> Optional[float]:
    """
    Parse an ffprobe frame rate ("30000/1001", "25/1" or "29.97").

    Returns None (unknown) for empty input, a zero denominator or
    anything that does not parse.
    """
    if not frame_rate:
        return None

    parts = frame_rate.split("/")
    try:
        if len(parts) == 2:
            numerator = float(parts[0])
            denominator = float(parts[1])
            if denominator == 0:
                return None
            return numerator / denominator
        return float(frame_rate)
    except ValueError:
        return None


def _optional_int(value) -> Optional[int]:
    try:
        return int(value) if value not in (None, "", "N/A") else None
    except (TypeError, ValueError):
        return None


def probe_video(input_path: str, engine: Optional[FFmpegEngine] = None) -> MediaMetadata:
    """
    Get video metadata using FFprobe

    Raises:
        ProbeError: the probe call failed or the file has no video stream
    """
    engine = engine or get_engine()

    try:
        data = engine.probe(input_path)
    except FFmpegError as e:
        raise ProbeError(f"Failed to probe video: {e}") from e

    video_stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "video"),
        None,
    )
    if not video_stream:
        raise ProbeError("No video stream found")

    format_info = data.get("format", {})

    try:
        duration = float(format_info.get("duration") or 0)
    except (TypeError, ValueError):
        duration = 0.0

    metadata = MediaMetadata(
        width=video_stream.get("width") or FALLBACK_WIDTH,
        height=video_stream.get("height") or FALLBACK_HEIGHT,
        duration=duration,
        codec=video_stream.get("codec_name"),
        bitrate=_optional_int(format_info.get("bit_rate")),
        fps=parse_frame_rate(video_stream.get("r_frame_rate")),
    )
    logger.debug(f"Probed {input_path}: {metadata.width}x{metadata.height}, {metadata.duration}s")
    return metadata
