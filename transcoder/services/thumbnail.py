# Poster thumbnail - a single frame at a relative position in the video

import logging
import os
from typing import Optional

from transcoder.core.exceptions import FFmpegError, ThumbnailError
from transcoder.schemas import MediaMetadata, ThumbnailOptions

from .engine import FFmpegEngine, get_engine
from .probe import probe_video

logger = logging.getLogger(__name__)

DEFAULT_POSITION = 0.25


def calculate_timestamp(duration: float, position: float) -> float:
    """Absolute seek time for a relative position, clamped to [0, 1]"""
    return duration * max(0.0, min(1.0, position))


def build_thumbnail_args(input_path: str, output_path: str, timestamp: float, options: ThumbnailOptions) -> list:
    return [
        "-y",
        "-ss", f"{timestamp:.3f}",
        "-i", input_path,
        "-frames:v", "1",
        "-vf", f"scale={options.width}:-1",
        "-q:v", str(options.quality),
        output_path,
    ]


def generate_thumbnail(
    input_path: str,
    output_path: str,
    position: float = DEFAULT_POSITION,
    options: Optional[ThumbnailOptions] = None,
    source: Optional[MediaMetadata] = None,
    engine: Optional[FFmpegEngine] = None,
) -> str:
    """
    Extract one frame scaled to options.width, keeping the aspect ratio

    Raises:
        ProbeError: the source could not be probed
        ThumbnailError: frame extraction failed
    """
    engine = engine or get_engine()
    options = options or ThumbnailOptions()

    if source is None:
        source = probe_video(input_path, engine=engine)
    timestamp = calculate_timestamp(source.duration, position)

    os.makedirs(os.path.dirname(output_path), exist_ok=True)

    try:
        engine.execute(build_thumbnail_args(input_path, output_path, timestamp, options))
    except FFmpegError as e:
        raise ThumbnailError(f"Thumbnail generation failed: {e}") from e

    logger.info(f"Thumbnail written at {timestamp:.2f}s: {output_path}")
    return output_path
