# Sprite sheet - sampled frames tiled into one mosaic image plus its WebVTT cue track

import logging
import os
from typing import Optional, Tuple

from transcoder.core.exceptions import FFmpegError, SpriteSheetError
from transcoder.core.utils import format_number, round_half_up
from transcoder.schemas import MediaMetadata, SpriteSheetOptions, SpriteSheetResult

from .engine import FFmpegEngine, get_engine
from .probe import probe_video
from .vtt import generate_vtt

logger = logging.getLogger(__name__)

SPRITE_QUALITY = 5


def calculate_sprite_interval(duration: float, columns: int, rows: int, min_interval: float) -> float:
    """Seconds between sampled frames: spread over the grid, never below min_interval"""
    total_frames = columns * rows
    return max(min_interval, duration / total_frames)


def calculate_thumb_dimensions(source_width: int, source_height: int, thumb_width: int) -> Tuple[int, int]:
    aspect_ratio = source_height / source_width
    return thumb_width, round_half_up(thumb_width * aspect_ratio)


def build_sprite_args(
    input_path: str,
    output_path: str,
    interval: float,
    thumb_width: int,
    thumb_height: int,
    columns: int,
    rows: int,
) -> list:
    return [
        "-y",
        "-i", input_path,
        "-vf", f"fps=1/{format_number(interval)},scale={thumb_width}:{thumb_height},tile={columns}x{rows}",
        "-frames:v", "1",
        "-q:v", str(SPRITE_QUALITY),
        output_path,
    ]


def generate_sprite_sheet(
    input_path: str,
    output_path: str,
    options: Optional[SpriteSheetOptions] = None,
    source: Optional[MediaMetadata] = None,
    engine: Optional[FFmpegEngine] = None,
) -> SpriteSheetResult:
    """
    Render the sprite mosaic and build its cue track

    Args:
        input_path: Source video file
        output_path: Sprite JPEG path, its basename is referenced by the cues
        options: Grid size, tile width and minimum sampling interval
        source: Already probed source metadata, probed here when omitted
        engine: FFmpeg engine, the global one by default

    Returns:
        SpriteSheetResult with the VTT text and the sprite's pixel size

    Raises:
        SpriteSheetError: rendering failed
    """
    engine = engine or get_engine()
    options = options or SpriteSheetOptions()

    if source is None:
        source = probe_video(input_path, engine=engine)

    interval = calculate_sprite_interval(source.duration, options.columns, options.rows, options.interval)
    width, height = calculate_thumb_dimensions(source.width, source.height, options.thumb_width)

    os.makedirs(os.path.dirname(output_path), exist_ok=True)

    try:
        engine.execute(build_sprite_args(
            input_path, output_path, interval, width, height, options.columns, options.rows
        ))
    except FFmpegError as e:
        raise SpriteSheetError(f"Sprite sheet generation failed: {e}") from e

    logger.info(f"Sprite sheet written ({options.columns}x{options.rows} every {interval:g}s): {output_path}")

    vtt_content = generate_vtt(
        source.duration,
        interval,
        options.columns,
        options.rows,
        width,
        height,
        os.path.basename(output_path),
    )

    return SpriteSheetResult(
        vtt_content=vtt_content,
        sprite_width=width * options.columns,
        sprite_height=height * options.rows,
    )
