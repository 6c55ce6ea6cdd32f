# Quality ladder encoder - one HLS rendition per preset that fits the source resolution

import logging
import os
from contextlib import closing
from typing import Callable, List, Optional

from transcoder.core.exceptions import EncodeError, FFmpegError
from transcoder.schemas import EncodingOptions, MediaMetadata, QualityPreset, TranscodeProgress

from .engine import FFmpegEngine, get_engine
from .playlist import RENDITION_PLAYLIST, generate_master_playlist, parse_bitrate
from .probe import probe_video

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[TranscodeProgress], None]

SEGMENT_DURATION = 6  # seconds per HLS segment
SEGMENT_PATTERN = "segment_%03d.ts"
DEFAULT_AUDIO_BITRATE = "128k"


def build_hls_args(
    input_path: str,
    quality_dir: str,
    quality: QualityPreset,
    encoding_options: EncodingOptions,
    segment_duration: int = SEGMENT_DURATION,
) -> List[str]:
    """FFmpeg arguments encoding one rendition into quality_dir/playlist.m3u8"""
    return [
        "-y",
        "-i", input_path,
        "-c:v", encoding_options.video_encoder,
        "-c:a", encoding_options.audio_encoder,
        "-vf", f"scale={quality.width}:{quality.height}",
        "-b:v", quality.bitrate,
        "-maxrate", quality.bitrate,
        "-bufsize", f"{parse_bitrate(quality.bitrate) * 2}k",
        "-preset", encoding_options.preset,
        "-b:a", quality.audio_bitrate or DEFAULT_AUDIO_BITRATE,
        "-hls_time", str(segment_duration),
        "-hls_list_size", "0",
        "-hls_segment_filename", os.path.join(quality_dir, SEGMENT_PATTERN),
        "-f", "hls",
        os.path.join(quality_dir, RENDITION_PLAYLIST),
    ]


def rendition_percent(out_time: float, duration: float) -> float:
    """Share of the source already encoded, clamped to 0-100"""
    if duration <= 0:
        return 0.0
    return min(100.0, max(0.0, out_time / duration * 100))


def compose_ladder_progress(index: int, total: int, progress: TranscodeProgress) -> TranscodeProgress:
    """
    Map a rendition's own percent onto the whole ladder.

    index counts every configured rung, skipped ones included, and total is
    the configured ladder length, so a ladder with skipped rungs never
    reports a clean 100% at the end of the encode phase.
    """
    percent = (index / total) * 100 + progress.percent / total
    return progress.model_copy(update={"percent": min(100.0, percent)})


def transcode_quality(
    input_path: str,
    output_dir: str,
    quality: QualityPreset,
    encoding_options: EncodingOptions,
    duration: float,
    on_progress: Optional[ProgressCallback] = None,
    engine: Optional[FFmpegEngine] = None,
) -> str:
    """
    Encode a single rendition into output_dir/<quality.name>/

    Returns:
        Path of the rendition playlist

    Raises:
        EncodeError: FFmpeg failed for this rendition
    """
    engine = engine or get_engine()
    quality_dir = os.path.join(output_dir, quality.name)
    os.makedirs(quality_dir, exist_ok=True)

    args = build_hls_args(input_path, quality_dir, quality, encoding_options)
    logger.info(f"Encoding {quality.name} ({quality.width}x{quality.height} @ {quality.bitrate})")

    last_percent = 0.0
    try:
        with closing(engine.run(args)) as events:
            for event in events:
                if on_progress is None:
                    continue
                last_percent = max(last_percent, rendition_percent(event.out_time, duration))
                on_progress(TranscodeProgress(
                    percent=last_percent,
                    current_quality=quality.name,
                    fps=event.fps,
                    speed=event.speed,
                ))
    except FFmpegError as e:
        raise EncodeError(quality.name, str(e)) from e

    return os.path.join(quality_dir, RENDITION_PLAYLIST)


def transcode_to_hls(
    input_path: str,
    output_dir: str,
    qualities: List[QualityPreset],
    encoding_options: EncodingOptions,
    on_progress: Optional[ProgressCallback] = None,
    source: Optional[MediaMetadata] = None,
    engine: Optional[FFmpegEngine] = None,
) -> List[QualityPreset]:
    """
    Encode the quality ladder and write the master playlist

    Args:
        input_path: Source video file
        output_dir: HLS output directory for this video
        qualities: Configured ladder, in order
        encoding_options: Encoder choice shared by every rendition
        on_progress: Receives ladder-wide progress events
        source: Already probed source metadata, probed here when omitted
        engine: FFmpeg engine, the global one by default

    Returns:
        The renditions that were encoded, in ladder order
    """
    engine = engine or get_engine()
    os.makedirs(output_dir, exist_ok=True)

    if source is None:
        source = probe_video(input_path, engine=engine)

    total = len(qualities)
    produced: List[QualityPreset] = []
    last_percent = 0.0

    def report(progress: TranscodeProgress) -> None:
        # Float rounding can dip a hair below the previous rung's end
        nonlocal last_percent
        if progress.percent < last_percent:
            progress = progress.model_copy(update={"percent": last_percent})
        last_percent = progress.percent
        on_progress(progress)

    for index, quality in enumerate(qualities):
        # Skip qualities higher than source resolution
        if quality.height > source.height:
            logger.info(f"Skipping {quality.name}: source is only {source.height}p")
            continue

        callback = None
        if on_progress is not None:
            def callback(progress: TranscodeProgress, index: int = index) -> None:
                report(compose_ladder_progress(index, total, progress))

        transcode_quality(
            input_path,
            output_dir,
            quality,
            encoding_options,
            source.duration,
            on_progress=callback,
            engine=engine,
        )
        produced.append(quality)

    generate_master_playlist(output_dir, produced)
    return produced
