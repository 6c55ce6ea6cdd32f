# Job processor - runs probe, HLS ladder, thumbnail and sprite for one video, persisting progress

import logging
from typing import Callable, Optional

from transcoder.core.config import Settings
from transcoder.core.config import settings as default_settings
from transcoder.core.database import SessionLocal, session_scope
from transcoder.core.storage import LocalStorage, MediaPaths, create_storage
from transcoder.core.utils import round_half_up
from transcoder.schemas import (
    EncodingOptions,
    SpriteSheetOptions,
    ThumbnailOptions,
    TranscodeJobData,
    TranscodeProgress,
)

from . import job_store
from .hls import transcode_to_hls
from .playlist import MASTER_PLAYLIST
from .probe import probe_video
from .sprite import generate_sprite_sheet
from .thumbnail import generate_thumbnail

logger = logging.getLogger(__name__)

ProgressReporter = Callable[[int], None]

# Share of the job reserved for encoding, and the checkpoints after it
ENCODE_WEIGHT = 0.8
THUMBNAIL_DONE = 85
SPRITE_DONE = 95

THUMBNAIL_POSITION = 0.25
THUMBNAIL_OPTIONS = ThumbnailOptions(width=640, quality=5)
SPRITE_OPTIONS = SpriteSheetOptions(columns=10, rows=10, thumb_width=160, interval=5)


class JobProcessor:
    """
    Processes one TranscodeJobData end to end.

    Collaborators are injected so the worker can run the real FFmpeg
    services while tests swap in fakes.
    """

    def __init__(
        self,
        session_factory=SessionLocal,
        settings: Settings = default_settings,
        storage: Optional[LocalStorage] = None,
        probe=probe_video,
        transcode=transcode_to_hls,
        thumbnail=generate_thumbnail,
        sprite=generate_sprite_sheet,
    ):
        self.session_factory = session_factory
        self.settings = settings
        self.storage = storage if storage is not None else create_storage(settings)
        self.probe = probe
        self.transcode = transcode
        self.thumbnail = thumbnail
        self.sprite = sprite

    def _persist_progress(self, job_id: int, progress: int, report: Optional[ProgressReporter]) -> None:
        with session_scope(self.session_factory) as db:
            job_store.update_job(db, job_id, "processing", progress)
        if report:
            report(progress)

    def __call__(self, job: TranscodeJobData, report_progress: Optional[ProgressReporter] = None) -> None:
        video_id = job.video_id
        input_path = job.input_path
        output_dir = job.output_dir

        logger.info(f"Processing video {video_id}")
        logger.info(f"  Input: {input_path}")
        logger.info(f"  Output: {output_dir}")

        job_id = None
        try:
            with session_scope(self.session_factory) as db:
                job_id = job_store.begin_attempt(db, video_id).id
            if report_progress:
                report_progress(0)

            # Step 1: Probe video metadata
            logger.info("Probing video...")
            metadata = self.probe(input_path)
            logger.info(f"  Duration: {metadata.duration}s, Resolution: {metadata.width}x{metadata.height}")

            # Step 2: Transcode to HLS (0-80%)
            logger.info("Transcoding to HLS...")
            encoding_options = EncodingOptions.for_hardware(self.settings.use_gpu)
            last_progress = 0

            def on_encode_progress(progress: TranscodeProgress) -> None:
                nonlocal last_progress
                transcode_progress = round_half_up(progress.percent * ENCODE_WEIGHT)
                if transcode_progress <= last_progress:
                    return
                last_progress = transcode_progress
                self._persist_progress(job_id, transcode_progress, report_progress)
                logger.info(f"  Progress: {transcode_progress}% ({progress.current_quality})")

            produced = self.transcode(
                input_path,
                output_dir,
                self.settings.qualities,
                encoding_options,
                on_progress=on_encode_progress,
                source=metadata,
            )
            logger.info(f"  Renditions: {', '.join(q.name for q in produced) or 'none'}")

            paths = MediaPaths.for_output_dir(self.settings.media_root, output_dir)

            # Step 3: Generate thumbnail (85%)
            logger.info("Generating thumbnail...")
            thumbnail_path = paths.thumbnail_path(video_id)
            self.thumbnail(input_path, thumbnail_path, THUMBNAIL_POSITION, THUMBNAIL_OPTIONS, source=metadata)
            self._persist_progress(job_id, THUMBNAIL_DONE, report_progress)

            # Step 4: Generate sprite sheet (95%)
            logger.info("Generating sprite sheet...")
            sprite_path = paths.sprite_path(video_id)
            sprite_result = self.sprite(input_path, sprite_path, SPRITE_OPTIONS, source=metadata)

            vtt_path = paths.vtt_path(video_id)
            self.storage.write_text(vtt_path, sprite_result.vtt_content)
            self._persist_progress(job_id, SPRITE_DONE, report_progress)

            # Step 5: Publish outputs and update video record
            logger.info("Updating video record...")
            for path in (output_dir, thumbnail_path, sprite_path):
                self.storage.publish(path)

            thumbnails_url = self.settings.thumbnail_url_prefix.rstrip("/")
            hls_url = self.settings.hls_url_prefix.rstrip("/")
            with session_scope(self.session_factory) as db:
                job_store.update_video(
                    db,
                    video_id,
                    status="ready",
                    duration=round_half_up(metadata.duration),
                    thumbnail_url=f"{thumbnails_url}/{video_id}.jpg",
                    hls_path=f"{hls_url}/{video_id}/{MASTER_PLAYLIST}",
                    sprite_url=f"{thumbnails_url}/{video_id}-sprite.jpg",
                    vtt_path=f"{thumbnails_url}/{video_id}-sprite.vtt",
                )

            with session_scope(self.session_factory) as db:
                job_store.mark_job_completed(db, job_id)

        except Exception as e:
            error_message = str(e) or e.__class__.__name__
            logger.error(f"Failed to process video {video_id}: {error_message}")
            self._record_failure(job_id, video_id, error_message)
            raise

        if report_progress:
            report_progress(100)
        logger.info(f"Video {video_id} processing completed!")

    def _record_failure(self, job_id: Optional[int], video_id: str, error_message: str) -> None:
        try:
            with session_scope(self.session_factory) as db:
                if job_id is None:
                    job_store.update_transcode_job(db, video_id, "failed", 0, error_message)
                else:
                    job_store.mark_job_failed(db, job_id, error_message)
        except Exception as db_error:
            logger.error(f"Failed to update job status for video {video_id}: {db_error}")

        try:
            with session_scope(self.session_factory) as db:
                job_store.update_video(db, video_id, status="failed")
        except Exception as db_error:
            logger.error(f"Failed to update video {video_id} status: {db_error}")
