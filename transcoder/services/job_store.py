# Job/video store - latest-attempt lookup, keyed job updates and video record updates

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from transcoder.core.exceptions import JobStateError, VideoNotFoundError
from transcoder.models import TranscodeJob, Video
from transcoder.models.job import JOB_STATUSES
from transcoder.schemas import TranscodeStatus

logger = logging.getLogger(__name__)


def find_latest_job(db: Session, video_id: str) -> Optional[TranscodeJob]:
    """
    Most recent attempt for a video.

    Ordered by creation time, ties broken by the highest id so rows created
    within the same clock tick still resolve to the newest one.
    """
    return db.execute(
        select(TranscodeJob)
        .where(TranscodeJob.video_id == video_id)
        .order_by(TranscodeJob.created_at.desc(), TranscodeJob.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def create_job(
    db: Session,
    video_id: str,
    status: str = "pending",
    progress: int = 0,
    error: Optional[str] = None,
) -> TranscodeJob:
    if status not in JOB_STATUSES:
        raise ValueError(f"Invalid job status: {status}")

    job = TranscodeJob(video_id=video_id, status=status, progress=progress, error=error)
    db.add(job)
    db.flush()
    return job


def _apply(job: TranscodeJob, status: str, progress: int, error: Optional[str]) -> TranscodeJob:
    if status not in JOB_STATUSES:
        raise ValueError(f"Invalid job status: {status}")
    if job.is_terminal:
        raise JobStateError(f"Job {job.id} is already {job.status}")

    # Progress only moves forward while the attempt is running
    if status == "processing" and job.status == "processing":
        progress = max(progress, job.progress or 0)

    job.status = status
    job.progress = progress
    job.error = error
    return job


def update_job(
    db: Session,
    job_id: int,
    status: str,
    progress: int,
    error: Optional[str] = None,
) -> TranscodeJob:
    """
    Update one job row by id

    Raises:
        LookupError: no such job
        JobStateError: the job already reached completed or failed
    """
    job = db.get(TranscodeJob, job_id)
    if job is None:
        raise LookupError(f"Transcode job {job_id} not found")

    _apply(job, status, progress, error)
    db.flush()
    return job


def update_transcode_job(
    db: Session,
    video_id: str,
    status: str,
    progress: int,
    error: Optional[str] = None,
) -> TranscodeJob:
    """
    Upsert keyed on the video: update its latest attempt, or create one.

    A latest attempt that already ended is left untouched and a new
    attempt row is created instead.
    """
    job = find_latest_job(db, video_id)
    if job is None or job.is_terminal:
        return create_job(db, video_id, status, progress, error)

    _apply(job, status, progress, error)
    db.flush()
    return job


def begin_attempt(db: Session, video_id: str) -> TranscodeJob:
    """
    Claim the job row for a new processing attempt (processing, 0%).

    A pending row, or a processing row left behind by a worker that died,
    is reset and reused; otherwise a new row is created.
    """
    job = find_latest_job(db, video_id)
    if job is None or job.is_terminal:
        return create_job(db, video_id, "processing", 0)

    job.status = "processing"
    job.progress = 0
    job.error = None
    db.flush()
    return job


def mark_job_completed(db: Session, job_id: int) -> TranscodeJob:
    return update_job(db, job_id, "completed", 100)


def mark_job_failed(db: Session, job_id: int, error: str) -> TranscodeJob:
    return update_job(db, job_id, "failed", 0, error)


def update_video(db: Session, video_id: str, **fields) -> Video:
    """
    Update columns on a video row

    Raises:
        VideoNotFoundError: no such video
    """
    video = db.get(Video, video_id)
    if video is None:
        raise VideoNotFoundError(f"Video {video_id} not found")

    for name, value in fields.items():
        if not hasattr(Video, name):
            raise AttributeError(f"Video has no column '{name}'")
        setattr(video, name, value)
    db.flush()
    return video


def get_transcode_status(db: Session, video_id: str) -> TranscodeStatus:
    """Video status with the progress and error of its latest attempt"""
    video = db.get(Video, video_id)
    if video is None:
        raise VideoNotFoundError(f"Video {video_id} not found")

    job = find_latest_job(db, video_id)
    return TranscodeStatus(
        video_id=video_id,
        status=video.status,
        progress=job.progress if job else 0,
        error=job.error if job else None,
    )
