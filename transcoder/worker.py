# Celery worker entrypoint - Celery app, transcode task, worker lifecycle and shutdown hook

import logging
import signal
import socket
import threading
from typing import Optional

from celery import Celery
from celery.signals import worker_process_init, worker_process_shutdown

from transcoder.core.config import settings
from transcoder.core.database import dispose_engine
from transcoder.core.exceptions import TranscoderError
from transcoder.schemas import TranscodeJobData
from transcoder.services.engine import configure_engine
from transcoder.services.processor import JobProcessor

logger = logging.getLogger(__name__)

celery_app = Celery(
    "streambox_transcoder",
    broker=settings.redis_url,
    backend=settings.redis_url
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600 * 4,  # 4 hour hard limit
    task_soft_time_limit=3600 * 3,  # 3 hour soft limit
    task_default_queue=settings.queue_name,
    task_acks_late=True,  # redeliver jobs whose worker died mid-encode
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,  # one long job per slot, no hoarding
    worker_concurrency=settings.transcode_concurrency,
)


@worker_process_init.connect
def _reset_connections_after_fork(**kwargs):
    # Pooled connections inherited from the parent must not be shared
    dispose_engine()


@worker_process_shutdown.connect
def _release_connections(**kwargs):
    dispose_engine()


_processor: Optional[JobProcessor] = None


def get_job_processor() -> JobProcessor:
    """Processor wired to the real FFmpeg services, built once per process"""
    global _processor
    if _processor is None:
        configure_engine(settings.ffmpeg_path, settings.ffprobe_path)
        _processor = JobProcessor()
    return _processor


@celery_app.task(
    bind=True,
    name="transcoder.transcode_video",
    autoretry_for=(TranscoderError, OSError),
    max_retries=settings.queue_attempts - 1,
    retry_backoff=settings.queue_backoff,
    retry_backoff_max=600,
    retry_jitter=False,
)
def transcode_video_task(self, video_id: str, input_path: str, output_dir: str):
    """
    Celery task for transcoding one uploaded video

    Args:
        video_id: Video row id
        input_path: Raw upload on disk
        output_dir: HLS output directory for this video
    """
    job = TranscodeJobData(video_id=video_id, input_path=input_path, output_dir=output_dir)

    def report_progress(progress: int):
        try:
            self.update_state(
                state="PROGRESS",
                meta={"progress": progress, "video_id": video_id}
            )
        except Exception as e:
            logger.warning(f"Failed to report progress: {e}")

    get_job_processor()(job, report_progress=report_progress)

    logger.info(f"Job {self.request.id} completed for video {video_id}")
    return {"video_id": video_id, "status": "completed"}


def enqueue_transcode(video_id: str, input_path: str, output_dir: str):
    """Publish a transcode job to the configured queue"""
    job = TranscodeJobData(video_id=video_id, input_path=input_path, output_dir=output_dir)
    return transcode_video_task.apply_async(kwargs=job.model_dump(), queue=settings.queue_name)


class TranscodeWorker:
    """
    Consumes the transcode queue in-process with a bounded prefork pool.

    start() blocks until the worker is stopped. stop() stops consuming,
    waits up to shutdown_timeout seconds for in-flight jobs, terminates
    whatever is still running and then releases database connections.
    """

    def __init__(
        self,
        app: Celery = celery_app,
        queue: Optional[str] = None,
        concurrency: Optional[int] = None,
        shutdown_timeout: Optional[float] = None,
        hostname: Optional[str] = None,
        loglevel: Optional[str] = None,
    ):
        self.app = app
        self.queue = queue or settings.queue_name
        self.concurrency = concurrency or settings.transcode_concurrency
        self.shutdown_timeout = settings.shutdown_timeout if shutdown_timeout is None else shutdown_timeout
        self.hostname = hostname or f"transcoder@{socket.gethostname()}"
        self.loglevel = (loglevel or settings.log_level).upper()

        self._controller = None
        self._lock = threading.Lock()
        self._stopping = False
        self._stopped = threading.Event()

    def start(self) -> None:
        logger.info("Transcode worker started")
        logger.info(f"  Queue: {self.queue}")
        logger.info(f"  Concurrency: {self.concurrency}")
        logger.info(f"  GPU: {'enabled' if settings.use_gpu else 'disabled'}")

        try:
            self._controller = self.app.WorkController(
                hostname=self.hostname,
                queues=[self.queue],
                concurrency=self.concurrency,
                pool_cls="prefork",
                loglevel=self.loglevel,
            )
            self._controller.start()
        except Exception:
            logger.exception("Transcode worker crashed")
            raise
        finally:
            self.stop()

    def _force_terminate(self, controller) -> None:
        logger.warning(f"In-flight jobs still running after {self.shutdown_timeout}s, terminating")
        pool = getattr(controller, "pool", None)
        if pool is not None:
            pool.terminate()

    def stop(self) -> None:
        with self._lock:
            already_stopping = self._stopping
            self._stopping = True
        if already_stopping:
            self._stopped.wait()
            return

        logger.info("Stopping transcode worker...")
        try:
            controller = self._controller
            if controller is not None:
                deadline = threading.Timer(self.shutdown_timeout, self._force_terminate, args=(controller,))
                deadline.daemon = True
                deadline.start()
                try:
                    controller.stop(in_sighandler=False)
                finally:
                    deadline.cancel()
            dispose_engine()
        finally:
            self._stopped.set()
        logger.info("Transcode worker stopped")


def install_shutdown_hook(worker: TranscodeWorker, signals=(signal.SIGTERM, signal.SIGINT)) -> None:
    """Stop the worker on termination signals, off the signal handler's stack"""

    def handle(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
        threading.Thread(target=worker.stop, name="transcoder-shutdown").start()

    for sig in signals:
        signal.signal(sig, handle)
