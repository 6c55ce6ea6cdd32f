"""Job processor tests: the real pipeline services driven by the fake engine."""

import os
from functools import partial
from unittest.mock import MagicMock

import pytest

from conftest import LADDER, FakeEngine, make_probe_data
from transcoder.core.config import Settings
from transcoder.core.exceptions import EncodeError, ProbeError, VideoNotFoundError
from transcoder.core.storage import LocalStorage
from transcoder.models import TranscodeJob, Video
from transcoder.schemas import TranscodeJobData
from transcoder.services.hls import transcode_to_hls
from transcoder.services.processor import JobProcessor
from transcoder.services.probe import probe_video
from transcoder.services.sprite import generate_sprite_sheet
from transcoder.services.thumbnail import generate_thumbnail


def _processor(session_factory, tmp_path, engine, storage=None, **overrides) -> JobProcessor:
    settings = Settings(qualities=LADDER, media_root=str(tmp_path), **overrides)
    return JobProcessor(
        session_factory=session_factory,
        settings=settings,
        storage=storage if storage is not None else LocalStorage(str(tmp_path)),
        probe=partial(probe_video, engine=engine),
        transcode=partial(transcode_to_hls, engine=engine),
        thumbnail=partial(generate_thumbnail, engine=engine),
        sprite=partial(generate_sprite_sheet, engine=engine),
    )


def _job(tmp_path, video_id: str = "vid_1") -> TranscodeJobData:
    return TranscodeJobData(
        video_id=video_id,
        input_path=str(tmp_path / "raw" / video_id / "upload.mp4"),
        output_dir=str(tmp_path / "hls" / video_id),
    )


def _jobs(session_factory, video_id: str = "vid_1"):
    db = session_factory()
    try:
        rows = (
            db.query(TranscodeJob)
            .filter(TranscodeJob.video_id == video_id)
            .order_by(TranscodeJob.id)
            .all()
        )
        return [(row.status, row.progress, row.error) for row in rows]
    finally:
        db.close()


def _video(session_factory, video_id: str = "vid_1") -> Video:
    db = session_factory()
    try:
        return db.get(Video, video_id)
    finally:
        db.close()


class TestJobProcessorSuccess:
    def test_reports_progress_checkpoints(self, session_factory, video, tmp_path) -> None:
        reported = []
        processor = _processor(session_factory, tmp_path, FakeEngine())

        processor(_job(tmp_path), report_progress=reported.append)

        assert reported == [0, 13, 27, 40, 53, 67, 80, 85, 95, 100]

    def test_completes_job_and_video(self, session_factory, video, tmp_path) -> None:
        processor = _processor(session_factory, tmp_path, FakeEngine(make_probe_data(duration="120.5")))

        processor(_job(tmp_path))

        assert _jobs(session_factory) == [("completed", 100, None)]
        row = _video(session_factory)
        assert row.status == "ready"
        assert row.duration == 121
        assert row.hls_path == "/hls/vid_1/master.m3u8"
        assert row.thumbnail_url == "/thumbnails/vid_1.jpg"
        assert row.sprite_url == "/thumbnails/vid_1-sprite.jpg"
        assert row.vtt_path == "/thumbnails/vid_1-sprite.vtt"

    def test_writes_outputs_beside_hls_dir(self, session_factory, video, tmp_path) -> None:
        engine = FakeEngine()
        processor = _processor(session_factory, tmp_path, engine)

        processor(_job(tmp_path))

        assert (tmp_path / "hls" / "vid_1" / "master.m3u8").exists()
        vtt = (tmp_path / "hls" / "thumbnails" / "vid_1-sprite.vtt").read_text()
        assert vtt.startswith("WEBVTT")
        assert "vid_1-sprite.jpg#xywh=0,0,160,90" in vtt

        outputs = [args[-1] for args in engine.commands]
        assert str(tmp_path / "hls" / "thumbnails" / "vid_1.jpg") in outputs
        assert str(tmp_path / "hls" / "thumbnails" / "vid_1-sprite.jpg") in outputs

    def test_source_probed_once(self, session_factory, video, tmp_path) -> None:
        engine = FakeEngine()

        _processor(session_factory, tmp_path, engine)(_job(tmp_path))

        assert len(engine.probed) == 1

    def test_url_prefixes_from_settings(self, session_factory, video, tmp_path) -> None:
        processor = _processor(
            session_factory, tmp_path, FakeEngine(),
            hls_url_prefix="https://cdn.example.com/hls/",
            thumbnail_url_prefix="https://cdn.example.com/thumbs",
        )

        processor(_job(tmp_path))

        row = _video(session_factory)
        assert row.hls_path == "https://cdn.example.com/hls/vid_1/master.m3u8"
        assert row.thumbnail_url == "https://cdn.example.com/thumbs/vid_1.jpg"

    def test_publishes_outputs(self, session_factory, video, tmp_path) -> None:
        storage = MagicMock()
        processor = _processor(session_factory, tmp_path, FakeEngine(), storage=storage)
        job = _job(tmp_path)

        processor(job)

        thumbnails = os.path.join(str(tmp_path / "hls"), "thumbnails")
        storage.write_text.assert_called_once()
        assert storage.write_text.call_args.args[0] == os.path.join(thumbnails, "vid_1-sprite.vtt")
        published = [c.args[0] for c in storage.publish.call_args_list]
        assert published == [
            job.output_dir,
            os.path.join(thumbnails, "vid_1.jpg"),
            os.path.join(thumbnails, "vid_1-sprite.jpg"),
        ]

    def test_gpu_setting_selects_nvenc(self, session_factory, video, tmp_path) -> None:
        engine = FakeEngine()

        _processor(session_factory, tmp_path, engine, use_gpu=True)(_job(tmp_path))

        assert "h264_nvenc" in engine.commands[0]


class TestJobProcessorFailure:
    def test_encode_failure_marks_job_and_video_failed(self, session_factory, video, tmp_path) -> None:
        processor = _processor(session_factory, tmp_path, FakeEngine(fail_on="480p"))

        with pytest.raises(EncodeError):
            processor(_job(tmp_path))

        [(status, progress, error)] = _jobs(session_factory)
        assert (status, progress) == ("failed", 0)
        assert error.startswith("Transcode failed for 480p")
        assert _video(session_factory).status == "failed"

    def test_probe_failure(self, session_factory, video, tmp_path) -> None:
        engine = FakeEngine(make_probe_data(with_video=False))

        with pytest.raises(ProbeError):
            _processor(session_factory, tmp_path, engine)(_job(tmp_path))

        assert engine.commands == []
        assert _jobs(session_factory) == [("failed", 0, "No video stream found")]

    def test_no_completion_report_on_failure(self, session_factory, video, tmp_path) -> None:
        reported = []
        processor = _processor(session_factory, tmp_path, FakeEngine(fail_on="tile="))

        with pytest.raises(Exception):
            processor(_job(tmp_path), report_progress=reported.append)

        assert reported[-1] == 85
        assert 100 not in reported

    def test_missing_video_row(self, session_factory, tmp_path) -> None:
        processor = _processor(session_factory, tmp_path, FakeEngine())

        with pytest.raises(VideoNotFoundError):
            processor(_job(tmp_path, video_id="ghost"))

        [(status, _, error)] = _jobs(session_factory, "ghost")
        assert status == "failed"
        assert "ghost" in error


class TestJobProcessorRetry:
    def test_retry_creates_new_attempt(self, session_factory, video, tmp_path) -> None:
        with pytest.raises(EncodeError):
            _processor(session_factory, tmp_path, FakeEngine(fail_on="720p"))(_job(tmp_path))

        _processor(session_factory, tmp_path, FakeEngine())(_job(tmp_path))

        jobs = _jobs(session_factory)
        assert [status for status, _, _ in jobs] == ["failed", "completed"]
        assert jobs[-1][1] == 100
        assert _video(session_factory).status == "ready"
