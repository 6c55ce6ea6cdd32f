"""Shared fixtures: in-memory database and a scripted FFmpeg engine."""

from typing import Dict, Iterator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from transcoder import models  # noqa: F401
from transcoder.core.database import Base
from transcoder.core.exceptions import FFmpegError
from transcoder.models import Video
from transcoder.schemas import QualityPreset
from transcoder.services.engine import EngineProgress

LADDER = [
    QualityPreset(name="1080p", width=1920, height=1080, bitrate="5000k", audio_bitrate="192k"),
    QualityPreset(name="720p", width=1280, height=720, bitrate="2500k", audio_bitrate="128k"),
    QualityPreset(name="480p", width=854, height=480, bitrate="1000k"),
]


def make_probe_data(
    width: Optional[int] = 1920,
    height: Optional[int] = 1080,
    duration: str = "120.0",
    r_frame_rate: str = "30/1",
    bit_rate: Optional[str] = "4500000",
    with_video: bool = True,
) -> Dict:
    streams = [{"codec_type": "audio", "codec_name": "aac"}]
    if with_video:
        video = {"codec_type": "video", "codec_name": "h264", "r_frame_rate": r_frame_rate}
        if width is not None:
            video["width"] = width
        if height is not None:
            video["height"] = height
        streams.insert(0, video)

    format_info = {"duration": duration}
    if bit_rate is not None:
        format_info["bit_rate"] = bit_rate
    return {"streams": streams, "format": format_info}


class FakeEngine:
    """Stands in for FFmpegEngine: canned probe output, scripted progress, optional failure."""

    def __init__(
        self,
        probe_data: Optional[Dict] = None,
        fail_on: Optional[str] = None,
        out_times: Optional[List[float]] = None,
    ):
        self.probe_data = probe_data if probe_data is not None else make_probe_data()
        self.fail_on = fail_on
        self.out_times = out_times
        self.commands: List[List[str]] = []
        self.probed: List[str] = []

    @property
    def duration(self) -> float:
        return float(self.probe_data.get("format", {}).get("duration") or 0)

    def probe(self, input_path: str) -> Dict:
        self.probed.append(input_path)
        return self.probe_data

    def run(self, args: List[str]) -> Iterator[EngineProgress]:
        self.commands.append(args)
        if self.fail_on and any(self.fail_on in arg for arg in args):
            raise FFmpegError("FFmpeg failed with code 1: encoder exploded", returncode=1)

        out_times = self.out_times
        if out_times is None:
            out_times = [0.0, self.duration / 2, self.duration]
        for out_time in out_times:
            yield EngineProgress(out_time=out_time, fps=30.0, speed=2.0)

    def execute(self, args: List[str]) -> None:
        for _ in self.run(args):
            pass


@pytest.fixture
def session_factory():
    """sessionmaker bound to a private in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def video(session_factory) -> str:
    """A video row waiting for transcoding; returns its id."""
    session = session_factory()
    session.add(Video(id="vid_1", title="Test upload", status="processing"))
    session.commit()
    session.close()
    return "vid_1"


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()
