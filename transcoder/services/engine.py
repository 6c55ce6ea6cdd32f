# FFmpeg engine adapter - binary discovery, ffprobe JSON, ffmpeg runs as a stream of progress events

import json
import logging
import shutil
import subprocess
import threading
from collections import deque
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional

from transcoder.core.exceptions import FFmpegError

logger = logging.getLogger(__name__)

# Keep at most this much of stderr on failures
STDERR_TAIL = 2000
STDERR_LINES = 50


class EngineProgress(NamedTuple):
    """One block of `-progress pipe:1` output"""

    out_time: float  # seconds of output written so far
    fps: Optional[float] = None
    speed: Optional[float] = None


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value.strip().rstrip("x"))
    except ValueError:
        return None


def parse_progress(lines: Iterable[str]) -> Iterator[EngineProgress]:
    """
    Turn FFmpeg `-progress` key=value lines into EngineProgress events.

    FFmpeg writes a block of keys terminated by `progress=continue` or
    `progress=end`; one event is emitted per block. `out_time_ms` is
    reported in microseconds despite its name.
    """
    block: Dict[str, str] = {}
    out_time = 0.0
    for line in lines:
        line = line.strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        if key != "progress":
            block[key] = value
            continue

        micros = _parse_float(block.get("out_time_us") or block.get("out_time_ms"))
        if micros is not None and micros >= 0:
            out_time = micros / 1_000_000
        yield EngineProgress(
            out_time=out_time,
            fps=_parse_float(block.get("fps")),
            speed=_parse_float(block.get("speed")),
        )
        block = {}


class FFmpegEngine:
    """Thin wrapper around the ffmpeg/ffprobe binaries"""

    def __init__(self, ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None):
        self._ffmpeg_path = ffmpeg_path
        self._ffprobe_path = ffprobe_path

    @staticmethod
    def _find_binary(name: str) -> str:
        """Find binary path in common locations"""
        for path in [shutil.which(name), f"/usr/bin/{name}", f"/usr/local/bin/{name}"]:
            if not path:
                continue
            try:
                result = subprocess.run([path, "-version"], capture_output=True, timeout=5)
                if result.returncode == 0:
                    return path
            except (FileNotFoundError, PermissionError, subprocess.TimeoutExpired):
                continue
        raise FFmpegError(f"{name} not found. Please install FFmpeg.")

    @property
    def ffmpeg_path(self) -> str:
        if self._ffmpeg_path is None:
            self._ffmpeg_path = self._find_binary("ffmpeg")
        return self._ffmpeg_path

    @property
    def ffprobe_path(self) -> str:
        if self._ffprobe_path is None:
            self._ffprobe_path = self._find_binary("ffprobe")
        return self._ffprobe_path

    def probe(self, input_path: str, timeout: int = 30) -> Dict[str, Any]:
        """
        Run ffprobe and return its parsed JSON (streams + format)

        Raises:
            FFmpegError: ffprobe missing, timed out, failed or printed invalid JSON
        """
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            input_path
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise FFmpegError("FFprobe timed out") from e
        except OSError as e:
            raise FFmpegError(f"Failed to run ffprobe: {e}") from e

        if result.returncode != 0:
            raise FFmpegError(
                f"FFprobe failed with code {result.returncode}: {result.stderr.strip()}",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        try:
            return json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise FFmpegError(f"Failed to parse FFprobe output: {e}") from e

    def build_command(self, args: List[str]) -> List[str]:
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-nostats",
            "-loglevel", "error",
            "-progress", "pipe:1",
            *args,
        ]

    def run(self, args: List[str]) -> Iterator[EngineProgress]:
        """
        Run ffmpeg with the given arguments, yielding progress as it is reported.

        The process is killed if the consumer stops iterating early. stderr
        is drained on its own thread while progress is read, keeping only
        the last STDERR_LINES lines.

        Raises:
            FFmpegError: ffmpeg could not be started or exited non-zero
        """
        cmd = self.build_command(args)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True
            )
        except OSError as e:
            raise FFmpegError(f"Failed to start ffmpeg: {e}") from e

        stderr_tail = deque(maxlen=STDERR_LINES)
        reader = threading.Thread(
            target=stderr_tail.extend,
            args=(process.stderr,),
            name="ffmpeg-stderr",
            daemon=True,
        )
        reader.start()

        with process:
            try:
                yield from parse_progress(process.stdout)
            except BaseException:
                process.kill()
                raise
            finally:
                reader.join()
            returncode = process.wait()

        if returncode != 0:
            stderr = "".join(stderr_tail).strip()[-STDERR_TAIL:]
            raise FFmpegError(
                f"FFmpeg failed with code {returncode}: {stderr}",
                returncode=returncode,
                stderr=stderr,
            )

    def execute(self, args: List[str]) -> None:
        """Run ffmpeg to completion, ignoring progress"""
        for _ in self.run(args):
            pass


# Global engine instance, binaries are looked up on first use
_default_engine = FFmpegEngine()


def get_engine() -> FFmpegEngine:
    return _default_engine


def configure_engine(ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None) -> FFmpegEngine:
    """Point the global engine at explicit binaries"""
    global _default_engine
    _default_engine = FFmpegEngine(ffmpeg_path=ffmpeg_path, ffprobe_path=ffprobe_path)
    return _default_engine
