# Transcoder error taxonomy - every stage failure aborts the job attempt

from typing import Optional


class TranscoderError(Exception):
    """Base class for pipeline failures"""


class FFmpegError(TranscoderError):
    """FFmpeg or ffprobe could not be run or exited with an error"""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ProbeError(TranscoderError):
    """No video stream, or the probe call itself failed"""


class EncodeError(TranscoderError):
    """A single rendition failed to encode"""

    def __init__(self, quality: str, message: str):
        super().__init__(f"Transcode failed for {quality}: {message}")
        self.quality = quality


class ThumbnailError(TranscoderError):
    pass


class SpriteSheetError(TranscoderError):
    pass


class StorageError(TranscoderError):
    pass


class JobStateError(TranscoderError):
    """Attempted to modify a job attempt that already reached a terminal state"""


class VideoNotFoundError(TranscoderError, LookupError):
    pass
