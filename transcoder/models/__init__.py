# SQLAlchemy database models - Video and TranscodeJob

from .video import Video
from .job import TranscodeJob
