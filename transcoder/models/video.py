# Video model - the pipeline only touches status and the generated asset URLs

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from transcoder.core.database import Base

VIDEO_STATUSES = ("uploading", "processing", "ready", "failed")


class Video(Base):
    """Video row owned by the web application, updated by the transcoder"""

    __tablename__ = "videos"

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=True)

    # Lifecycle: uploading, processing, ready, failed
    status = Column(String(50), nullable=False, default="uploading", index=True)

    # Duration in whole seconds (set when transcoding completes)
    duration = Column(Integer, nullable=True)

    # Public URLs of generated assets
    thumbnail_url = Column(String(500), nullable=True)
    hls_path = Column(String(500), nullable=True)
    sprite_url = Column(String(500), nullable=True)
    vtt_path = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    transcode_jobs = relationship("TranscodeJob", back_populates="video", lazy="dynamic")

    def __repr__(self):
        return f"<Video(id='{self.id}', status={self.status})>"
