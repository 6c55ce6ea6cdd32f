# Job model - one row per transcoding attempt (status, progress, error)

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from transcoder.core.database import Base

JOB_STATUSES = ("pending", "processing", "completed", "failed")
TERMINAL_STATUSES = ("completed", "failed")


class TranscodeJob(Base):
    """Transcoding attempt for a video; the most recent row is authoritative"""

    __tablename__ = "transcode_jobs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    video_id = Column(String(36), ForeignKey("videos.id"), nullable=False, index=True)

    # Job status: pending, processing, completed, failed
    status = Column(String(50), nullable=False, default="pending", index=True)

    # Progress tracking (0-100)
    progress = Column(Integer, nullable=False, default=0)

    # Error message if failed
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    video = relationship("Video", back_populates="transcode_jobs")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<TranscodeJob(id={self.id}, video_id='{self.video_id}', status={self.status}, progress={self.progress})>"
