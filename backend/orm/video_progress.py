"""
backend/orm/video_progress.py
Per-user watch progress on video materials

watched_duration_seconds and progress_percentage only ever grow; repeated
reports are merged with max().
"""
from sqlalchemy import (
    Column, Integer, Boolean, Numeric, DateTime, ForeignKey, UniqueConstraint
)
from backend.orm.base import BaseModel


class VideoProgress(BaseModel):
    __tablename__ = "video_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_video_progress_user_video"),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id = Column(Integer, ForeignKey("course_materials.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    watched_duration_seconds = Column(Integer, default=0, nullable=False)
    progress_percentage = Column(Numeric(5, 2), default=0, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    watch_count = Column(Integer, default=0, nullable=False)
    last_watched_at = Column(DateTime, nullable=True)

    def to_dict(self):
        return {
            "video_id": self.video_id,
            "watched_duration_seconds": self.watched_duration_seconds,
            "progress_percentage": float(self.progress_percentage or 0),
            "completed": bool(self.completed),
            "watch_count": self.watch_count,
            "last_watched_at": self.last_watched_at.isoformat() if self.last_watched_at else None
        }
