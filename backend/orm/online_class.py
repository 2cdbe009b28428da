"""
backend/orm/online_class.py
Scheduled live classes and their attendance

No conferencing happens here. meeting_room_name is resolved to a URL on an
external meeting service when responses are shaped.
"""
from datetime import timedelta
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, JSON, ForeignKey,
    UniqueConstraint, Enum as SQLEnum
)
from enum import Enum
from backend.orm.base import BaseModel


class ClassStatus(str, Enum):
    scheduled = "scheduled"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class AttendanceStatus(str, Enum):
    joined = "joined"
    left = "left"


class OnlineClass(BaseModel):
    __tablename__ = "online_classes"

    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    scheduled_date = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, default=60, nullable=False)
    meeting_room_name = Column(String(255), nullable=False, unique=True)
    max_participants = Column(Integer, default=50, nullable=False)
    is_recording_enabled = Column(Boolean, default=False, nullable=False)
    allow_chat = Column(Boolean, default=True, nullable=False)
    allow_screen_share = Column(Boolean, default=True, nullable=False)
    jitsi_room_config = Column(JSON, nullable=True)
    status = Column(SQLEnum(ClassStatus), default=ClassStatus.scheduled, nullable=False, index=True)

    @property
    def end_time(self):
        return self.scheduled_date + timedelta(minutes=self.duration_minutes or 0)

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "instructor_id": self.instructor_id,
            "title": self.title,
            "description": self.description,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "duration_minutes": self.duration_minutes,
            "meeting_room_name": self.meeting_room_name,
            "max_participants": self.max_participants,
            "is_recording_enabled": bool(self.is_recording_enabled),
            "allow_chat": bool(self.allow_chat),
            "allow_screen_share": bool(self.allow_screen_share),
            "jitsi_room_config": self.jitsi_room_config,
            "status": self.status.value if self.status else None,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }


class ClassAttendance(BaseModel):
    __tablename__ = "class_attendance"
    __table_args__ = (
        UniqueConstraint("class_id", "user_id", name="uq_attendance_class_user"),
    )

    class_id = Column(Integer, ForeignKey("online_classes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at = Column(DateTime, nullable=True)
    left_at = Column(DateTime, nullable=True)
    status = Column(SQLEnum(AttendanceStatus), default=AttendanceStatus.joined, nullable=False)
