"""
backend/orm/enrollment.py
Student enrollment in a course

One row per (user, course). progress_percentage is recomputed from video
progress every time a student reports watch time.
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from enum import Enum
from backend.orm.base import BaseModel


class EnrollmentStatus(str, Enum):
    in_progress = "in_progress"
    completed = "completed"


class Enrollment(BaseModel):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    enrollment_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    progress_percentage = Column(Numeric(5, 2), default=0, nullable=False)
    status = Column(SQLEnum(EnrollmentStatus), default=EnrollmentStatus.in_progress, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="enrollments")
    course = relationship("Course", back_populates="enrollments")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "enrollment_date": self.enrollment_date.isoformat() if self.enrollment_date else None,
            "progress_percentage": float(self.progress_percentage or 0),
            "status": self.status.value if self.status else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None
        }
