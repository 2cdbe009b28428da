"""
backend/orm/course.py
Courses and their learning materials

A course is owned by exactly one instructor. Materials belong to one course
and carry either a stored file (file_path) or inline text (content).
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Numeric, ForeignKey, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from enum import Enum
from backend.orm.base import BaseModel


class CourseStatus(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class Difficulty(str, Enum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"


class MaterialType(str, Enum):
    video = "video"
    document = "document"
    quiz = "quiz"
    other = "other"


def _money(value):
    return float(value) if value is not None else None


class Course(BaseModel):
    """
    Course offered by an instructor.

    slug is unique and derived from the title when not supplied.
    Deleting a course is an admin operation that removes its enrollments
    and materials in the same transaction.
    """
    __tablename__ = "courses"

    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    short_description = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    instructor_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    category_id = Column(
        Integer,
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Pricing
    price = Column(Numeric(10, 2), nullable=False, default=0)
    discount_price = Column(Numeric(10, 2), nullable=True)

    # Media (stored filenames)
    thumbnail = Column(String(255), nullable=True)
    trailer_video = Column(String(255), nullable=True)

    status = Column(SQLEnum(CourseStatus), nullable=False, default=CourseStatus.draft, index=True)
    difficulty = Column(SQLEnum(Difficulty), nullable=False, default=Difficulty.beginner)
    duration_hours = Column(Numeric(6, 2), nullable=True)
    language = Column(String(50), nullable=False, default="English")

    requirements = Column(Text, nullable=True)
    what_you_learn = Column(Text, nullable=True)
    target_audience = Column(Text, nullable=True)

    is_featured = Column(Boolean, default=False, nullable=False)
    views_count = Column(Integer, default=0, nullable=False)
    likes_count = Column(Integer, default=0, nullable=False)

    # Relationships
    instructor = relationship("User", back_populates="courses")
    category = relationship("Category", back_populates="courses")
    materials = relationship("CourseMaterial", back_populates="course", passive_deletes=True)
    enrollments = relationship("Enrollment", back_populates="course", passive_deletes=True)

    def to_dict(self):
        """Convert to API response format"""
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "short_description": self.short_description,
            "description": self.description,
            "instructor_id": self.instructor_id,
            "category_id": self.category_id,
            "price": _money(self.price),
            "discount_price": _money(self.discount_price),
            "thumbnail": self.thumbnail,
            "trailer_video": self.trailer_video,
            "status": self.status.value if self.status else None,
            "difficulty": self.difficulty.value if self.difficulty else None,
            "duration_hours": _money(self.duration_hours),
            "language": self.language,
            "requirements": self.requirements,
            "what_you_learn": self.what_you_learn,
            "target_audience": self.target_audience,
            "is_featured": bool(self.is_featured),
            "views_count": self.views_count,
            "likes_count": self.likes_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }


class CourseMaterial(BaseModel):
    """
    A single learning asset attached to a course.

    is_preview materials are visible to users who are not course members.
    """
    __tablename__ = "course_materials"

    course_id = Column(
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title = Column(String(255), nullable=False)
    type = Column(SQLEnum(MaterialType), nullable=False, default=MaterialType.other)
    content = Column(Text, nullable=True)
    file_path = Column(String(255), nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    order_index = Column(Integer, default=0, nullable=False)
    is_preview = Column(Boolean, default=False, nullable=False)

    course = relationship("Course", back_populates="materials")

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "type": self.type.value if self.type else None,
            "content": self.content,
            "file_path": self.file_path,
            "duration_seconds": self.duration_seconds,
            "order_index": self.order_index,
            "is_preview": bool(self.is_preview),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }
