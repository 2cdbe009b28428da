"""
backend/orm/user.py
User model with role, account status and profile fields

Users are never hard-deleted: an admin delete flips status to "deleted".
"""
from sqlalchemy import Column, String, Boolean, Date, DateTime, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from enum import Enum
from backend.orm.base import BaseModel


class UserRole(str, Enum):
    """Platform roles. Admin accounts cannot be self-registered."""
    student = "student"
    instructor = "instructor"
    parent = "parent"
    admin = "admin"


class UserStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    deleted = "deleted"


class Gender(str, Enum):
    male = "male"
    female = "female"
    other = "other"
    prefer_not_to_say = "prefer_not_to_say"


class User(BaseModel):
    """
    Platform account.

    KEY FIELDS:
    - role: student / instructor / parent / admin
    - status: active / inactive / deleted (soft delete)
    - email_verified + verification_token: single-use email verification
    """
    __tablename__ = "users"

    # Authentication
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.student, index=True)
    status = Column(SQLEnum(UserStatus), nullable=False, default=UserStatus.active, index=True)

    # Profile
    bio = Column(Text, nullable=True)
    phone = Column(String(30), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(SQLEnum(Gender), nullable=True)
    country = Column(String(100), nullable=True)
    profile_image = Column(String(255), nullable=True)

    # Verification
    email_verified = Column(Boolean, default=False, nullable=False)
    verification_token = Column(Text, nullable=True)

    last_login = Column(DateTime, nullable=True)

    # Relationships
    courses = relationship("Course", back_populates="instructor", passive_deletes=True)
    enrollments = relationship("Enrollment", back_populates="user", passive_deletes=True)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.active

    def to_dict(self):
        """Convert to API response format (never includes the password hash)"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "status": self.status.value if self.status else None,
            "bio": self.bio,
            "phone": self.phone,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "gender": self.gender.value if self.gender else None,
            "country": self.country,
            "profile_image": self.profile_image,
            "email_verified": bool(self.email_verified),
            "last_login": self.last_login.isoformat() if self.last_login else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }
