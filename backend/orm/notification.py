"""
backend/orm/notification.py
In-app notifications created by admin broadcasts
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, Enum as SQLEnum
from enum import Enum
from backend.orm.base import BaseModel


class NotificationType(str, Enum):
    info = "info"
    warning = "warning"
    success = "success"
    error = "error"


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), default=NotificationType.info, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type.value if self.type else None,
            "is_read": bool(self.is_read),
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
