"""
backend/schemas/online_class.py
Validation rules for scheduling online classes
"""
from datetime import datetime
from typing import Optional

from pydantic import Field

from backend.orm.online_class import ClassStatus
from backend.security.request_validator import RuleSet


class OnlineClassCreateRules(RuleSet):
    """
    Used by: POST /api/online-classes

    Only metadata is stored; the meeting itself runs on the external
    meeting service under a generated room name.
    """
    course_id: int = Field(..., ge=1)
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    scheduled_date: datetime = Field(..., description="ISO 8601 date-time")
    duration_minutes: int = Field(60, ge=15, le=480)
    max_participants: int = Field(50, ge=1, le=100)
    is_recording_enabled: bool = False
    allow_chat: bool = True
    allow_screen_share: bool = True

    messages = {
        "course_id": "Valid course ID is required",
        "title": "Title must be between 3 and 255 characters",
        "scheduled_date": "Valid scheduled date is required",
        "duration_minutes": "Duration must be between 15 and 480 minutes",
        "max_participants": "Max participants must be between 1 and 100",
    }


class ClassStatusRules(RuleSet):
    """Used by: PUT /api/online-classes/{class_id}/status"""
    status: ClassStatus

    messages = {"status": "Status must be scheduled, active, completed or cancelled"}
