"""
backend/schemas/admin.py
Validation rules for the admin back office
"""
from typing import List, Literal, Optional

from pydantic import ConfigDict, EmailStr, Field, PositiveInt, field_validator

from backend.orm.course import CourseStatus
from backend.orm.notification import NotificationType
from backend.orm.user import UserRole
from backend.schemas.auth import validate_mobile_phone
from backend.security.request_validator import RuleSet


class AdminUserUpdateRules(RuleSet):
    """Used by: PUT /api/admin/users/{user_id}"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    status: Optional[Literal["active", "inactive"]] = None
    phone: Optional[str] = None
    country: Optional[str] = Field(None, min_length=2, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)

    messages = {
        "name": "Name must be between 2 and 100 characters",
        "email": "Please provide a valid email",
        "role": "Invalid role",
        "status": "Status must be active or inactive",
        "phone": "Invalid phone number",
        "country": "Country must be between 2 and 100 characters",
        "bio": "Bio must not exceed 500 characters",
    }

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return validate_mobile_phone(v)


class CourseStatusRules(RuleSet):
    """Used by: PUT /api/admin/courses/{course_id}/status"""
    status: CourseStatus

    messages = {"status": "Status must be draft, published or archived"}


class BulkDeleteRules(RuleSet):
    """Used by: POST /api/admin/users/bulk-delete"""
    model_config = ConfigDict(populate_by_name=True)

    user_ids: List[PositiveInt] = Field(..., alias="userIds", min_length=1)

    messages = {"userIds": "At least one valid user ID is required"}


class BroadcastRules(RuleSet):
    """Used by: POST /api/admin/notifications/broadcast"""
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=1000)
    type: NotificationType = NotificationType.info
    target_roles: Optional[List[UserRole]] = None

    messages = {
        "title": "Title must be between 1 and 255 characters",
        "message": "Message must be between 1 and 1000 characters",
        "type": "Type must be info, warning, success or error",
        "target_roles": "Invalid target role",
    }
