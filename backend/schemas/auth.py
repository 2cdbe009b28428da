"""
backend/schemas/auth.py
Validation rules for registration, login and profile updates
"""
import re
from datetime import date
from typing import Literal, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator

from backend.orm.user import Gender
from backend.security.request_validator import RuleSet

MOBILE_PHONE_PATTERN = re.compile(r"^\+?\d[\d\s\-]{6,18}\d$")


def validate_mobile_phone(value: Optional[str]) -> Optional[str]:
    if value is not None and not MOBILE_PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number")
    return value


class ProfileFieldsMixin(RuleSet):
    """Optional profile fields shared by register and profile update"""
    model_config = ConfigDict(populate_by_name=True)

    phone: Optional[str] = Field(None, description="Mobile phone number")
    date_of_birth: Optional[date] = Field(None, alias="dateOfBirth", description="ISO 8601 date")
    gender: Optional[Gender] = None
    country: Optional[str] = Field(None, min_length=2, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return validate_mobile_phone(v)


PROFILE_MESSAGES = {
    "phone": "Invalid phone number",
    "dateOfBirth": "Invalid date of birth (use YYYY-MM-DD)",
    "gender": "Invalid gender",
    "country": "Country must be between 2 and 100 characters",
    "bio": "Bio must not exceed 500 characters",
}


class RegisterRules(ProfileFieldsMixin):
    """
    Used by: POST /auth/register

    Admin accounts cannot be created here.
    """
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Literal["student", "instructor", "parent"]

    messages = {
        "name": "Name must be between 2 and 100 characters",
        "email": "Please provide a valid email",
        "password": "Password must be at least 6 characters long",
        "role": "Role must be student, instructor or parent",
        **PROFILE_MESSAGES,
    }


class LoginRules(RuleSet):
    """Used by: POST /auth/login and POST /api/auth/admin-login"""
    email: EmailStr
    password: str = Field(..., min_length=1)

    messages = {
        "email": "Please provide a valid email",
        "password": "Password is required",
    }


class ProfileUpdateRules(ProfileFieldsMixin):
    """Used by: PUT /auth/profile"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    clear_profile_image: bool = False

    messages = {
        "name": "Name must be between 2 and 100 characters",
        **PROFILE_MESSAGES,
    }
