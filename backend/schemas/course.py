"""
backend/schemas/course.py
Validation rules for instructor course and material management
"""
from typing import Optional

from pydantic import Field

from backend.orm.course import CourseStatus, Difficulty, MaterialType
from backend.security.request_validator import RuleSet


COURSE_MESSAGES = {
    "title": "Title must be between 5 and 255 characters",
    "slug": "Slug must not exceed 255 characters",
    "short_description": "Short description must be between 10 and 500 characters",
    "description": "Description must be at least 20 characters",
    "category_id": "Invalid category ID",
    "price": "Price must be a non-negative number",
    "discount_price": "Discount price must be a non-negative number",
    "duration_hours": "Duration must be a non-negative number",
    "difficulty": "Invalid difficulty level",
    "language": "Language is required",
    "is_featured": "is_featured must be a boolean",
}


class CourseCreateRules(RuleSet):
    """
    Used by: POST /api/instructor/courses (multipart, optional "thumbnail")
    """
    title: str = Field(..., min_length=5, max_length=255)
    slug: Optional[str] = Field(None, max_length=255, description="Derived from the title when omitted")
    short_description: str = Field(..., min_length=10, max_length=500)
    description: str = Field(..., min_length=20)
    category_id: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    difficulty: Difficulty
    duration_hours: Optional[float] = Field(None, ge=0)
    language: str = Field(..., min_length=1, max_length=50)
    requirements: Optional[str] = None
    what_you_learn: Optional[str] = None
    target_audience: Optional[str] = None
    trailer_video: Optional[str] = Field(None, max_length=255)
    is_featured: bool = False

    messages = COURSE_MESSAGES


class CourseUpdateRules(RuleSet):
    """
    Used by: PUT /api/instructor/courses/{course_id}

    Every field is optional; only provided fields are written.
    """
    title: Optional[str] = Field(None, min_length=5, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    short_description: Optional[str] = Field(None, min_length=10, max_length=500)
    description: Optional[str] = Field(None, min_length=20)
    category_id: Optional[int] = Field(None, ge=1)
    price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    difficulty: Optional[Difficulty] = None
    duration_hours: Optional[float] = Field(None, ge=0)
    language: Optional[str] = Field(None, min_length=1, max_length=50)
    requirements: Optional[str] = None
    what_you_learn: Optional[str] = None
    target_audience: Optional[str] = None
    trailer_video: Optional[str] = Field(None, max_length=255)
    is_featured: Optional[bool] = None
    status: Optional[CourseStatus] = None
    clear_thumbnail: bool = False

    messages = {**COURSE_MESSAGES, "status": "Invalid status"}


MATERIAL_MESSAGES = {
    "title": "Title must be between 3 and 255 characters",
    "type": "Type must be video, document, quiz or other",
    "content": "Content must not exceed 5000 characters",
    "duration_seconds": "Duration must be a non-negative integer",
    "order_index": "Order index must be a non-negative integer",
    "is_preview": "is_preview must be a boolean",
}


class MaterialCreateRules(RuleSet):
    """
    Used by: POST /api/instructor/courses/{course_id}/materials
    (multipart, optional "video" / "document" files)
    """
    title: str = Field(..., min_length=3, max_length=255)
    type: MaterialType
    content: Optional[str] = Field(None, max_length=5000)
    duration_seconds: Optional[int] = Field(None, ge=0)
    order_index: int = Field(0, ge=0)
    is_preview: bool = False

    messages = MATERIAL_MESSAGES


class MaterialUpdateRules(RuleSet):
    """Used by: PUT /api/instructor/courses/{course_id}/materials/{material_id}"""
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    type: Optional[MaterialType] = None
    content: Optional[str] = Field(None, max_length=5000)
    duration_seconds: Optional[int] = Field(None, ge=0)
    order_index: Optional[int] = Field(None, ge=0)
    is_preview: Optional[bool] = None
    clear_content_and_file: bool = False

    messages = MATERIAL_MESSAGES
