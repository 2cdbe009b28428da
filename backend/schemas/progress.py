"""
backend/schemas/progress.py
Validation rules for video progress reports
"""
from pydantic import Field

from backend.security.request_validator import RuleSet


class VideoProgressRules(RuleSet):
    """
    Used by: POST /api/materials/{material_id}/progress
    """
    watched_duration_seconds: float = Field(..., ge=0, description="Seconds watched so far")

    messages = {"watched_duration_seconds": "watched_duration_seconds must be a non-negative number"}
