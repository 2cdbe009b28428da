"""
backend/schemas/chat.py
Validation rules for course chat
"""
from pydantic import Field

from backend.security.request_validator import RuleSet


class ChatMessageRules(RuleSet):
    """Used by: POST /api/courses/{course_id}/chat/messages"""
    message_content: str = Field(..., min_length=1, max_length=2000)

    messages = {"message_content": "Message content cannot be empty (max 2000 characters)"}
