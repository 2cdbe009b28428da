"""
backend/routes/chat.py
Per-course chat between the instructor and enrolled students

Messages are append-only.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.orm.chat_message import ChatMessage
from backend.orm.course import Course
from backend.orm.user import User
from backend.schemas.chat import ChatMessageRules
from backend.security.rbac import CurrentUser, get_current_user, require_course_member
from backend.security.request_validator import RequestValidator, ValidatedRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/courses", tags=["Chat"])


@router.get("/{course_id}/chat/messages")
async def list_messages(
    course: Course = Depends(require_course_member),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ChatMessage, User.name.label("user_name"), User.role.label("user_role"))
        .join(User, User.id == ChatMessage.user_id)
        .where(ChatMessage.course_id == course.id)
        .order_by(ChatMessage.timestamp.asc(), ChatMessage.id.asc())
    )
    messages = []
    for row in result.all():
        message = row.ChatMessage
        messages.append({
            "id": message.id,
            "course_id": message.course_id,
            "user_id": message.user_id,
            "message_content": message.message_content,
            "timestamp": message.timestamp.isoformat() if message.timestamp else None,
            "user_name": row.user_name,
            "user_role": row.user_role.value if row.user_role else None,
        })
    return {"messages": messages}


@router.post("/{course_id}/chat/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    course: Course = Depends(require_course_member),
    current_user: CurrentUser = Depends(get_current_user),
    form: ValidatedRequest = Depends(RequestValidator(ChatMessageRules)),
    db: AsyncSession = Depends(get_db),
):
    data: ChatMessageRules = form.data
    message = ChatMessage(
        course_id=course.id,
        user_id=current_user.id,
        message_content=data.message_content,
    )
    db.add(message)
    await db.commit()

    logger.info(f"User {current_user.id} posted message {message.id} in course {course.id}")
    return {"message": "Message sent successfully", "messageId": message.id}
