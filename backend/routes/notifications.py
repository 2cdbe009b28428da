"""
backend/routes/notifications.py
Admin broadcasts and the per-user notification inbox
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import BadRequestError, ErrorCode, NotFoundError
from backend.orm.notification import Notification
from backend.orm.user import User, UserStatus
from backend.schemas.admin import BroadcastRules
from backend.security.rbac import CurrentUser, get_current_user, require_admin
from backend.security.request_validator import RequestValidator, ValidatedRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notifications"])


@router.post("/admin/notifications/broadcast")
async def broadcast(
    current_user: CurrentUser = Depends(require_admin),
    form: ValidatedRequest = Depends(RequestValidator(BroadcastRules)),
    db: AsyncSession = Depends(get_db),
):
    """One notification row per active user, optionally limited to target_roles"""
    data: BroadcastRules = form.data

    stmt = select(User.id).where(User.status == UserStatus.active)
    if data.target_roles:
        stmt = stmt.where(User.role.in_(data.target_roles))
    user_ids = (await db.execute(stmt)).scalars().all()

    if not user_ids:
        raise BadRequestError("No users found to send notifications to.", code=ErrorCode.INVALID_INPUT)

    await db.execute(
        insert(Notification),
        [
            {"user_id": user_id, "title": data.title, "message": data.message, "type": data.type}
            for user_id in user_ids
        ]
    )
    await db.commit()

    logger.info(f"Admin {current_user.id} broadcast '{data.title}' to {len(user_ids)} user(s)")
    return {
        "message": f"Notification sent to {len(user_ids)} user(s) successfully.",
        "sent_count": len(user_ids),
    }


@router.get("/notifications")
async def my_notifications(
    unread_only: bool = Query(False),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Notification).where(Notification.user_id == current_user.id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    result = await db.execute(stmt.order_by(Notification.created_at.desc(), Notification.id.desc()))

    unread = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False)
        )
    )
    return {
        "notifications": [notification.to_dict() for notification in result.scalars().all()],
        "unread_count": unread.scalar() or 0,
    }


@router.put("/notifications/{notification_id}/read")
async def mark_read(
    notification_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == current_user.id
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification")

    notification.is_read = True
    await db.commit()
    return {"message": "Notification marked as read"}
