"""
backend/routes/online_classes.py
Scheduled online classes

Only class metadata lives here. The live session itself runs on an external
meeting service; clients open meeting_url, which is derived from the
class's unique room name.
"""
import logging
import secrets
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import BadRequestError, ErrorCode, NotFoundError
from backend.orm.course import Course, CourseStatus
from backend.orm.enrollment import Enrollment
from backend.orm.online_class import AttendanceStatus, ClassAttendance, ClassStatus, OnlineClass
from backend.orm.user import User
from backend.schemas.online_class import ClassStatusRules, OnlineClassCreateRules
from backend.security.rbac import (
    CurrentUser, get_owned_course, require_course_member, require_instructor, require_student
)
from backend.security.request_validator import RequestValidator, ValidatedRequest
from backend.services.storage import meeting_url
from backend.utils.dates import naive_utc
from backend.utils.slug import slugify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Online Classes"])

CLOSED_STATUSES = (ClassStatus.cancelled, ClassStatus.completed)


def generate_room_name(course_id: int, title: str) -> str:
    """Unguessable, URL-safe room name"""
    stem = slugify(title)[:40] or "class"
    return f"elearn-{course_id}-{stem}-{secrets.token_hex(6)}"


def room_config(data: OnlineClassCreateRules) -> dict:
    """Settings handed to the meeting service when the room opens"""
    return {
        "startWithAudioMuted": True,
        "startWithVideoMuted": False,
        "enableRecording": data.is_recording_enabled,
        "enableChat": data.allow_chat,
        "enableScreenSharing": data.allow_screen_share,
        "maxParticipants": data.max_participants,
    }


def class_payload(online_class: OnlineClass, **extra) -> dict:
    """Class JSON with meeting URL and start / end times"""
    data = online_class.to_dict()
    data["meeting_url"] = meeting_url(online_class.meeting_room_name)
    data["start_time"] = data["scheduled_date"]
    data["end_time"] = online_class.end_time.isoformat() if online_class.scheduled_date else None
    data.update(extra)
    return data


# ================= INSTRUCTOR =================

@router.post("/online-classes", status_code=status.HTTP_201_CREATED)
async def schedule_class(
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(RequestValidator(OnlineClassCreateRules)),
    db: AsyncSession = Depends(get_db),
):
    data: OnlineClassCreateRules = form.data
    await get_owned_course(db, data.course_id, current_user.id)

    online_class = OnlineClass(
        course_id=data.course_id,
        instructor_id=current_user.id,
        title=data.title,
        description=data.description,
        scheduled_date=naive_utc(data.scheduled_date),
        duration_minutes=data.duration_minutes,
        meeting_room_name=generate_room_name(data.course_id, data.title),
        max_participants=data.max_participants,
        is_recording_enabled=data.is_recording_enabled,
        allow_chat=data.allow_chat,
        allow_screen_share=data.allow_screen_share,
        jitsi_room_config=room_config(data),
        status=ClassStatus.scheduled,
    )
    db.add(online_class)
    await db.commit()

    logger.info(f"Instructor {current_user.id} scheduled class {online_class.id} for course {data.course_id}")
    return {"message": "Class scheduled successfully", "data": class_payload(online_class)}


@router.get("/online-classes")
async def list_my_classes(
    status_filter: Optional[ClassStatus] = Query(None, alias="status"),
    current_user: CurrentUser = Depends(require_instructor),
    db: AsyncSession = Depends(get_db),
):
    """Own classes, latest scheduled first, optionally filtered by status"""
    stmt = (
        select(OnlineClass, Course.title.label("course_title"))
        .join(Course, Course.id == OnlineClass.course_id)
        .where(OnlineClass.instructor_id == current_user.id)
    )
    if status_filter is not None:
        stmt = stmt.where(OnlineClass.status == status_filter)

    result = await db.execute(stmt.order_by(OnlineClass.scheduled_date.desc(), OnlineClass.id.desc()))
    return {
        "classes": [
            class_payload(row.OnlineClass, course_title=row.course_title) for row in result.all()
        ]
    }


@router.get("/instructor/courses-for-classes")
async def courses_for_classes(
    current_user: CurrentUser = Depends(require_instructor),
    db: AsyncSession = Depends(get_db),
):
    """Own published courses a class can be scheduled for"""
    result = await db.execute(
        select(Course.id, Course.title, Course.slug, Course.status)
        .where(Course.instructor_id == current_user.id, Course.status == CourseStatus.published)
        .order_by(Course.title)
    )
    return {
        "courses": [
            {"id": row.id, "title": row.title, "slug": row.slug, "status": row.status.value}
            for row in result.all()
        ]
    }


@router.put("/online-classes/{class_id}/status")
async def update_class_status(
    class_id: int,
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(RequestValidator(ClassStatusRules)),
    db: AsyncSession = Depends(get_db),
):
    """Any status may be set; there are no transition rules."""
    result = await db.execute(
        select(OnlineClass).where(
            OnlineClass.id == class_id,
            OnlineClass.instructor_id == current_user.id
        )
    )
    online_class = result.scalar_one_or_none()
    if online_class is None:
        raise NotFoundError(
            "Class",
            message="Class not found or you are not the instructor.",
            code=ErrorCode.CLASS_NOT_FOUND
        )

    online_class.status = form.data.status
    await db.commit()

    logger.info(f"Class {class_id} status set to {online_class.status.value}")
    return {"message": "Class status updated successfully", "status": online_class.status.value}


# ================= COURSE MEMBERS =================

@router.get("/courses/{course_id}/classes")
async def list_course_classes(
    course: Course = Depends(require_course_member),
    db: AsyncSession = Depends(get_db),
):
    instructor = await db.get(User, course.instructor_id)
    result = await db.execute(
        select(OnlineClass)
        .where(OnlineClass.course_id == course.id)
        .order_by(OnlineClass.scheduled_date.desc(), OnlineClass.id.desc())
    )
    instructor_name = instructor.name if instructor else None
    return {
        "classes": [
            class_payload(online_class, course_title=course.title, instructor_name=instructor_name)
            for online_class in result.scalars().all()
        ],
        "course_info": {
            "id": course.id,
            "title": course.title,
            "instructor_name": instructor_name,
        }
    }


async def _record_attendance(db: AsyncSession, class_id: int, user_id: int) -> None:
    """Upsert the student's attendance; a failed write is logged, not raised."""
    try:
        result = await db.execute(
            select(ClassAttendance).where(
                ClassAttendance.class_id == class_id,
                ClassAttendance.user_id == user_id
            )
        )
        attendance = result.scalar_one_or_none()
        now = datetime.utcnow()
        if attendance is None:
            db.add(ClassAttendance(
                class_id=class_id,
                user_id=user_id,
                joined_at=now,
                status=AttendanceStatus.joined,
            ))
        else:
            attendance.joined_at = now
            attendance.status = AttendanceStatus.joined
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to record attendance for user {user_id} in class {class_id}: {type(e).__name__}")


@router.post("/courses/{course_id}/classes/{class_id}/join")
async def join_class(
    course_id: int,
    class_id: int,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(OnlineClass)
        .join(Enrollment, Enrollment.course_id == OnlineClass.course_id)
        .where(
            OnlineClass.id == class_id,
            OnlineClass.course_id == course_id,
            Enrollment.user_id == current_user.id
        )
    )
    online_class = result.scalar_one_or_none()
    if online_class is None:
        raise NotFoundError(
            "Class",
            message="Class not found or you are not enrolled in this course.",
            code=ErrorCode.CLASS_NOT_FOUND
        )

    if online_class.status in CLOSED_STATUSES:
        raise BadRequestError(
            f"This class has been {online_class.status.value}",
            code=ErrorCode.INVALID_STATE
        )

    class_info = {
        "id": online_class.id,
        "title": online_class.title,
        "meeting_url": meeting_url(online_class.meeting_room_name),
        "status": online_class.status.value,
    }

    await _record_attendance(db, online_class.id, current_user.id)

    logger.info(f"Student {current_user.id} joined class {class_id}")
    return {"message": "Successfully joined class", "class_info": class_info}
