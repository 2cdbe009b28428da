"""
backend/routes/progress.py
Video progress reports, course progress and certificate eligibility
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import ErrorCode, ForbiddenError, NotFoundError
from backend.orm.course import Course, CourseMaterial, MaterialType
from backend.orm.video_progress import VideoProgress
from backend.schemas.progress import VideoProgressRules
from backend.security.rbac import (
    CurrentUser, get_current_user, is_course_member, require_course_member
)
from backend.security.request_validator import RequestValidator, ValidatedRequest
from backend.services.certificate_service import certificate_status
from backend.services.progress_service import record_video_progress, recompute_enrollment_progress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Progress"])


@router.get("/courses/{course_id}/progress")
async def get_course_progress(
    course: Course = Depends(require_course_member),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's progress on every video of the course they have watched"""
    result = await db.execute(
        select(VideoProgress)
        .where(VideoProgress.user_id == current_user.id, VideoProgress.course_id == course.id)
        .order_by(VideoProgress.video_id)
    )
    progress = [
        {
            "video_id": row.video_id,
            "watched_duration_seconds": row.watched_duration_seconds,
            "progress_percentage": float(row.progress_percentage or 0),
            "completed": bool(row.completed),
        }
        for row in result.scalars().all()
    ]
    return {"progress": progress}


@router.post("/materials/{material_id}/progress")
async def report_video_progress(
    material_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    form: ValidatedRequest = Depends(RequestValidator(VideoProgressRules)),
    db: AsyncSession = Depends(get_db),
):
    """
    Merge a watch-time report for a video material.

    For enrolled students the enrollment's progress is recomputed in the
    same commit.
    """
    data: VideoProgressRules = form.data

    material = await db.get(CourseMaterial, material_id)
    if material is None or material.type != MaterialType.video:
        raise NotFoundError("Video", message="Video material not found", code=ErrorCode.MATERIAL_NOT_FOUND)

    course = await db.get(Course, material.course_id)
    if course is None or not await is_course_member(db, course, current_user):
        logger.warning(f"User {current_user.id} reported progress outside course {material.course_id}")
        raise ForbiddenError(
            "Access denied. You are not a member of this course.",
            code=ErrorCode.NOT_COURSE_MEMBER
        )

    progress = await record_video_progress(db, current_user.id, material, data.watched_duration_seconds)
    if current_user.is_student:
        await recompute_enrollment_progress(db, current_user.id, course.id)

    response = {
        "message": "Progress updated successfully",
        "progress_percentage": float(progress.progress_percentage or 0),
        "completed": bool(progress.completed),
    }
    await db.commit()
    return response


@router.get("/courses/{course_id}/certificate-status")
async def get_certificate_status(
    course: Course = Depends(require_course_member),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not current_user.is_student:
        raise ForbiddenError(
            "Certificates are issued to enrolled students only.",
            code=ErrorCode.PERMISSION_DENIED
        )
    return await certificate_status(db, course.id, current_user.id)
