"""
backend/services/progress_service.py
Video watch progress and course completion

Progress reports may arrive late, twice or out of order; stored values only
ever grow. A video counts as completed once 80% of it has been watched, and
a student's course progress is the share of the course's videos completed.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.orm.course import CourseMaterial, MaterialType
from backend.orm.enrollment import Enrollment, EnrollmentStatus
from backend.orm.video_progress import VideoProgress

logger = logging.getLogger(__name__)

COMPLETION_THRESHOLD = 80.0


def watch_percentage(watched_seconds: float, duration_seconds: Optional[int]) -> float:
    """min(watched / duration * 100, 100); 0 when the duration is unknown."""
    if not duration_seconds or duration_seconds <= 0:
        return 0.0
    return min((watched_seconds / duration_seconds) * 100, 100.0)


async def record_video_progress(
    db: AsyncSession,
    user_id: int,
    material: CourseMaterial,
    watched_seconds: float,
) -> VideoProgress:
    """
    Merge one progress report into the user's row for this video.

    Watched time and percentage keep their maxima, completion is sticky and
    watch_count grows by one per report. The caller commits.
    """
    percentage = watch_percentage(watched_seconds, material.duration_seconds)
    watched = int(watched_seconds)
    now = datetime.utcnow()

    result = await db.execute(
        select(VideoProgress).where(
            VideoProgress.user_id == user_id,
            VideoProgress.video_id == material.id
        )
    )
    progress = result.scalar_one_or_none()

    if progress is None:
        progress = VideoProgress(
            user_id=user_id,
            video_id=material.id,
            course_id=material.course_id,
            watched_duration_seconds=watched,
            progress_percentage=round(percentage, 2),
            completed=percentage >= COMPLETION_THRESHOLD,
            watch_count=1,
            last_watched_at=now,
        )
        db.add(progress)
    else:
        best_percentage = max(float(progress.progress_percentage or 0), percentage)
        progress.watched_duration_seconds = max(progress.watched_duration_seconds or 0, watched)
        progress.progress_percentage = round(best_percentage, 2)
        progress.completed = bool(progress.completed) or best_percentage >= COMPLETION_THRESHOLD
        progress.watch_count = (progress.watch_count or 0) + 1
        progress.last_watched_at = now

    await db.flush()
    return progress


async def count_course_videos(db: AsyncSession, course_id: int, user_id: int) -> Tuple[int, int]:
    """(completed videos, all videos) of a course for one user"""
    total_result = await db.execute(
        select(func.count(CourseMaterial.id)).where(
            CourseMaterial.course_id == course_id,
            CourseMaterial.type == MaterialType.video
        )
    )
    total = total_result.scalar() or 0

    completed_result = await db.execute(
        select(func.count(VideoProgress.id))
        .join(CourseMaterial, CourseMaterial.id == VideoProgress.video_id)
        .where(
            VideoProgress.user_id == user_id,
            VideoProgress.completed.is_(True),
            CourseMaterial.course_id == course_id,
            CourseMaterial.type == MaterialType.video
        )
    )
    completed = completed_result.scalar() or 0
    return completed, total


async def recompute_enrollment_progress(
    db: AsyncSession,
    user_id: int,
    course_id: int,
) -> Optional[Enrollment]:
    """
    Write completed / total videos * 100 into the student's enrollment.

    Returns None when the user is not enrolled (e.g. the owning instructor).
    The caller commits.
    """
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id
        )
    )
    enrollment = result.scalar_one_or_none()
    if enrollment is None:
        return None

    completed, total = await count_course_videos(db, course_id, user_id)
    percentage = round((completed / total) * 100, 2) if total > 0 else 0.0

    enrollment.progress_percentage = percentage
    if percentage >= 100:
        if enrollment.status != EnrollmentStatus.completed:
            enrollment.status = EnrollmentStatus.completed
            enrollment.completed_at = datetime.utcnow()
            logger.info(f"User {user_id} completed course {course_id}")
    else:
        enrollment.status = EnrollmentStatus.in_progress
        enrollment.completed_at = None

    return enrollment
