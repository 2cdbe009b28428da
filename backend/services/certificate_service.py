"""
backend/services/certificate_service.py
Course certificate eligibility

A student is eligible once every video of the course is completed and every
active quiz of the course has at least one passing attempt.
"""
from typing import Any, Dict

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.orm.enrollment import Enrollment
from backend.orm.quiz import Quiz, QuizAttempt
from backend.services.progress_service import count_course_videos


async def certificate_status(db: AsyncSession, course_id: int, user_id: int) -> Dict[str, Any]:
    """
    Compute eligibility for one student and course.

    Returns:
        {eligible, videos_completed, videos_total, quizzes_passed,
         quizzes_total, course_progress}
    """
    videos_completed, videos_total = await count_course_videos(db, course_id, user_id)

    quizzes_result = await db.execute(
        select(func.count(Quiz.id)).where(
            Quiz.course_id == course_id,
            Quiz.is_active.is_(True)
        )
    )
    quizzes_total = quizzes_result.scalar() or 0

    passed_result = await db.execute(
        select(func.count(distinct(QuizAttempt.quiz_id)))
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .where(
            QuizAttempt.user_id == user_id,
            QuizAttempt.is_passed.is_(True),
            Quiz.course_id == course_id,
            Quiz.is_active.is_(True)
        )
    )
    quizzes_passed = passed_result.scalar() or 0

    enrollment_result = await db.execute(
        select(Enrollment.progress_percentage).where(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id
        )
    )
    course_progress = float(enrollment_result.scalar() or 0)

    eligible = videos_completed >= videos_total and quizzes_passed >= quizzes_total

    return {
        "eligible": eligible,
        "videos_completed": videos_completed,
        "videos_total": videos_total,
        "quizzes_passed": quizzes_passed,
        "quizzes_total": quizzes_total,
        "course_progress": course_progress,
    }
