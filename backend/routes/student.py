"""
backend/routes/student.py
Student enrollment, enrolled courses and their online classes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import ConflictError, ErrorCode, NotFoundError
from backend.orm.course import Course, CourseStatus
from backend.orm.enrollment import Enrollment, EnrollmentStatus
from backend.orm.online_class import ClassStatus, OnlineClass
from backend.orm.user import User
from backend.routes.online_classes import class_payload
from backend.security.rbac import CurrentUser, require_student
from backend.services.course_summary import course_card
from backend.services.storage import public_base_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/student", tags=["Student"])


@router.post("/enroll/{course_id}", status_code=status.HTTP_201_CREATED)
async def enroll(
    course_id: int,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """
    Enroll the caller in a published course.

    The (user_id, course_id) unique constraint decides between two
    concurrent requests; the loser gets 409.
    """
    course = await db.get(Course, course_id)
    if course is None or course.status != CourseStatus.published:
        raise NotFoundError(
            "Course",
            message="Course not found or not published",
            code=ErrorCode.COURSE_NOT_FOUND
        )

    existing = await db.execute(
        select(Enrollment.id).where(
            Enrollment.user_id == current_user.id,
            Enrollment.course_id == course_id
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Already enrolled in this course", code=ErrorCode.ALREADY_ENROLLED)

    enrollment = Enrollment(
        user_id=current_user.id,
        course_id=course_id,
        progress_percentage=0,
        status=EnrollmentStatus.in_progress,
    )
    db.add(enrollment)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Already enrolled in this course", code=ErrorCode.ALREADY_ENROLLED)

    logger.info(f"Student {current_user.id} enrolled in course {course_id}")
    return {"message": "Enrolled successfully", "enrollmentId": enrollment.id}


@router.get("/courses")
async def enrolled_courses(
    request: Request,
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Course, Enrollment, User.name.label("instructor_name"))
        .join(Enrollment, Enrollment.course_id == Course.id)
        .join(User, User.id == Course.instructor_id)
        .where(Enrollment.user_id == current_user.id)
        .order_by(Enrollment.enrollment_date.desc(), Enrollment.id.desc())
    )
    base_url = public_base_url(request)
    courses = []
    for row in result.all():
        enrollment = row.Enrollment
        courses.append(course_card(
            row.Course,
            base_url,
            instructor_name=row.instructor_name,
            enrollment_id=enrollment.id,
            enrollment_date=enrollment.enrollment_date.isoformat() if enrollment.enrollment_date else None,
            progress_percentage=float(enrollment.progress_percentage or 0),
            enrollment_status=enrollment.status.value,
            completed_at=enrollment.completed_at.isoformat() if enrollment.completed_at else None,
        ))
    return {"enrolledCourses": courses}


@router.get("/online-classes")
async def my_online_classes(
    status_filter: Optional[ClassStatus] = Query(None, alias="status"),
    current_user: CurrentUser = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Classes of the courses the student is still working through"""
    stmt = (
        select(OnlineClass, Course.title.label("course_title"), User.name.label("instructor_name"))
        .join(Course, Course.id == OnlineClass.course_id)
        .join(User, User.id == Course.instructor_id)
        .join(Enrollment, Enrollment.course_id == Course.id)
        .where(
            Enrollment.user_id == current_user.id,
            Enrollment.status == EnrollmentStatus.in_progress
        )
    )
    if status_filter is not None:
        stmt = stmt.where(OnlineClass.status == status_filter)

    result = await db.execute(stmt.order_by(OnlineClass.scheduled_date.desc(), OnlineClass.id.desc()))
    return {
        "classes": [
            class_payload(row.OnlineClass, course_title=row.course_title, instructor_name=row.instructor_name)
            for row in result.all()
        ]
    }
