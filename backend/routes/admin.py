"""
backend/routes/admin.py
Admin back office: users, courses, statistics, analytics and exports

Every endpoint requires the admin role. Users are soft-deleted; course
deletion is the one multi-statement transaction in the API.
"""
import logging
import math
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import (
    BadRequestError, ConflictError, ErrorCode, ForbiddenError, NotFoundError,
    log_and_raise_internal
)
from backend.orm.category import Category
from backend.orm.course import Course, CourseMaterial
from backend.orm.enrollment import Enrollment
from backend.orm.user import User, UserRole, UserStatus
from backend.orm.video_progress import VideoProgress
from backend.schemas.admin import AdminUserUpdateRules, BulkDeleteRules, CourseStatusRules
from backend.security.rbac import CurrentUser, require_admin
from backend.security.request_validator import RequestValidator, ValidatedRequest
from backend.services.admin_service import (
    ANALYTICS_PERIODS, courses_to_csv, export_courses, export_users, platform_analytics,
    platform_statistics, users_to_csv
)
from backend.services.course_summary import as_int, enrollment_counts, material_counts
from backend.services.storage import AssetKind, FileStorage, get_storage, material_asset_kind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

EXPORT_FORMAT = "^(json|csv)$"


def _pagination(page: int, limit: int, total: int, total_key: str) -> dict:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if total else 0,
        total_key: total,
        "limit": limit,
    }


def _csv_attachment(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ================= USERS =================

@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Non-deleted users, newest first, optionally matching name or email"""
    conditions = [User.status != UserStatus.deleted]
    if search:
        term = search.strip()
        conditions.append(or_(
            User.name.icontains(term, autoescape=True),
            User.email.icontains(term, autoescape=True),
        ))

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return {
        "error": False,
        "users": [user.to_dict() for user in result.scalars().all()],
        "pagination": _pagination(page, limit, total, "totalUsers"),
    }


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    current_user: CurrentUser = Depends(require_admin),
    form: ValidatedRequest = Depends(RequestValidator(AdminUserUpdateRules)),
    db: AsyncSession = Depends(get_db),
):
    updates = form.data.provided()
    if not updates:
        raise BadRequestError("No fields provided for update.", code=ErrorCode.NO_FIELDS)

    user = await db.get(User, user_id)
    if user is None or user.status == UserStatus.deleted:
        raise NotFoundError("User", message="User not found.", code=ErrorCode.USER_NOT_FOUND)

    if "email" in updates:
        updates["email"] = updates["email"].lower()
        taken = await db.execute(
            select(User.id).where(User.email == updates["email"], User.id != user_id)
        )
        if taken.scalar_one_or_none() is not None:
            raise ConflictError("Email already exists", code=ErrorCode.DUPLICATE_EMAIL)

    if "status" in updates:
        updates["status"] = UserStatus(updates["status"])

    for field, value in updates.items():
        setattr(user, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email already exists", code=ErrorCode.DUPLICATE_EMAIL)

    logger.info(f"Admin {current_user.id} updated user {user_id}: {sorted(updates)}")
    return {"message": "User updated successfully.", "user": user.to_dict()}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the row stays with status "deleted"."""
    user = await db.get(User, user_id)
    if user is None or user.status == UserStatus.deleted:
        raise NotFoundError("User", message="User not found", code=ErrorCode.USER_NOT_FOUND)

    if user.role == UserRole.admin:
        raise ForbiddenError("Cannot delete admin accounts.", code=ErrorCode.PERMISSION_DENIED)

    if user.role == UserRole.instructor:
        owned = await db.execute(select(func.count(Course.id)).where(Course.instructor_id == user_id))
        if (owned.scalar() or 0) > 0:
            raise BadRequestError(
                "Cannot delete instructor with active courses",
                code=ErrorCode.INVALID_STATE
            )

    user.status = UserStatus.deleted
    await db.commit()

    logger.info(f"Admin {current_user.id} soft-deleted user {user_id}")
    return {"message": "User deleted successfully"}


@router.post("/users/bulk-delete")
async def bulk_delete_users(
    current_user: CurrentUser = Depends(require_admin),
    form: ValidatedRequest = Depends(RequestValidator(BulkDeleteRules)),
    db: AsyncSession = Depends(get_db),
):
    """All-or-nothing: a single admin in the list rejects the whole request."""
    user_ids: List[int] = sorted(set(form.data.user_ids))

    admins = await db.execute(
        select(func.count(User.id)).where(User.id.in_(user_ids), User.role == UserRole.admin)
    )
    if (admins.scalar() or 0) > 0:
        logger.warning(f"Admin {current_user.id} attempted to bulk-delete admin accounts")
        raise ForbiddenError("Cannot delete admin accounts.", code=ErrorCode.PERMISSION_DENIED)

    result = await db.execute(
        update(User)
        .where(User.id.in_(user_ids), User.status != UserStatus.deleted)
        .values(status=UserStatus.deleted)
    )
    await db.commit()

    deleted = result.rowcount or 0
    logger.info(f"Admin {current_user.id} bulk-deleted {deleted} user(s)")
    return {"message": f"{deleted} user(s) deleted successfully.", "deletedCount": deleted}


@router.get("/users/export")
async def export_users_endpoint(
    format: str = Query("json", pattern=EXPORT_FORMAT),
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows = await export_users(db)
    logger.info(f"Admin {current_user.id} exported {len(rows)} user(s) as {format}")
    if format == "csv":
        return _csv_attachment(users_to_csv(rows), "users_export.csv")
    return rows


# ================= COURSES =================

@router.get("/courses")
async def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    enrolled = enrollment_counts()
    materials = material_counts()

    total = (await db.execute(select(func.count(Course.id)))).scalar() or 0
    result = await db.execute(
        select(
            Course,
            User.name.label("instructor_name"),
            User.email.label("instructor_email"),
            Category.name.label("category_name"),
            enrolled.c.total.label("enrolled_students_count"),
            materials.c.total.label("materials_count"),
        )
        .join(User, User.id == Course.instructor_id)
        .outerjoin(Category, Category.id == Course.category_id)
        .outerjoin(enrolled, enrolled.c.course_id == Course.id)
        .outerjoin(materials, materials.c.course_id == Course.id)
        .order_by(Course.created_at.desc(), Course.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )

    courses = []
    for row in result.all():
        item = row.Course.to_dict()
        item.update(
            instructor_name=row.instructor_name,
            instructor_email=row.instructor_email,
            category_name=row.category_name,
            enrolled_students_count=as_int(row.enrolled_students_count),
            materials_count=as_int(row.materials_count),
        )
        courses.append(item)

    return {
        "error": False,
        "courses": courses,
        "pagination": _pagination(page, limit, total, "totalCourses"),
    }


@router.put("/courses/{course_id}/status")
async def update_course_status(
    course_id: int,
    current_user: CurrentUser = Depends(require_admin),
    form: ValidatedRequest = Depends(RequestValidator(CourseStatusRules)),
    db: AsyncSession = Depends(get_db),
):
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course", message="Course not found.", code=ErrorCode.COURSE_NOT_FOUND)

    course.status = form.data.status
    await db.commit()

    logger.info(f"Admin {current_user.id} set course {course_id} status to {course.status.value}")
    return {"message": "Course status updated successfully."}


@router.delete("/courses/{course_id}")
async def delete_course(
    course_id: int,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """
    Remove a course with its enrollments, materials and their progress rows.

    Everything happens in one transaction; stored files are removed only
    once the commit has succeeded.
    """
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course", message="Course not found.", code=ErrorCode.COURSE_NOT_FOUND)

    files: List[Tuple[AssetKind, str]] = []
    if course.thumbnail:
        files.append((AssetKind.thumbnail, course.thumbnail))
    material_rows = await db.execute(
        select(CourseMaterial.type, CourseMaterial.file_path).where(CourseMaterial.course_id == course_id)
    )
    for material_type, file_path in material_rows.all():
        if file_path:
            files.append((material_asset_kind(material_type.value), file_path))

    material_ids = select(CourseMaterial.id).where(CourseMaterial.course_id == course_id)
    try:
        await db.execute(delete(Enrollment).where(Enrollment.course_id == course_id))
        await db.execute(delete(VideoProgress).where(VideoProgress.video_id.in_(material_ids)))
        await db.execute(delete(CourseMaterial).where(CourseMaterial.course_id == course_id))
        await db.execute(delete(Course).where(Course.id == course_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log_and_raise_internal(e, f"delete_course({course_id})")

    for kind, filename in files:
        storage.delete(kind, filename)

    logger.info(f"Admin {current_user.id} deleted course {course_id} ({len(files)} file(s))")
    return {"message": "Course deleted successfully."}


@router.get("/courses/export")
async def export_courses_endpoint(
    format: str = Query("json", pattern=EXPORT_FORMAT),
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows = await export_courses(db)
    logger.info(f"Admin {current_user.id} exported {len(rows)} course(s) as {format}")
    if format == "csv":
        return _csv_attachment(courses_to_csv(rows), "courses_export.csv")
    return rows


# ================= DASHBOARD =================

@router.get("/statistics")
async def statistics(
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await platform_statistics(db)


@router.get("/analytics")
async def analytics(
    period: str = Query("7d"),
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if period not in ANALYTICS_PERIODS:
        raise BadRequestError(
            f"period must be one of {', '.join(ANALYTICS_PERIODS)}",
            code=ErrorCode.INVALID_INPUT
        )
    return await platform_analytics(db, period)
