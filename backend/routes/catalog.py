"""
backend/routes/catalog.py
Public catalog: categories, published courses, course details, materials
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import ErrorCode, NotFoundError
from backend.orm.category import Category
from backend.orm.course import Course, CourseMaterial, CourseStatus
from backend.orm.user import User
from backend.security.rbac import CurrentUser, get_current_user, is_course_member
from backend.services.course_summary import (
    as_int, course_card, enrollment_counts, material_counts, material_payload
)
from backend.services.storage import AssetKind, asset_url, public_base_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Catalog"])

HOMEPAGE_COURSE_LIMIT = 9


def _catalog_query():
    enrolled = enrollment_counts()
    materials = material_counts()
    enrolled_students = func.coalesce(enrolled.c.total, 0)
    stmt = (
        select(
            Course,
            User.name.label("instructor_name"),
            User.profile_image.label("instructor_profile_image"),
            Category.name.label("category_name"),
            Category.color.label("category_color"),
            enrolled_students.label("enrolled_students"),
            func.coalesce(materials.c.videos, 0).label("total_videos"),
            func.coalesce(materials.c.total, 0).label("total_materials"),
        )
        .join(User, User.id == Course.instructor_id)
        .join(Category, Category.id == Course.category_id)
        .outerjoin(enrolled, enrolled.c.course_id == Course.id)
        .outerjoin(materials, materials.c.course_id == Course.id)
        .where(Course.status == CourseStatus.published)
    )
    return stmt, enrolled_students


def _summary(row, base_url: str) -> dict:
    return course_card(
        row.Course,
        base_url,
        instructor_name=row.instructor_name,
        category_name=row.category_name,
        category_color=row.category_color,
        enrolled_students=as_int(row.enrolled_students),
        total_videos=as_int(row.total_videos),
        total_materials=as_int(row.total_materials),
    )


@router.get("/categories")
async def list_categories(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Category).order_by(Category.name))
    return {"categories": [category.to_dict() for category in result.scalars().all()]}


@router.get("/courses")
async def list_courses(request: Request, db: AsyncSession = Depends(get_db)):
    """Homepage listing: featured first, then most enrolled, then newest."""
    stmt, enrolled_students = _catalog_query()
    result = await db.execute(
        stmt.order_by(
            Course.is_featured.desc(),
            enrolled_students.desc(),
            Course.created_at.desc(),
            Course.id.desc()
        ).limit(HOMEPAGE_COURSE_LIMIT)
    )
    base_url = public_base_url(request)
    return {"courses": [_summary(row, base_url) for row in result.all()]}


@router.get("/courses/{slug}")
async def get_course(slug: str, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Published course by slug with a materials outline.

    Only preview materials carry their content and file URL here; the full
    set is served to members by the materials endpoint.
    """
    stmt, _ = _catalog_query()
    result = await db.execute(stmt.where(Course.slug == slug))
    row = result.first()
    if row is None:
        raise NotFoundError(
            "Course",
            message="Course not found or not published",
            code=ErrorCode.COURSE_NOT_FOUND
        )

    base_url = public_base_url(request)
    course = _summary(row, base_url)
    course["trailer_video_url"] = asset_url(base_url, AssetKind.video, row.Course.trailer_video)
    course["instructor_profile_image_url"] = asset_url(
        base_url, AssetKind.profile, row.instructor_profile_image
    )

    materials_result = await db.execute(
        select(CourseMaterial)
        .where(CourseMaterial.course_id == row.Course.id)
        .order_by(CourseMaterial.order_index, CourseMaterial.created_at, CourseMaterial.id)
    )
    course["materials"] = [
        material_payload(material, base_url, include_body=bool(material.is_preview))
        for material in materials_result.scalars().all()
    ]
    return {"course": course}


@router.get("/courses/{course_id}/materials")
async def list_course_materials(
    course_id: int,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Members see every material; everyone else only the preview ones."""
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course", code=ErrorCode.COURSE_NOT_FOUND)

    stmt = (
        select(CourseMaterial)
        .where(CourseMaterial.course_id == course_id)
        .order_by(CourseMaterial.order_index, CourseMaterial.created_at, CourseMaterial.id)
    )
    if not await is_course_member(db, course, current_user):
        stmt = stmt.where(CourseMaterial.is_preview.is_(True))

    result = await db.execute(stmt)
    base_url = public_base_url(request)
    return {"materials": [material_payload(m, base_url) for m in result.scalars().all()]}
