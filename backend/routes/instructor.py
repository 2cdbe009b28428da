"""
backend/routes/instructor.py
Instructor course and material management

Every mutating handler re-checks ownership; a course owned by another
instructor is reported as not found. New uploads are kept only once the
rows referencing them are committed (see RequestValidator), and replaced
files are removed only after that commit.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import BadRequestError, ConflictError, ErrorCode, NotFoundError
from backend.orm.category import Category
from backend.orm.course import Course, CourseMaterial, CourseStatus, MaterialType
from backend.orm.enrollment import Enrollment
from backend.orm.user import User
from backend.schemas.course import (
    CourseCreateRules, CourseUpdateRules, MaterialCreateRules, MaterialUpdateRules
)
from backend.security.rbac import CurrentUser, get_owned_course, require_instructor
from backend.security.request_validator import RequestValidator, ValidatedRequest
from backend.services.course_summary import as_int, course_card, enrollment_counts, material_payload
from backend.services.storage import (
    AssetKind, FileStorage, StoredFile, get_storage, material_asset_kind, public_base_url
)
from backend.utils.slug import slugify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/instructor", tags=["Instructor"])

MATERIAL_FILES = {"video": AssetKind.video, "document": AssetKind.document}


async def _category_exists(db: AsyncSession, category_id: int) -> bool:
    result = await db.execute(select(Category.id).where(Category.id == category_id))
    return result.scalar_one_or_none() is not None


async def _slug_taken(db: AsyncSession, slug: str, exclude_course_id: Optional[int] = None) -> bool:
    stmt = select(Course.id).where(Course.slug == slug)
    if exclude_course_id is not None:
        stmt = stmt.where(Course.id != exclude_course_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


# ================= COURSES =================

@router.get("/courses")
async def list_my_courses(
    request: Request,
    current_user: CurrentUser = Depends(require_instructor),
    db: AsyncSession = Depends(get_db),
):
    """Own courses, newest first, with enrolled student counts"""
    enrolled = enrollment_counts()
    result = await db.execute(
        select(
            Course,
            Category.name.label("category_name"),
            func.coalesce(enrolled.c.total, 0).label("enrolled_students_count"),
        )
        .join(Category, Category.id == Course.category_id)
        .outerjoin(enrolled, enrolled.c.course_id == Course.id)
        .where(Course.instructor_id == current_user.id)
        .order_by(Course.created_at.desc(), Course.id.desc())
    )
    base_url = public_base_url(request)
    courses = [
        course_card(
            row.Course,
            base_url,
            category_name=row.category_name,
            enrolled_students_count=as_int(row.enrolled_students_count),
        )
        for row in result.all()
    ]
    return {"courses": courses}


@router.get("/courses/{course_id}/enrolled-students")
async def list_enrolled_students(
    course_id: int,
    current_user: CurrentUser = Depends(require_instructor),
    db: AsyncSession = Depends(get_db),
):
    await get_owned_course(db, course_id, current_user.id)

    result = await db.execute(
        select(User.id, User.name, User.email, Enrollment)
        .join(Enrollment, Enrollment.user_id == User.id)
        .where(Enrollment.course_id == course_id)
        .order_by(User.name, User.id)
    )
    students = [
        {
            "student_id": row.id,
            "name": row.name,
            "email": row.email,
            "enrollment_date": row.Enrollment.enrollment_date.isoformat() if row.Enrollment.enrollment_date else None,
            "progress_percentage": float(row.Enrollment.progress_percentage or 0),
            "enrollment_status": row.Enrollment.status.value,
        }
        for row in result.all()
    ]
    return {"students": students}


@router.post("/courses", status_code=status.HTTP_201_CREATED)
async def create_course(
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(
        RequestValidator(CourseCreateRules, files={"thumbnail": AssetKind.thumbnail})
    ),
    db: AsyncSession = Depends(get_db),
):
    """Create a published course owned by the caller (optional "thumbnail" upload)."""
    data: CourseCreateRules = form.data
    thumbnail = form.upload("thumbnail")

    if not await _category_exists(db, data.category_id):
        raise BadRequestError("Invalid category ID")

    slug = slugify(data.slug or data.title)
    if not slug:
        raise BadRequestError("A slug could not be derived from the title")
    if await _slug_taken(db, slug):
        raise ConflictError("Course with this slug already exists", code=ErrorCode.DUPLICATE_SLUG)

    course = Course(
        title=data.title,
        slug=slug,
        short_description=data.short_description,
        description=data.description,
        instructor_id=current_user.id,
        category_id=data.category_id,
        price=data.price,
        discount_price=data.discount_price,
        thumbnail=thumbnail.filename if thumbnail else None,
        trailer_video=data.trailer_video,
        status=CourseStatus.published,
        difficulty=data.difficulty,
        duration_hours=data.duration_hours,
        language=data.language,
        requirements=data.requirements,
        what_you_learn=data.what_you_learn,
        target_audience=data.target_audience,
        is_featured=data.is_featured,
    )
    db.add(course)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Course with this slug already exists", code=ErrorCode.DUPLICATE_SLUG)
    form.keep_uploads()

    logger.info(f"Instructor {current_user.id} created course {course.id} ({slug})")
    return {"message": "Course created successfully", "courseId": course.id, "slug": slug}


@router.put("/courses/{course_id}")
async def update_course(
    course_id: int,
    request: Request,
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(
        RequestValidator(CourseUpdateRules, files={"thumbnail": AssetKind.thumbnail})
    ),
    db: AsyncSession = Depends(get_db),
):
    """
    Partial update of an owned course.

    A new "thumbnail" replaces the stored one; clear_thumbnail=true removes it.
    """
    data: CourseUpdateRules = form.data
    thumbnail = form.upload("thumbnail")
    course = await get_owned_course(db, course_id, current_user.id)

    updates = data.provided()
    updates.pop("clear_thumbnail", None)
    if not updates and thumbnail is None and not data.clear_thumbnail:
        raise BadRequestError("No fields to update", code=ErrorCode.NO_FIELDS)

    if "category_id" in updates and not await _category_exists(db, updates["category_id"]):
        raise BadRequestError("Invalid category ID")

    if "slug" in updates:
        updates["slug"] = slugify(updates["slug"] or "")
        if not updates["slug"]:
            raise BadRequestError("Slug must contain letters or digits")
        if await _slug_taken(db, updates["slug"], exclude_course_id=course.id):
            raise ConflictError("Course with this slug already exists", code=ErrorCode.DUPLICATE_SLUG)

    for field, value in updates.items():
        setattr(course, field, value)

    old_thumbnail = course.thumbnail
    remove_old = False
    if thumbnail is not None:
        course.thumbnail = thumbnail.filename
        remove_old = True
    elif data.clear_thumbnail:
        course.thumbnail = None
        remove_old = True

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Course with this slug already exists", code=ErrorCode.DUPLICATE_SLUG)
    form.keep_uploads()

    if remove_old and old_thumbnail:
        form.storage.delete(AssetKind.thumbnail, old_thumbnail)

    await db.refresh(course)
    logger.info(f"Instructor {current_user.id} updated course {course.id}")
    return {"message": "Course updated successfully", "course": course_card(course, public_base_url(request))}


# ================= MATERIALS =================

def _pick_material_file(form: ValidatedRequest, material_type: MaterialType) -> Optional[StoredFile]:
    """
    The upload matching the material type. A file of the other kind is
    rejected: videos carry a video, everything else a document.
    """
    video = form.upload("video")
    document = form.upload("document")
    if material_type == MaterialType.video:
        if document is not None:
            raise BadRequestError("Video materials take a video file, not a document", code=ErrorCode.INVALID_FILE)
        return video
    if video is not None:
        raise BadRequestError("Only video materials can carry a video file", code=ErrorCode.INVALID_FILE)
    return document


@router.post("/courses/{course_id}/materials", status_code=status.HTTP_201_CREATED)
async def create_material(
    course_id: int,
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(RequestValidator(MaterialCreateRules, files=MATERIAL_FILES)),
    db: AsyncSession = Depends(get_db),
):
    """Add a material to an owned course (multipart "video" / "document")."""
    data: MaterialCreateRules = form.data
    await get_owned_course(db, course_id, current_user.id)

    stored = _pick_material_file(form, data.type)
    if data.type == MaterialType.video and stored is None:
        raise BadRequestError("Video file is required for video materials")
    if data.type == MaterialType.document and stored is None and not data.content:
        raise BadRequestError("Document file or content is required for document materials")

    material = CourseMaterial(
        course_id=course_id,
        title=data.title,
        type=data.type,
        content=data.content,
        file_path=stored.filename if stored else None,
        duration_seconds=data.duration_seconds,
        order_index=data.order_index,
        is_preview=data.is_preview,
    )
    db.add(material)

    await db.commit()
    form.keep_uploads()

    logger.info(f"Instructor {current_user.id} added material {material.id} to course {course_id}")
    return {"message": "Course material added successfully", "materialId": material.id}


async def _get_course_material(db: AsyncSession, course_id: int, material_id: int) -> CourseMaterial:
    result = await db.execute(
        select(CourseMaterial).where(
            CourseMaterial.id == material_id,
            CourseMaterial.course_id == course_id
        )
    )
    material = result.scalar_one_or_none()
    if material is None:
        raise NotFoundError(
            "Material",
            message="Material not found or you are not the instructor.",
            code=ErrorCode.MATERIAL_NOT_FOUND
        )
    return material


@router.put("/courses/{course_id}/materials/{material_id}")
async def update_material(
    course_id: int,
    material_id: int,
    request: Request,
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(RequestValidator(MaterialUpdateRules, files=MATERIAL_FILES)),
    db: AsyncSession = Depends(get_db),
):
    """
    Partial material update.

    The stored file is deleted when a new file arrives, when
    clear_content_and_file=true, or when the type changes.
    """
    data: MaterialUpdateRules = form.data
    await get_owned_course(db, course_id, current_user.id)
    material = await _get_course_material(db, course_id, material_id)

    updates = data.provided()
    updates.pop("clear_content_and_file", None)
    new_type = updates.get("type", material.type)
    stored = _pick_material_file(form, new_type)

    if not updates and stored is None and not data.clear_content_and_file:
        raise BadRequestError("No fields to update", code=ErrorCode.NO_FIELDS)

    old_type = material.type
    old_file = material.file_path
    remove_old = False

    for field, value in updates.items():
        setattr(material, field, value)

    if data.clear_content_and_file:
        material.content = None
        material.file_path = None
        remove_old = True
    if stored is not None:
        material.file_path = stored.filename
        remove_old = True
    elif new_type != old_type and old_file:
        material.file_path = None
        remove_old = True

    if material.type == MaterialType.video and not material.file_path:
        await db.rollback()
        raise BadRequestError("Video file is required for video materials")
    if material.type == MaterialType.document and not material.file_path and not material.content:
        await db.rollback()
        raise BadRequestError("Document file or content is required for document materials")

    await db.commit()
    form.keep_uploads()

    if remove_old and old_file and old_file != material.file_path:
        form.storage.delete(material_asset_kind(old_type.value), old_file)

    await db.refresh(material)
    logger.info(f"Instructor {current_user.id} updated material {material.id}")

    return {
        "message": "Course material updated successfully",
        "material": material_payload(material, public_base_url(request))
    }


@router.delete("/courses/{course_id}/materials/{material_id}")
async def delete_material(
    course_id: int,
    material_id: int,
    current_user: CurrentUser = Depends(require_instructor),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Delete the row, then its file."""
    await get_owned_course(db, course_id, current_user.id)
    material = await _get_course_material(db, course_id, material_id)
    file_kind = material_asset_kind(material.type.value)
    file_path = material.file_path

    await db.execute(delete(CourseMaterial).where(CourseMaterial.id == material.id))
    await db.commit()

    storage.delete(file_kind, file_path)
    logger.info(f"Instructor {current_user.id} deleted material {material_id} from course {course_id}")
    return {"message": "Course material deleted successfully"}
