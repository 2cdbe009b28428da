"""
backend/services/course_summary.py
Per-course aggregate counts and course / material JSON shaping
"""
from typing import Any, Dict, Optional

from sqlalchemy import case, func, select

from backend.orm.course import Course, CourseMaterial, MaterialType
from backend.orm.enrollment import Enrollment
from backend.services.storage import AssetKind, asset_url, material_file_url


def enrollment_counts():
    """Subquery: course_id -> number of enrollments"""
    return (
        select(Enrollment.course_id.label("course_id"), func.count(Enrollment.id).label("total"))
        .group_by(Enrollment.course_id)
        .subquery()
    )


def material_counts():
    """Subquery: course_id -> number of materials, number of video materials"""
    return (
        select(
            CourseMaterial.course_id.label("course_id"),
            func.count(CourseMaterial.id).label("total"),
            func.sum(case((CourseMaterial.type == MaterialType.video, 1), else_=0)).label("videos"),
        )
        .group_by(CourseMaterial.course_id)
        .subquery()
    )


def course_card(course: Course, base_url: str, **extra: Any) -> Dict[str, Any]:
    """Course JSON with its thumbnail URL plus any joined/aggregated columns"""
    data = course.to_dict()
    data["thumbnail_url"] = asset_url(base_url, AssetKind.thumbnail, course.thumbnail)
    data.update(extra)
    return data


def material_payload(
    material: CourseMaterial,
    base_url: str,
    include_body: bool = True,
) -> Dict[str, Any]:
    """
    Material JSON with its file URL.

    include_body=False strips content and file (outline of a locked material).
    """
    data = material.to_dict()
    if include_body:
        data["file_url"] = material_file_url(base_url, data["type"], material.file_path)
    else:
        data["content"] = None
        data["file_path"] = None
        data["file_url"] = None
    return data


def as_int(value: Optional[Any]) -> int:
    return int(value or 0)
