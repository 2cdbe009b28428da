"""
backend/services/admin_service.py
Back-office aggregation and export

All figures are computed fresh per request with plain aggregate queries.
"""
import csv
import io
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.orm.category import Category
from backend.orm.course import Course, CourseStatus
from backend.orm.enrollment import Enrollment, EnrollmentStatus
from backend.orm.user import User, UserRole, UserStatus
from backend.services.course_summary import enrollment_counts, material_counts

logger = logging.getLogger(__name__)

ANALYTICS_PERIODS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}

USER_EXPORT_HEADER = [
    "ID", "Name", "Email", "Role", "Status", "Phone", "Country", "Created At",
    "Last Login", "Email Verified", "Created Courses", "Enrolled Courses",
]

COURSE_EXPORT_HEADER = [
    "ID", "Title", "Slug", "Price", "Discount Price", "Status", "Difficulty",
    "Duration Hours", "Language", "Is Featured", "Views", "Likes", "Created At",
    "Updated At", "Instructor Name", "Instructor Email", "Category",
    "Enrolled Students", "Materials Count",
]


def _iso(value):
    return value.isoformat() if value else None


def _float(value):
    return float(value) if value is not None else None


async def _count(db: AsyncSession, stmt) -> int:
    result = await db.execute(stmt)
    return result.scalar() or 0


# ================= STATISTICS =================

async def platform_statistics(db: AsyncSession) -> Dict[str, Any]:
    """Headline counts for the admin dashboard; deleted users are excluded."""
    not_deleted = User.status != UserStatus.deleted

    users = {"total": await _count(db, select(func.count(User.id)).where(not_deleted))}
    for role in (UserRole.admin, UserRole.instructor, UserRole.student, UserRole.parent):
        users[role.value] = await _count(
            db, select(func.count(User.id)).where(not_deleted, User.role == role)
        )

    courses = {"total": await _count(db, select(func.count(Course.id)))}
    for status in (CourseStatus.published, CourseStatus.draft, CourseStatus.archived):
        courses[status.value] = await _count(
            db, select(func.count(Course.id)).where(Course.status == status)
        )

    enrollments = {
        "total": await _count(db, select(func.count(Enrollment.id))),
        "active": await _count(
            db, select(func.count(Enrollment.id)).where(Enrollment.status == EnrollmentStatus.in_progress)
        ),
        "completed": await _count(
            db, select(func.count(Enrollment.id)).where(Enrollment.status == EnrollmentStatus.completed)
        ),
    }

    revenue_result = await db.execute(
        select(func.coalesce(func.sum(Course.price), 0))
        .select_from(Enrollment)
        .join(Course, Course.id == Enrollment.course_id)
        .where(Enrollment.status.in_([EnrollmentStatus.in_progress, EnrollmentStatus.completed]))
    )
    revenue = float(revenue_result.scalar() or 0)

    return {
        "users": users,
        "courses": courses,
        "enrollments": enrollments,
        "revenue": {"total": f"{revenue:.2f}"},
    }


# ================= ANALYTICS =================

def period_start(period: str) -> datetime:
    """Midnight (UTC) of the first day covered by the period; unknown periods mean 7d."""
    days = ANALYTICS_PERIODS.get(period, ANALYTICS_PERIODS["7d"])
    today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    return today - timedelta(days=days)


async def _daily_counts(db: AsyncSession, column, since: datetime) -> List[Dict[str, Any]]:
    day = func.date(column)
    result = await db.execute(
        select(day.label("date"), func.count().label("total"))
        .where(column >= since)
        .group_by(day)
        .order_by(day)
    )
    return [{"date": str(row.date), "count": row.total} for row in result.all()]


async def platform_analytics(db: AsyncSession, period: str = "7d") -> Dict[str, Any]:
    """Daily growth series for the period plus top courses and instructors"""
    since = period_start(period)

    enrollment_count = func.count(Enrollment.id).label("enrollment_count")
    top_courses_result = await db.execute(
        select(Course.id, Course.title, Course.price, User.name.label("instructor_name"), enrollment_count)
        .join(User, User.id == Course.instructor_id)
        .outerjoin(Enrollment, Enrollment.course_id == Course.id)
        .where(Course.status == CourseStatus.published)
        .group_by(Course.id, Course.title, Course.price, User.name)
        .order_by(desc("enrollment_count"))
        .limit(10)
    )
    top_courses = [
        {
            "id": row.id,
            "title": row.title,
            "price": _float(row.price),
            "instructor_name": row.instructor_name,
            "enrollment_count": row.enrollment_count,
        }
        for row in top_courses_result.all()
    ]

    course_count = func.count(func.distinct(Course.id)).label("course_count")
    total_enrollments = func.count(Enrollment.id).label("total_enrollments")
    top_instructors_result = await db.execute(
        select(User.id, User.name, User.email, course_count, total_enrollments)
        .outerjoin(Course, Course.instructor_id == User.id)
        .outerjoin(Enrollment, Enrollment.course_id == Course.id)
        .where(User.role == UserRole.instructor)
        .group_by(User.id, User.name, User.email)
        .order_by(desc("total_enrollments"))
        .limit(10)
    )
    top_instructors = [
        {
            "id": row.id,
            "name": row.name,
            "email": row.email,
            "course_count": row.course_count,
            "total_enrollments": row.total_enrollments,
        }
        for row in top_instructors_result.all()
    ]

    return {
        "newUsers": await _daily_counts(db, User.created_at, since),
        "newCourses": await _daily_counts(db, Course.created_at, since),
        "newEnrollments": await _daily_counts(db, Enrollment.enrollment_date, since),
        "topCourses": top_courses,
        "topInstructors": top_instructors,
    }


# ================= EXPORTS =================

async def export_users(db: AsyncSession) -> List[Dict[str, Any]]:
    """Non-deleted users with their created / enrolled course counts, newest first"""
    created = (
        select(Course.instructor_id.label("user_id"), func.count(Course.id).label("total"))
        .group_by(Course.instructor_id)
        .subquery()
    )
    enrolled = (
        select(Enrollment.user_id.label("user_id"), func.count(Enrollment.id).label("total"))
        .group_by(Enrollment.user_id)
        .subquery()
    )

    result = await db.execute(
        select(
            User,
            func.coalesce(created.c.total, 0).label("created_courses"),
            func.coalesce(enrolled.c.total, 0).label("enrolled_courses"),
        )
        .outerjoin(created, created.c.user_id == User.id)
        .outerjoin(enrolled, enrolled.c.user_id == User.id)
        .where(User.status != UserStatus.deleted)
        .order_by(User.created_at.desc(), User.id.desc())
    )

    rows = []
    for user, created_courses, enrolled_courses in result.all():
        rows.append({
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role.value,
            "status": user.status.value,
            "phone": user.phone,
            "country": user.country,
            "created_at": _iso(user.created_at),
            "last_login": _iso(user.last_login),
            "email_verified": bool(user.email_verified),
            "created_courses": created_courses,
            "enrolled_courses": enrolled_courses,
        })
    return rows


async def export_courses(db: AsyncSession) -> List[Dict[str, Any]]:
    """Every course with instructor, category and enrollment / material counts, newest first"""
    enrolled = enrollment_counts()
    materials = material_counts()

    result = await db.execute(
        select(
            Course,
            User.name.label("instructor_name"),
            User.email.label("instructor_email"),
            Category.name.label("category_name"),
            func.coalesce(enrolled.c.total, 0).label("enrolled_students"),
            func.coalesce(materials.c.total, 0).label("materials_count"),
        )
        .join(User, User.id == Course.instructor_id)
        .join(Category, Category.id == Course.category_id)
        .outerjoin(enrolled, enrolled.c.course_id == Course.id)
        .outerjoin(materials, materials.c.course_id == Course.id)
        .order_by(Course.created_at.desc(), Course.id.desc())
    )

    rows = []
    for course, instructor_name, instructor_email, category_name, enrolled_students, materials_count in result.all():
        rows.append({
            "id": course.id,
            "title": course.title,
            "slug": course.slug,
            "price": _float(course.price),
            "discount_price": _float(course.discount_price),
            "status": course.status.value,
            "difficulty": course.difficulty.value,
            "duration_hours": _float(course.duration_hours),
            "language": course.language,
            "is_featured": bool(course.is_featured),
            "views_count": course.views_count or 0,
            "likes_count": course.likes_count or 0,
            "created_at": _iso(course.created_at),
            "updated_at": _iso(course.updated_at),
            "instructor_name": instructor_name,
            "instructor_email": instructor_email,
            "category_name": category_name,
            "enrolled_students": enrolled_students,
            "materials_count": materials_count,
        })
    return rows


def _csv(header: List[str], records: List[List[Any]]) -> str:
    buffer = io.StringIO()
    # Header is plain; every data field is quoted
    buffer.write(",".join(header) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for record in records:
        writer.writerow(["" if value is None else value for value in record])
    return buffer.getvalue()


def users_to_csv(rows: List[Dict[str, Any]]) -> str:
    return _csv(USER_EXPORT_HEADER, [
        [
            row["id"], row["name"], row["email"], row["role"], row["status"],
            row["phone"], row["country"], row["created_at"], row["last_login"],
            row["email_verified"], row["created_courses"], row["enrolled_courses"],
        ]
        for row in rows
    ])


def courses_to_csv(rows: List[Dict[str, Any]]) -> str:
    return _csv(COURSE_EXPORT_HEADER, [
        [
            row["id"], row["title"], row["slug"], row["price"], row["discount_price"],
            row["status"], row["difficulty"], row["duration_hours"], row["language"],
            row["is_featured"], row["views_count"], row["likes_count"], row["created_at"],
            row["updated_at"], row["instructor_name"], row["instructor_email"],
            row["category_name"], row["enrolled_students"], row["materials_count"],
        ]
        for row in rows
    ])
