"""
backend/tests/test_instructor.py
Instructor course and material management
"""
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.errors import ErrorCode
from backend.orm.course import Course, CourseMaterial
from backend.services.storage import AssetKind
from backend.tests.factories import auth_headers, create_material, enroll


def course_form(**overrides):
    data = {
        "title": "Data Analysis with Pandas",
        "short_description": "Wrangle tabular data quickly",
        "description": "From loading CSV files to grouped aggregations and charts.",
        "category_id": "1",
        "price": "29.90",
        "difficulty": "intermediate",
        "language": "English",
    }
    data.update(overrides)
    return data


class TestCreateCourse:

    async def test_slug_is_derived_from_title(self, client, instructor, session):
        response = await client.post(
            "/api/instructor/courses", data=course_form(), headers=auth_headers(instructor)
        )
        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "data-analysis-with-pandas"

        course = await session.get(Course, body["courseId"])
        assert course.instructor_id == instructor.id
        assert course.status.value == "published"

    async def test_duplicate_slug_conflicts(self, client, instructor, course):
        response = await client.post(
            "/api/instructor/courses",
            data=course_form(slug=course.slug),
            headers=auth_headers(instructor),
        )
        assert response.status_code == 409
        assert response.json()["code"] == ErrorCode.DUPLICATE_SLUG

    async def test_students_cannot_create_courses(self, client, student):
        response = await client.post(
            "/api/instructor/courses", data=course_form(), headers=auth_headers(student)
        )
        assert response.status_code == 403

    async def test_unknown_category_discards_thumbnail(self, client, instructor, storage):
        response = await client.post(
            "/api/instructor/courses",
            data=course_form(category_id="999"),
            files={"thumbnail": ("cover.jpg", b"jpeg bytes", "image/jpeg")},
            headers=auth_headers(instructor),
        )
        assert response.status_code == 400
        assert list((storage.root / "course_thumbnails").iterdir()) == []

    async def test_unauthenticated_upload_is_not_stored(self, client, storage):
        response = await client.post(
            "/api/instructor/courses",
            data=course_form(),
            files={"thumbnail": ("cover.jpg", b"jpeg bytes", "image/jpeg")},
        )
        assert response.status_code == 401
        assert list((storage.root / "course_thumbnails").iterdir()) == []

    async def test_failed_commit_discards_thumbnail(self, server_error_client, instructor, storage, monkeypatch):
        async def failing_commit(self):
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(AsyncSession, "commit", failing_commit)
        response = await server_error_client.post(
            "/api/instructor/courses",
            data=course_form(),
            files={"thumbnail": ("cover.jpg", b"jpeg bytes", "image/jpeg")},
            headers=auth_headers(instructor),
        )
        assert response.status_code == 500
        assert list((storage.root / "course_thumbnails").iterdir()) == []


class TestUpdateCourse:

    async def test_partial_update(self, client, instructor, course):
        response = await client.put(
            f"/api/instructor/courses/{course.id}",
            json={"price": 10, "is_featured": True},
            headers=auth_headers(instructor),
        )
        assert response.status_code == 200
        updated = response.json()["course"]
        assert updated["price"] == 10.0
        assert updated["is_featured"] is True
        assert updated["title"] == course.title

    async def test_empty_update_is_rejected(self, client, instructor, course):
        response = await client.put(
            f"/api/instructor/courses/{course.id}", json={}, headers=auth_headers(instructor)
        )
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.NO_FIELDS

    async def test_other_instructor_gets_not_found(self, client, other_instructor, course):
        response = await client.put(
            f"/api/instructor/courses/{course.id}",
            json={"price": 1},
            headers=auth_headers(other_instructor),
        )
        assert response.status_code == 404


class TestInstructorListings:

    async def test_own_courses_with_enrollment_counts(self, client, database, instructor, course, student):
        await enroll(database, student.id, course.id)

        response = await client.get("/api/instructor/courses", headers=auth_headers(instructor))
        courses = response.json()["courses"]
        assert len(courses) == 1
        assert courses[0]["enrolled_students_count"] == 1

    async def test_enrolled_students(self, client, instructor, course, enrolled_student):
        response = await client.get(
            f"/api/instructor/courses/{course.id}/enrolled-students", headers=auth_headers(instructor)
        )
        students = response.json()["students"]
        assert [s["email"] for s in students] == [enrolled_student.email]


class TestMaterials:

    async def test_video_material_requires_a_video(self, client, instructor, course):
        response = await client.post(
            f"/api/instructor/courses/{course.id}/materials",
            data={"title": "Lesson one", "type": "video"},
            headers=auth_headers(instructor),
        )
        assert response.status_code == 400

    async def test_video_upload_is_stored(self, client, instructor, course, storage, session):
        response = await client.post(
            f"/api/instructor/courses/{course.id}/materials",
            data={"title": "Lesson one", "type": "video", "duration_seconds": "120"},
            files={"video": ("lesson.mp4", b"fake video", "video/mp4")},
            headers=auth_headers(instructor),
        )
        assert response.status_code == 201
        material = await session.get(CourseMaterial, response.json()["materialId"])
        assert storage.path_for(AssetKind.video, material.file_path).exists()

    async def test_document_with_inline_content(self, client, instructor, course):
        response = await client.post(
            f"/api/instructor/courses/{course.id}/materials",
            json={"title": "Reading list", "type": "document", "content": "Chapter 1 to 3"},
            headers=auth_headers(instructor),
        )
        assert response.status_code == 201

    async def test_replacing_file_deletes_old_one(self, client, instructor, course, storage):
        headers = auth_headers(instructor)
        created = await client.post(
            f"/api/instructor/courses/{course.id}/materials",
            data={"title": "Slides", "type": "document"},
            files={"document": ("a.pdf", b"%PDF-1", "application/pdf")},
            headers=headers,
        )
        material_id = created.json()["materialId"]
        old_files = list((storage.root / "course_documents").iterdir())
        assert len(old_files) == 1

        updated = await client.put(
            f"/api/instructor/courses/{course.id}/materials/{material_id}",
            data={"title": "Slides v2"},
            files={"document": ("b.pdf", b"%PDF-2", "application/pdf")},
            headers=headers,
        )
        assert updated.status_code == 200
        assert not old_files[0].exists()
        assert updated.json()["material"]["title"] == "Slides v2"

    async def test_delete_removes_row_and_file(self, client, instructor, course, storage, database):
        video_dir = storage.root / "course_videos"
        (video_dir / "video-old.mp4").write_bytes(b"x")
        material = await create_material(database, course.id, file_path="video-old.mp4")

        response = await client.delete(
            f"/api/instructor/courses/{course.id}/materials/{material.id}",
            headers=auth_headers(instructor),
        )
        assert response.status_code == 200
        assert not (video_dir / "video-old.mp4").exists()

        async with database.session_factory() as s:
            remaining = await s.execute(select(CourseMaterial).where(CourseMaterial.id == material.id))
            assert remaining.scalar_one_or_none() is None

    async def test_unknown_material(self, client, instructor, course):
        response = await client.delete(
            f"/api/instructor/courses/{course.id}/materials/9999", headers=auth_headers(instructor)
        )
        assert response.status_code == 404
        assert response.json()["code"] == ErrorCode.MATERIAL_NOT_FOUND
