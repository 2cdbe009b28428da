"""
backend/tests/test_progress.py
Video progress merging, course completion and certificate eligibility
"""
import pytest
from sqlalchemy import select

from backend.errors import ErrorCode
from backend.orm.course import MaterialType
from backend.orm.enrollment import Enrollment, EnrollmentStatus
from backend.orm.quiz import Quiz
from backend.services.progress_service import watch_percentage
from backend.tests.factories import auth_headers, create_material


async def report(client, user, material_id, seconds):
    return await client.post(
        f"/api/materials/{material_id}/progress",
        json={"watched_duration_seconds": seconds},
        headers=auth_headers(user),
    )


async def load_enrollment(database, user_id, course_id):
    async with database.session_factory() as s:
        result = await s.execute(
            select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
        )
        return result.scalar_one()


class TestWatchPercentage:

    @pytest.mark.parametrize("watched, duration, expected", [
        (50, 100, 50.0),
        (250, 100, 100.0),
        (10, 0, 0.0),
        (10, None, 0.0),
    ])
    def test_percentage(self, watched, duration, expected):
        assert watch_percentage(watched, duration) == expected


class TestVideoProgress:

    async def test_reports_only_ever_grow(self, client, database, course, enrolled_student):
        video = await create_material(database, course.id)

        first = await report(client, enrolled_student, video.id, 60)
        assert first.json()["progress_percentage"] == 60.0
        assert first.json()["completed"] is False

        late = await report(client, enrolled_student, video.id, 20)
        assert late.json()["progress_percentage"] == 60.0

        response = await client.get(f"/api/courses/{course.id}/progress", headers=auth_headers(enrolled_student))
        progress = response.json()["progress"]
        assert progress == [{
            "video_id": video.id,
            "watched_duration_seconds": 60,
            "progress_percentage": 60.0,
            "completed": False,
        }]

    async def test_completion_is_sticky(self, client, database, course, enrolled_student):
        video = await create_material(database, course.id)

        reached = await report(client, enrolled_student, video.id, 80)
        assert reached.json()["completed"] is True

        rewatch = await report(client, enrolled_student, video.id, 5)
        assert rewatch.json()["completed"] is True

    async def test_enrollment_completes_when_every_video_is_done(self, client, database, course, enrolled_student):
        first = await create_material(database, course.id, title="Part one")
        second = await create_material(database, course.id, title="Part two", order_index=1)

        await report(client, enrolled_student, first.id, 100)
        enrollment = await load_enrollment(database, enrolled_student.id, course.id)
        assert float(enrollment.progress_percentage) == 50.0
        assert enrollment.status == EnrollmentStatus.in_progress

        await report(client, enrolled_student, second.id, 90)
        enrollment = await load_enrollment(database, enrolled_student.id, course.id)
        assert float(enrollment.progress_percentage) == 100.0
        assert enrollment.status == EnrollmentStatus.completed
        assert enrollment.completed_at is not None

    async def test_documents_do_not_take_progress(self, client, database, course, enrolled_student):
        document = await create_material(database, course.id, material_type=MaterialType.document, content="Notes")
        response = await report(client, enrolled_student, document.id, 10)
        assert response.status_code == 404

    async def test_non_member_is_forbidden(self, client, database, course, other_student):
        video = await create_material(database, course.id)
        response = await report(client, other_student, video.id, 10)
        assert response.status_code == 403
        assert response.json()["code"] == ErrorCode.NOT_COURSE_MEMBER

    async def test_owning_instructor_can_preview_without_enrollment(self, client, database, course, instructor):
        video = await create_material(database, course.id)
        response = await report(client, instructor, video.id, 30)
        assert response.status_code == 200


class TestCertificateStatus:

    async def test_requires_videos_and_passed_quizzes(self, client, database, course, enrolled_student):
        video = await create_material(database, course.id)
        async with database.session_factory() as s:
            s.add(Quiz(course_id=course.id, title="Final check", passing_score=50, max_attempts=3))
            await s.commit()

        url = f"/api/courses/{course.id}/certificate-status"
        await report(client, enrolled_student, video.id, 100)

        status = (await client.get(url, headers=auth_headers(enrolled_student))).json()
        assert status["videos_completed"] == status["videos_total"] == 1
        assert status["quizzes_total"] == 1
        assert status["quizzes_passed"] == 0
        assert status["eligible"] is False
        assert status["course_progress"] == 100.0

    async def test_course_without_content_is_eligible(self, client, course, enrolled_student):
        response = await client.get(
            f"/api/courses/{course.id}/certificate-status", headers=auth_headers(enrolled_student)
        )
        assert response.json()["eligible"] is True

    async def test_instructor_has_no_certificate(self, client, course, instructor):
        response = await client.get(f"/api/courses/{course.id}/certificate-status", headers=auth_headers(instructor))
        assert response.status_code == 403
