"""
backend/tests/test_enrollment.py
Student enrollment and enrolled course listing
"""
from backend.errors import ErrorCode
from backend.orm.course import CourseStatus
from backend.tests.factories import auth_headers, create_course


class TestEnroll:

    async def test_enroll_in_published_course(self, client, student, course):
        response = await client.post(f"/api/student/enroll/{course.id}", headers=auth_headers(student))
        assert response.status_code == 201
        assert response.json()["enrollmentId"]

    async def test_second_enrollment_conflicts(self, client, enrolled_student, course):
        response = await client.post(f"/api/student/enroll/{course.id}", headers=auth_headers(enrolled_student))
        assert response.status_code == 409
        assert response.json()["code"] == ErrorCode.ALREADY_ENROLLED

    async def test_draft_course_cannot_be_joined(self, client, database, instructor, student):
        draft = await create_course(database, instructor.id, title="Work In Progress", status=CourseStatus.draft)
        response = await client.post(f"/api/student/enroll/{draft.id}", headers=auth_headers(student))
        assert response.status_code == 404
        assert response.json()["code"] == ErrorCode.COURSE_NOT_FOUND

    async def test_instructors_cannot_enroll(self, client, other_instructor, course):
        response = await client.post(f"/api/student/enroll/{course.id}", headers=auth_headers(other_instructor))
        assert response.status_code == 403


class TestEnrolledCourses:

    async def test_lists_enrollment_details(self, client, enrolled_student, course):
        response = await client.get("/api/student/courses", headers=auth_headers(enrolled_student))
        assert response.status_code == 200
        courses = response.json()["enrolledCourses"]
        assert len(courses) == 1
        assert courses[0]["id"] == course.id
        assert courses[0]["instructor_name"] == "Ivy Instructor"
        assert courses[0]["progress_percentage"] == 0.0
        assert courses[0]["enrollment_status"] == "in_progress"

    async def test_other_students_courses_are_not_listed(self, client, enrolled_student, other_student):
        response = await client.get("/api/student/courses", headers=auth_headers(other_student))
        assert response.json()["enrolledCourses"] == []
