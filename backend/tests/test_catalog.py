"""
backend/tests/test_catalog.py
Public catalog and material visibility
"""
from backend.orm.course import CourseStatus, MaterialType
from backend.tests.factories import auth_headers, create_course, create_material, enroll


class TestCategories:

    async def test_seeded_categories_are_listed(self, client):
        response = await client.get("/api/categories")
        assert response.status_code == 200
        categories = response.json()["categories"]
        assert len(categories) == 6
        assert all(set(category) == {"id", "name"} for category in categories)
        assert all(category["name"] for category in categories)


class TestCourseListing:

    async def test_only_published_courses_are_listed(self, client, database, instructor):
        await create_course(database, instructor.id, title="Published One")
        await create_course(database, instructor.id, title="Draft One", status=CourseStatus.draft)

        response = await client.get("/api/courses")
        titles = [course["title"] for course in response.json()["courses"]]
        assert titles == ["Published One"]

    async def test_featured_first_then_most_enrolled(self, client, database, instructor, student, other_student):
        quiet = await create_course(database, instructor.id, title="Quiet Course")
        popular = await create_course(database, instructor.id, title="Popular Course")
        await create_course(database, instructor.id, title="Featured Course", is_featured=True)
        await enroll(database, student.id, popular.id)
        await enroll(database, other_student.id, popular.id)
        await enroll(database, student.id, quiet.id)

        courses = (await client.get("/api/courses")).json()["courses"]
        assert [course["title"] for course in courses] == ["Featured Course", "Popular Course", "Quiet Course"]
        assert courses[1]["enrolled_students"] == 2
        assert courses[1]["instructor_name"] == "Ivy Instructor"

    async def test_listing_is_capped_at_nine(self, client, database, instructor):
        for index in range(11):
            await create_course(database, instructor.id, title=f"Course Number {index}")

        courses = (await client.get("/api/courses")).json()["courses"]
        assert len(courses) == 9


class TestCourseDetails:

    async def test_outline_hides_locked_material_bodies(self, client, database, course):
        await create_material(database, course.id, title="Free preview", is_preview=True, file_path="video-1.mp4")
        await create_material(
            database, course.id, title="Members only",
            material_type=MaterialType.document, content="Secret notes", order_index=1
        )

        response = await client.get(f"/api/courses/{course.slug}")
        assert response.status_code == 200
        detail = response.json()["course"]
        assert detail["total_materials"] == 2
        assert detail["total_videos"] == 1

        preview, locked = detail["materials"]
        assert preview["file_url"].endswith("/uploads/course_videos/video-1.mp4")
        assert locked["title"] == "Members only"
        assert locked["content"] is None
        assert locked["file_url"] is None

    async def test_draft_course_is_not_found(self, client, database, instructor):
        draft = await create_course(database, instructor.id, title="Hidden Draft", status=CourseStatus.draft)
        response = await client.get(f"/api/courses/{draft.slug}")
        assert response.status_code == 404
        assert response.json()["message"] == "Course not found or not published"


class TestMaterials:

    async def test_non_member_sees_only_previews(self, client, database, course, student):
        await create_material(database, course.id, title="Free preview", is_preview=True)
        await create_material(database, course.id, title="Members only", order_index=1)

        response = await client.get(f"/api/courses/{course.id}/materials", headers=auth_headers(student))
        assert response.status_code == 200
        assert [m["title"] for m in response.json()["materials"]] == ["Free preview"]

    async def test_enrolled_student_sees_everything(self, client, database, course, enrolled_student):
        await create_material(database, course.id, title="Free preview", is_preview=True)
        await create_material(database, course.id, title="Members only", order_index=1)

        response = await client.get(f"/api/courses/{course.id}/materials", headers=auth_headers(enrolled_student))
        assert [m["title"] for m in response.json()["materials"]] == ["Free preview", "Members only"]

    async def test_owning_instructor_sees_everything(self, client, database, course, instructor):
        await create_material(database, course.id, title="Members only")

        response = await client.get(f"/api/courses/{course.id}/materials", headers=auth_headers(instructor))
        assert len(response.json()["materials"]) == 1

    async def test_materials_require_login(self, client, course):
        response = await client.get(f"/api/courses/{course.id}/materials")
        assert response.status_code == 401
