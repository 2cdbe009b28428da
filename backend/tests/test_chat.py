"""
backend/tests/test_chat.py
Course chat between instructor and enrolled students
"""
from backend.tests.factories import auth_headers


class TestCourseChat:

    async def test_members_exchange_messages_in_order(self, client, course, instructor, enrolled_student):
        url = f"/api/courses/{course.id}/chat/messages"
        first = await client.post(url, json={"message_content": "Welcome everyone"}, headers=auth_headers(instructor))
        assert first.status_code == 201
        await client.post(url, json={"message_content": "Thanks!"}, headers=auth_headers(enrolled_student))

        response = await client.get(url, headers=auth_headers(enrolled_student))
        messages = response.json()["messages"]
        assert [m["message_content"] for m in messages] == ["Welcome everyone", "Thanks!"]
        assert messages[0]["user_role"] == "instructor"
        assert messages[1]["user_name"] == "Sam Student"

    async def test_blank_message_is_rejected(self, client, course, enrolled_student):
        response = await client.post(
            f"/api/courses/{course.id}/chat/messages",
            json={"message_content": ""},
            headers=auth_headers(enrolled_student),
        )
        assert response.status_code == 400

    async def test_outsiders_cannot_read_or_post(self, client, course, other_student):
        url = f"/api/courses/{course.id}/chat/messages"
        assert (await client.get(url, headers=auth_headers(other_student))).status_code == 403
        posted = await client.post(url, json={"message_content": "hi"}, headers=auth_headers(other_student))
        assert posted.status_code == 403

    async def test_unknown_course(self, client, student):
        response = await client.get("/api/courses/9999/chat/messages", headers=auth_headers(student))
        assert response.status_code == 404
