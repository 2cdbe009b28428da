"""
backend/tests/test_notifications.py
Admin broadcasts and the notification inbox
"""
from backend.orm.user import UserRole, UserStatus
from backend.tests.factories import auth_headers, create_user


async def broadcast(client, admin, **payload):
    body = {"title": "Maintenance", "message": "Back online at noon"}
    body.update(payload)
    return await client.post("/api/admin/notifications/broadcast", json=body, headers=auth_headers(admin))


class TestBroadcast:

    async def test_reaches_every_active_user(self, client, database, admin, student, instructor):
        await create_user(database, UserRole.student, "dormant@learnhub.io", status=UserStatus.inactive)

        response = await broadcast(client, admin)
        assert response.status_code == 200
        assert response.json()["sent_count"] == 3

    async def test_target_roles(self, client, admin, student, other_student, instructor):
        response = await broadcast(client, admin, target_roles=["student"])
        assert response.json() == {"message": "Notification sent to 2 user(s) successfully.", "sent_count": 2}

        inbox = await client.get("/api/notifications", headers=auth_headers(instructor))
        assert inbox.json()["notifications"] == []

    async def test_no_recipients(self, client, admin):
        response = await broadcast(client, admin, target_roles=["parent"])
        assert response.status_code == 400

    async def test_students_cannot_broadcast(self, client, student):
        response = await broadcast(client, student)
        assert response.status_code == 403


class TestInbox:

    async def test_unread_count_and_mark_read(self, client, admin, student):
        await broadcast(client, admin, target_roles=["student"])
        await broadcast(client, admin, title="Reminder", target_roles=["student"])
        headers = auth_headers(student)

        inbox = (await client.get("/api/notifications", headers=headers)).json()
        assert inbox["unread_count"] == 2
        assert [n["title"] for n in inbox["notifications"]] == ["Reminder", "Maintenance"]

        marked = await client.put(f"/api/notifications/{inbox['notifications'][0]['id']}/read", headers=headers)
        assert marked.status_code == 200

        unread = (await client.get("/api/notifications?unread_only=true", headers=headers)).json()
        assert unread["unread_count"] == 1
        assert [n["title"] for n in unread["notifications"]] == ["Maintenance"]

    async def test_cannot_mark_someone_elses(self, client, admin, student, other_student):
        await broadcast(client, admin, target_roles=["student"])
        mine = (await client.get("/api/notifications", headers=auth_headers(student))).json()["notifications"]
        notification_id = next(n["id"] for n in mine)

        response = await client.put(
            f"/api/notifications/{notification_id}/read", headers=auth_headers(other_student)
        )
        assert response.status_code == 404
