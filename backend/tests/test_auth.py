"""
backend/tests/test_auth.py
Registration, login, profile and email verification
"""
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config.settings import get_settings
from backend.errors import ErrorCode
from backend.orm.user import User, UserRole, UserStatus
from backend.security.rate_limit import limiter
from backend.security.rbac import create_verification_token, decode_token
from backend.tests.factories import PASSWORD, auth_headers, create_user


def registration(**overrides):
    payload = {
        "name": "Nora Newcomer",
        "email": "nora@learnhub.io",
        "password": "secret123",
        "role": "student",
    }
    payload.update(overrides)
    return payload


async def failing_commit(self):
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


class TestRegister:

    async def test_register_creates_account(self, client, session):
        response = await client.post("/auth/register", json=registration(email="Nora@LearnHub.io"))
        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "User registered successfully"

        user = await session.get(User, data["userId"])
        assert user.email == "nora@learnhub.io"
        assert user.password_hash != "secret123"
        assert user.email_verified is False
        assert user.verification_token

    async def test_duplicate_email_conflicts(self, client, student):
        response = await client.post("/auth/register", json=registration(email=student.email))
        assert response.status_code == 409
        assert response.json()["code"] == ErrorCode.DUPLICATE_EMAIL

    async def test_admin_role_cannot_self_register(self, client):
        response = await client.post("/auth/register", json=registration(role="admin"))
        assert response.status_code == 400
        fields = [error["field"] for error in response.json()["details"]["errors"]]
        assert "role" in fields

    async def test_validation_reports_every_field(self, client):
        response = await client.post(
            "/auth/register",
            json={"name": "N", "email": "not-an-email", "password": "123", "role": "student"}
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        fields = {error["field"] for error in body["details"]["errors"]}
        assert {"name", "email", "password"} <= fields

    async def test_rejected_registration_leaves_no_upload(self, client, storage):
        response = await client.post(
            "/auth/register",
            data={"name": "N", "email": "bad", "password": "123", "role": "student"},
            files={"profileImage": ("me.png", b"\x89PNG fake image", "image/png")},
        )
        assert response.status_code == 400
        assert list((storage.root / "profiles").iterdir()) == []

    async def test_multipart_registration_stores_profile_image(self, client, session, storage):
        response = await client.post(
            "/auth/register",
            data=registration(),
            files={"profileImage": ("me.png", b"\x89PNG fake image", "image/png")},
        )
        assert response.status_code == 201

        user = await session.get(User, response.json()["userId"])
        assert user.profile_image
        assert (storage.root / "profiles" / user.profile_image).exists()

    async def test_rate_limited_registration_leaves_no_upload(self, client, storage, monkeypatch):
        monkeypatch.setattr(limiter, "enabled", True)
        monkeypatch.setattr(get_settings(), "AUTH_RATE_LIMIT", "1/minute")
        limiter.reset()
        try:
            first = await client.post(
                "/auth/register",
                data=registration(),
                files={"profileImage": ("me.png", b"\x89PNG fake image", "image/png")},
            )
            second = await client.post(
                "/auth/register",
                data=registration(email="second@learnhub.io"),
                files={"profileImage": ("me.png", b"\x89PNG fake image", "image/png")},
            )
        finally:
            limiter.reset()

        assert [first.status_code, second.status_code] == [201, 429]
        assert len(list((storage.root / "profiles").iterdir())) == 1

    async def test_failed_commit_leaves_no_upload(self, server_error_client, storage, monkeypatch):
        monkeypatch.setattr(AsyncSession, "commit", failing_commit)
        response = await server_error_client.post(
            "/auth/register",
            data=registration(),
            files={"profileImage": ("me.png", b"\x89PNG fake image", "image/png")},
        )
        assert response.status_code == 500
        assert list((storage.root / "profiles").iterdir()) == []


class TestLogin:

    async def test_registered_account_logs_in_with_matching_token(self, client):
        registered = await client.post("/auth/register", json=registration(role="instructor"))
        assert registered.status_code == 201
        user_id = registered.json()["userId"]

        response = await client.post(
            "/auth/login", json={"email": "nora@learnhub.io", "password": "secret123"}
        )
        assert response.status_code == 200
        payload = decode_token(response.json()["token"])
        assert payload["id"] == user_id
        assert payload["role"] == "instructor"
        assert response.json()["user"]["role"] == "instructor"

    async def test_login_returns_token_and_user(self, client, student):
        response = await client.post("/auth/login", json={"email": student.email, "password": PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["token"]
        assert data["user"]["email"] == student.email
        assert "password_hash" not in data["user"]

        profile = await client.get("/auth/profile", headers={"Authorization": f"Bearer {data['token']}"})
        assert profile.status_code == 200
        assert profile.json()["user"]["last_login"] is not None

    async def test_wrong_password_and_unknown_email_are_indistinguishable(self, client, student):
        wrong = await client.post("/auth/login", json={"email": student.email, "password": "nope-nope"})
        unknown = await client.post("/auth/login", json={"email": "ghost@learnhub.io", "password": "nope-nope"})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["code"] == ErrorCode.INVALID_CREDENTIALS

    async def test_inactive_account_cannot_login(self, client, database):
        user = await create_user(database, UserRole.student, "sleepy@learnhub.io", status=UserStatus.inactive)
        response = await client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 401

    async def test_admin_login_requires_admin_role(self, client, student, admin):
        denied = await client.post("/api/auth/admin-login", json={"email": student.email, "password": PASSWORD})
        assert denied.status_code == 401
        assert denied.json()["message"] == "Invalid admin credentials"

        allowed = await client.post("/api/auth/admin-login", json={"email": admin.email, "password": PASSWORD})
        assert allowed.status_code == 200
        assert allowed.json()["user"]["role"] == "admin"


class TestProfile:

    async def test_profile_requires_token(self, client):
        response = await client.get("/auth/profile")
        assert response.status_code == 401
        assert response.json()["code"] == ErrorCode.AUTH_REQUIRED

    async def test_garbage_token_is_rejected(self, client):
        response = await client.get("/auth/profile", headers={"Authorization": "Bearer not.a.token"})
        assert response.status_code == 401
        assert response.json()["code"] == ErrorCode.AUTH_INVALID

    async def test_partial_update_keeps_other_fields(self, client, student):
        headers = auth_headers(student)
        first = await client.put("/auth/profile", json={"bio": "Learning every day"}, headers=headers)
        assert first.status_code == 200

        second = await client.put("/auth/profile", json={"country": "Portugal"}, headers=headers)
        user = second.json()["user"]
        assert user["bio"] == "Learning every day"
        assert user["country"] == "Portugal"
        assert user["name"] == "Sam Student"

    async def test_new_profile_image_replaces_old_file(self, client, student, storage):
        headers = auth_headers(student)
        first = await client.put(
            "/auth/profile",
            files={"profileImage": ("a.png", b"first", "image/png")},
            headers=headers,
        )
        old_name = first.json()["user"]["profile_image"]
        assert (storage.root / "profiles" / old_name).exists()

        second = await client.put(
            "/auth/profile",
            files={"profileImage": ("b.png", b"second", "image/png")},
            headers=headers,
        )
        new_name = second.json()["user"]["profile_image"]
        assert new_name != old_name
        assert not (storage.root / "profiles" / old_name).exists()
        assert second.json()["user"]["profile_image_url"].endswith(f"/uploads/profiles/{new_name}")

    async def test_non_image_upload_is_rejected(self, client, student, storage):
        response = await client.put(
            "/auth/profile",
            files={"profileImage": ("notes.txt", b"plain text", "text/plain")},
            headers=auth_headers(student),
        )
        assert response.status_code == 400
        assert list((storage.root / "profiles").iterdir()) == []


class TestVerifyEmail:

    async def test_token_is_single_use(self, client, session):
        registered = await client.post("/auth/register", json=registration())
        user_id = registered.json()["userId"]
        user = await session.get(User, user_id)
        token = user.verification_token

        first = await client.get(f"/auth/verify-email/{token}")
        assert first.status_code == 200

        second = await client.get(f"/auth/verify-email/{token}")
        assert second.status_code == 404

        session.expire_all()
        result = await session.execute(select(User).where(User.id == user_id))
        assert result.scalar_one().email_verified is True

    async def test_invalid_token(self, client):
        response = await client.get("/auth/verify-email/garbage")
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.INVALID_TOKEN

    async def test_token_not_matching_stored_one(self, client, student):
        response = await client.get(f"/auth/verify-email/{create_verification_token(student.email)}")
        assert response.status_code == 404
