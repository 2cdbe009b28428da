"""
backend/tests/conftest.py
Shared fixtures: an in-memory database per test, a temporary upload root
and an HTTP client bound to the application.
"""
import os
import tempfile

# Settings are read at import time; these must be in place first
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="elearning-uploads-")

import pytest
from httpx import ASGITransport, AsyncClient

from backend.database import Database
from backend.main import app
from backend.orm.user import UserRole
from backend.seed.seed_categories import seed_categories
from backend.services.storage import FileStorage
from backend.tests.factories import create_course, create_user, enroll


@pytest.fixture
async def database():
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    await seed_categories(db)
    yield db
    await db.dispose()


@pytest.fixture
def storage(tmp_path):
    file_storage = FileStorage(tmp_path / "uploads")
    file_storage.ensure_directories()
    return file_storage


@pytest.fixture
async def client(database, storage):
    app.state.db = database
    app.state.storage = storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def server_error_client(database, storage):
    """Client that receives the 500 response instead of the re-raised exception"""
    app.state.db = database
    app.state.storage = storage
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def session(database):
    async with database.session_factory() as s:
        yield s


# ================= USERS AND COURSES =================

@pytest.fixture
async def student(database):
    return await create_user(database, UserRole.student, "student@learnhub.io", name="Sam Student")


@pytest.fixture
async def other_student(database):
    return await create_user(database, UserRole.student, "other.student@learnhub.io")


@pytest.fixture
async def instructor(database):
    return await create_user(database, UserRole.instructor, "instructor@learnhub.io", name="Ivy Instructor")


@pytest.fixture
async def other_instructor(database):
    return await create_user(database, UserRole.instructor, "other.instructor@learnhub.io")


@pytest.fixture
async def admin(database):
    return await create_user(database, UserRole.admin, "admin@learnhub.io", name="Ada Admin")


@pytest.fixture
async def course(database, instructor):
    return await create_course(database, instructor.id)


@pytest.fixture
async def enrolled_student(database, student, course):
    await enroll(database, student.id, course.id)
    return student
