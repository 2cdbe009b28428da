"""
backend/routes/__init__.py
Route registration
"""
from fastapi import APIRouter
from backend.routes import auth, catalog, instructor, student, chat, online_classes
from backend.routes import progress, quizzes, notifications, admin

router = APIRouter()

# Accounts
router.include_router(auth.router)
router.include_router(auth.admin_auth_router)

# Public catalog
router.include_router(catalog.router)

# Instructor and student workspaces
router.include_router(instructor.router)
router.include_router(student.router)

# Course activity
router.include_router(chat.router)
router.include_router(online_classes.router)
router.include_router(progress.router)
router.include_router(quizzes.router)

# Back office
router.include_router(notifications.router)
router.include_router(admin.router)
