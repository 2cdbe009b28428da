"""
backend/main.py
FastAPI application: settings, logging, middleware, static uploads and routers

Run with:
    uvicorn backend.main:app --reload --port 5000
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from backend.config.settings import get_settings
from backend.database import Database
from backend.middleware.error_handler import setup_error_handlers
from backend.routes import router
from backend.security.rate_limit import limiter
from backend.seed.seed_categories import seed_categories
from backend.services.storage import FileStorage

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

# Fails fast when JWT_SECRET_KEY is missing
settings = get_settings()

API_VERSION = "1.0.1"
STARTED_AT = time.monotonic()

# StaticFiles checks the directory when the app is built
upload_storage = FileStorage(settings.UPLOAD_DIR)
upload_storage.ensure_directories()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting application ({settings.ENVIRONMENT})...")

    # Tests attach their own database and storage before the app starts
    owns_database = not hasattr(app.state, "db")
    if owns_database:
        app.state.db = Database(settings.DATABASE_URL)
    if not hasattr(app.state, "storage"):
        app.state.storage = upload_storage

    try:
        await app.state.db.create_all()
        await seed_categories(app.state.db)
        logger.info("Database connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    yield

    logger.info("Shutting down application...")
    if owns_database:
        await app.state.db.dispose()


app = FastAPI(
    title="E-Learning Platform API",
    description="Courses, enrollments, online classes, quizzes and progress tracking",
    version=API_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)

# Attach rate limiter to the app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
origins.extend(settings.ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

setup_error_handlers(app, debug=settings.is_development)

app.mount("/uploads", StaticFiles(directory=str(settings.UPLOAD_DIR)), name="uploads")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to E-Learning Platform API with Online Classes",
        "version": API_VERSION,
        "status": "active",
        "endpoints": {
            "auth": {
                "register": "POST /auth/register",
                "login": "POST /auth/login",
                "adminLogin": "POST /api/auth/admin-login",
                "profile": "GET|PUT /auth/profile",
                "verifyEmail": "GET /auth/verify-email/:token",
            },
            "catalog": {
                "categories": "GET /api/categories",
                "courses": "GET /api/courses",
                "courseDetails": "GET /api/courses/:slug",
                "materials": "GET /api/courses/:id/materials",
            },
            "instructor": {
                "courses": "GET|POST /api/instructor/courses",
                "updateCourse": "PUT /api/instructor/courses/:id",
                "enrolledStudents": "GET /api/instructor/courses/:id/enrolled-students",
                "materials": "POST /api/instructor/courses/:id/materials",
                "material": "PUT|DELETE /api/instructor/courses/:id/materials/:materialId",
            },
            "student": {
                "enroll": "POST /api/student/enroll/:courseId",
                "courses": "GET /api/student/courses",
                "onlineClasses": "GET /api/student/online-classes",
            },
            "onlineClasses": {
                "schedule": "POST /api/online-classes",
                "list": "GET /api/online-classes",
                "courses": "GET /api/instructor/courses-for-classes",
                "status": "PUT /api/online-classes/:id/status",
                "courseClasses": "GET /api/courses/:courseId/classes",
                "join": "POST /api/courses/:courseId/classes/:classId/join",
            },
            "chat": "GET|POST /api/courses/:courseId/chat/messages",
            "progress": {
                "course": "GET /api/courses/:courseId/progress",
                "video": "POST /api/materials/:materialId/progress",
                "certificate": "GET /api/courses/:courseId/certificate-status",
            },
            "quizzes": {
                "list": "GET|POST /api/courses/:courseId/quizzes",
                "quiz": "PUT|DELETE /api/courses/:courseId/quizzes/:quizId",
                "questions": "GET|POST /api/quizzes/:quizId/questions",
                "submit": "POST /api/quizzes/:quizId/submit",
                "attempts": "GET /api/courses/:courseId/quiz-attempts",
            },
            "notifications": {
                "list": "GET /api/notifications",
                "read": "PUT /api/notifications/:id/read",
                "broadcast": "POST /api/admin/notifications/broadcast",
            },
            "admin": {
                "users": "GET /api/admin/users",
                "user": "PUT|DELETE /api/admin/users/:id",
                "bulkDelete": "POST /api/admin/users/bulk-delete",
                "courses": "GET /api/admin/courses",
                "courseStatus": "PUT /api/admin/courses/:id/status",
                "deleteCourse": "DELETE /api/admin/courses/:id",
                "statistics": "GET /api/admin/statistics",
                "analytics": "GET /api/admin/analytics",
                "exports": "GET /api/admin/users/export, GET /api/admin/courses/export",
            },
            "health": "GET /health",
        },
    }


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "message": "Server is running",
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


app.include_router(router)
