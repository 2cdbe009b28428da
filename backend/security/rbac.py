"""
backend/security/rbac.py
Credentials, tokens and authorization predicates

- Password hashing (bcrypt via passlib, run off the event loop)
- Signed access / email-verification tokens (python-jose)
- Role gates: require_instructor, require_student, require_admin
- Resource gates: require_course_member, get_owned_course

The access token payload is trusted as-is for id, role and name. A role
change takes effect at the user's next login.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, ExpiredSignatureError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config.settings import get_settings
from backend.database import get_db
from backend.errors import ErrorCode, ForbiddenError, NotFoundError, UnauthorizedError
from backend.orm.course import Course
from backend.orm.enrollment import Enrollment
from backend.orm.user import UserRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# ================= PASSWORDS =================

_pwd_context = None
_executor = None


def get_pwd_context() -> CryptContext:
    global _pwd_context
    if _pwd_context is None:
        _pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=get_settings().BCRYPT_ROUNDS,
        )
    return _pwd_context


def get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4)
    return _executor


def normalize_password(password: str) -> str:
    """
    bcrypt only supports 72 bytes.
    We safely truncate AFTER UTF-8 encoding to preserve compatibility.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        encoded = encoded[:72]
    return encoded.decode("utf-8", errors="ignore")


async def hash_password(password: str) -> str:
    """Hash a password in the thread pool so bcrypt does not block the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_executor(), get_pwd_context().hash, normalize_password(password))


async def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time bcrypt verification, off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        get_executor(), get_pwd_context().verify, normalize_password(plain), hashed
    )


# ================= TOKENS =================

class CurrentUser(BaseModel):
    """Identity decoded from a valid access token"""
    id: int
    role: UserRole
    name: str

    @property
    def is_instructor(self) -> bool:
        return self.role == UserRole.instructor

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.student

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token; login tokens carry id, role and name"""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode.update({
        "exp": expire,
        "type": "access"
    })
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_verification_token(email: str) -> str:
    """Create the signed, time-limited token mailed for email verification"""
    settings = get_settings()
    expire = datetime.utcnow() + timedelta(days=settings.EMAIL_VERIFICATION_EXPIRE_DAYS)
    to_encode = {
        "email": email,
        "exp": expire,
        "type": "verify"
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> Optional[dict]:
    """Decode and validate a JWT; returns None when invalid, expired or of another type"""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


# ================= AUTH DEPENDENCIES =================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Get current authenticated user from the bearer access token.
    Returns 401 if the token is missing, invalid or expired.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Access token required", code=ErrorCode.AUTH_REQUIRED)

    settings = get_settings()
    try:
        payload = jwt.decode(
            credentials.credentials, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except ExpiredSignatureError:
        raise UnauthorizedError("Token has expired", code=ErrorCode.AUTH_EXPIRED)
    except JWTError:
        raise UnauthorizedError("Invalid token", code=ErrorCode.AUTH_INVALID)

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token", code=ErrorCode.AUTH_INVALID)

    try:
        return CurrentUser(id=payload["id"], role=payload["role"], name=payload.get("name", ""))
    except (KeyError, ValueError):
        raise UnauthorizedError("Invalid token payload", code=ErrorCode.AUTH_INVALID)


def _deny(current_user: CurrentUser, required: str):
    logger.warning(
        f"Access denied: User {current_user.id} with role {current_user.role.value} "
        f"attempted to access resource requiring {required}"
    )
    raise ForbiddenError(
        f"Access denied. {required.capitalize()} role required.",
        code=ErrorCode.PERMISSION_DENIED
    )


def require_instructor(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Require instructor role."""
    if not current_user.is_instructor:
        _deny(current_user, "instructor")
    return current_user


def require_student(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Require student role."""
    if not current_user.is_student:
        _deny(current_user, "student")
    return current_user


def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Require admin role."""
    if not current_user.is_admin:
        _deny(current_user, "admin")
    return current_user


# ================= RESOURCE GATES =================

async def is_course_member(db: AsyncSession, course: Course, user: CurrentUser) -> bool:
    """True for the course's own instructor or a student enrolled in it."""
    if user.is_instructor:
        return course.instructor_id == user.id
    if user.is_student:
        result = await db.execute(
            select(Enrollment.id).where(
                Enrollment.course_id == course.id,
                Enrollment.user_id == user.id
            )
        )
        return result.scalar_one_or_none() is not None
    return False


async def require_course_member(
    course_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Course:
    """
    Gate for member-only course resources (full materials, chat, classes,
    progress, quizzes).

    Raises:
        NotFoundError: course does not exist
        ForbiddenError: user is neither the owning instructor nor enrolled
    """
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course", code=ErrorCode.COURSE_NOT_FOUND)

    if not await is_course_member(db, course, current_user):
        logger.warning(f"User {current_user.id} is not a member of course {course_id}")
        raise ForbiddenError(
            "Access denied. You are not a member of this course.",
            code=ErrorCode.NOT_COURSE_MEMBER
        )
    return course


async def get_owned_course(db: AsyncSession, course_id: int, instructor_id: int) -> Course:
    """
    Ownership re-check for mutating instructor handlers.

    A course owned by someone else is reported exactly like a missing one.
    """
    result = await db.execute(
        select(Course).where(Course.id == course_id, Course.instructor_id == instructor_id)
    )
    course = result.scalar_one_or_none()
    if course is None:
        raise NotFoundError(
            "Course",
            message="Course not found or you are not the instructor.",
            code=ErrorCode.COURSE_NOT_FOUND
        )
    return course
