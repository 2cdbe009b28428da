"""
backend/routes/auth.py
Registration, login, profile and email verification routes
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import (
    BadRequestError, ConflictError, ErrorCode, NotFoundError, UnauthorizedError
)
from backend.orm.user import User, UserRole, UserStatus
from backend.schemas.auth import LoginRules, ProfileUpdateRules, RegisterRules
from backend.security.rate_limit import auth_rate_limit, limiter
from backend.security.rbac import (
    CurrentUser,
    create_access_token,
    create_verification_token,
    decode_token,
    get_current_user,
    hash_password,
    verify_password,
)
from backend.security.request_validator import RequestValidator, ValidatedRequest
from backend.services.storage import AssetKind, asset_url, public_base_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])
admin_auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])

PROFILE_FIELDS = ("name", "bio", "phone", "date_of_birth", "gender", "country")


def user_payload(user: User, base_url: str) -> dict:
    """User JSON with the computed profile image URL"""
    data = user.to_dict()
    data["profile_image_url"] = asset_url(base_url, AssetKind.profile, user.profile_image)
    return data


async def _active_user_by_email(db: AsyncSession, email: str):
    result = await db.execute(
        select(User).where(User.email == email, User.status == UserStatus.active)
    )
    return result.scalar_one_or_none()


async def _record_login(db: AsyncSession, user: User) -> None:
    """last_login is informational; a failed write does not fail the login."""
    user_id = user.id
    try:
        user.last_login = datetime.utcnow()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to update last login for user {user_id}: {type(e).__name__}")


def _login_response(user: User, base_url: str) -> dict:
    token = create_access_token({"id": user.id, "role": user.role.value, "name": user.name})
    return {
        "message": "Login successful",
        "token": token,
        "user": user_payload(user, base_url)
    }


# ================= REGISTER =================

@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_rate_limit)
async def register(
    request: Request,
    form: ValidatedRequest = Depends(
        RequestValidator(RegisterRules, files={"profileImage": AssetKind.profile})
    ),
    db: AsyncSession = Depends(get_db),
):
    """
    Register a student, instructor or parent account.

    Accepts JSON or multipart (optional "profileImage" file).
    """
    data: RegisterRules = form.data
    email = data.email.lower()
    image = form.upload("profileImage")

    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Email already exists", code=ErrorCode.DUPLICATE_EMAIL)

    user = User(
        name=data.name,
        email=email,
        password_hash=await hash_password(data.password),
        role=UserRole(data.role),
        status=UserStatus.active,
        phone=data.phone,
        date_of_birth=data.date_of_birth,
        gender=data.gender,
        country=data.country,
        bio=data.bio,
        profile_image=image.filename if image else None,
        email_verified=False,
        verification_token=create_verification_token(email),
    )
    db.add(user)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email already exists", code=ErrorCode.DUPLICATE_EMAIL)
    form.keep_uploads()

    logger.info(f"Registered user {user.id} with role {user.role.value}")
    return {"message": "User registered successfully", "userId": user.id}


# ================= LOGIN =================

@router.post("/login")
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    form: ValidatedRequest = Depends(RequestValidator(LoginRules)),
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange email + password for an access token.

    Unknown email, inactive account and wrong password are indistinguishable.
    """
    data: LoginRules = form.data
    user = await _active_user_by_email(db, data.email.lower())

    if user is None or not await verify_password(data.password, user.password_hash):
        logger.info("Failed login attempt")
        raise UnauthorizedError("Invalid email or password", code=ErrorCode.INVALID_CREDENTIALS)

    response = _login_response(user, public_base_url(request))
    await _record_login(db, user)
    logger.info(f"User {response['user']['id']} logged in")
    return response


@admin_auth_router.post("/admin-login")
@limiter.limit(auth_rate_limit)
async def admin_login(
    request: Request,
    form: ValidatedRequest = Depends(RequestValidator(LoginRules)),
    db: AsyncSession = Depends(get_db),
):
    """Login restricted to active admin accounts"""
    data: LoginRules = form.data
    user = await _active_user_by_email(db, data.email.lower())

    if (
        user is None
        or user.role != UserRole.admin
        or not await verify_password(data.password, user.password_hash)
    ):
        logger.warning("Failed admin login attempt")
        raise UnauthorizedError("Invalid admin credentials", code=ErrorCode.INVALID_CREDENTIALS)

    response = _login_response(user, public_base_url(request))
    await _record_login(db, user)
    logger.info(f"Admin {response['user']['id']} logged in")
    return response


# ================= PROFILE =================

async def _get_active_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User", code=ErrorCode.USER_NOT_FOUND)
    return user


@router.get("/profile")
async def get_profile(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_active_user(db, current_user.id)
    return {"user": user_payload(user, public_base_url(request))}


@router.put("/profile")
async def update_profile(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    form: ValidatedRequest = Depends(
        RequestValidator(ProfileUpdateRules, files={"profileImage": AssetKind.profile})
    ),
    db: AsyncSession = Depends(get_db),
):
    """
    Partial profile update.

    A new "profileImage" replaces the stored one; clear_profile_image=true
    removes it. Replaced files are deleted after the row is saved.
    """
    data: ProfileUpdateRules = form.data
    image = form.upload("profileImage")

    user = await _get_active_user(db, current_user.id)

    provided = data.provided()
    for field in PROFILE_FIELDS:
        if field in provided:
            setattr(user, field, provided[field])

    old_image = user.profile_image
    remove_old = False
    if image is not None:
        user.profile_image = image.filename
        remove_old = True
    elif data.clear_profile_image:
        user.profile_image = None
        remove_old = True

    await db.commit()
    form.keep_uploads()

    if remove_old and old_image:
        form.storage.delete(AssetKind.profile, old_image)

    await db.refresh(user)
    logger.info(f"User {user.id} updated profile")
    return {"message": "Profile updated successfully", "user": user_payload(user, public_base_url(request))}


# ================= EMAIL VERIFICATION =================

@router.get("/verify-email/{token}")
async def verify_email(token: str, db: AsyncSession = Depends(get_db)):
    """Single-use: the stored token is cleared once it has been accepted."""
    payload = decode_token(token, expected_type="verify")
    if payload is None or not payload.get("email"):
        raise BadRequestError("Invalid or expired verification token", code=ErrorCode.INVALID_TOKEN)

    result = await db.execute(
        select(User).where(User.email == payload["email"], User.verification_token == token)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", code=ErrorCode.USER_NOT_FOUND)

    user.email_verified = True
    user.verification_token = None
    await db.commit()

    logger.info(f"User {user.id} verified email")
    return {"message": "Email verified successfully"}
