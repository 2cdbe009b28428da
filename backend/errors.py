"""
backend/errors.py
Centralized error handling

CORE PRINCIPLES:
- All errors follow consistent structure
- Errors are user-safe (no stack traces, no internal identifiers)
- Errors are machine-readable

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional, e.g. {"errors": [...]} for validation failures)
}

HTTP STATUS CODE DISCIPLINE:
- 200: Successful request
- 201: Resource created
- 400: Invalid input / malformed request
- 401: Authentication missing, invalid or expired
- 403: Wrong role, or not a member / owner of the resource
- 404: Resource does not exist (or is filtered to look absent)
- 409: Uniqueness conflict (duplicate email / slug / enrollment)
- 429: Rate limit exceeded
- 500: Unexpected database or I/O failure (internal only)
"""

import logging
import uuid
from typing import Optional, Dict, Any, List
from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_FILE = "INVALID_FILE"
    INVALID_TOKEN = "INVALID_TOKEN"
    NO_FIELDS = "NO_FIELDS"
    MAX_ATTEMPTS_REACHED = "MAX_ATTEMPTS_REACHED"
    INVALID_STATE = "INVALID_STATE"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_EXPIRED = "AUTH_EXPIRED"
    AUTH_INVALID = "AUTH_INVALID"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    FORBIDDEN = "FORBIDDEN"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_COURSE_MEMBER = "NOT_COURSE_MEMBER"
    OWNERSHIP_VIOLATION = "OWNERSHIP_VIOLATION"

    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    COURSE_NOT_FOUND = "COURSE_NOT_FOUND"
    MATERIAL_NOT_FOUND = "MATERIAL_NOT_FOUND"
    CLASS_NOT_FOUND = "CLASS_NOT_FOUND"
    QUIZ_NOT_FOUND = "QUIZ_NOT_FOUND"

    CONFLICT = "CONFLICT"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    DUPLICATE_SLUG = "DUPLICATE_SLUG"
    ALREADY_ENROLLED = "ALREADY_ENROLLED"

    RATE_LIMITED = "RATE_LIMITED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class BadRequestError(APIError):
    """400 Bad Request - Invalid input"""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Bad Request",
            message=message,
            code=code,
            details=details
        )


class RequestValidationFailed(APIError):
    """400 Bad Request - One or more field rules were violated"""
    def __init__(self, errors: List[Dict[str, Any]], message: str = "Validation error"):
        self.errors = errors
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Validation Error",
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details={"errors": errors}
        )


class UnauthorizedError(APIError):
    """401 Unauthorized - Authentication required"""
    def __init__(self, message: str = "Authentication required", code: str = ErrorCode.AUTH_REQUIRED):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="Unauthorized",
            message=message,
            code=code
        )

    def to_response(self) -> JSONResponse:
        response = super().to_response()
        response.headers["WWW-Authenticate"] = "Bearer"
        return response


class ForbiddenError(APIError):
    """403 Forbidden - Access denied"""
    def __init__(self, message: str = "Access denied", code: str = ErrorCode.FORBIDDEN, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="Forbidden",
            message=message,
            code=code,
            details=details
        )


class NotFoundError(APIError):
    """404 Not Found - Resource does not exist"""
    def __init__(self, resource: str, message: Optional[str] = None, code: str = ErrorCode.NOT_FOUND):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=message or f"{resource} not found",
            code=code
        )


class ConflictError(APIError):
    """409 Conflict - Uniqueness violation"""
    def __init__(self, message: str, code: str = ErrorCode.CONFLICT):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Conflict",
            message=message,
            code=code
        )


class InternalError(APIError):
    """500 Internal Server Error - Use sparingly, only for true internal failures"""
    def __init__(self, message: str = "An internal error occurred", log_id: Optional[str] = None):
        details = {"log_id": log_id} if log_id else None
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Error",
            message=message,
            code=ErrorCode.INTERNAL_ERROR,
            details=details
        )


def new_log_id() -> str:
    return str(uuid.uuid4())[:8]


def log_and_raise_internal(error: Exception, context: str = ""):
    """Log an internal error and raise a safe 500 response"""
    log_id = new_log_id()
    logger.error(f"[{log_id}] Internal error in {context}: {type(error).__name__}: {str(error)}")
    raise InternalError(
        message="An internal error occurred. Please try again later.",
        log_id=log_id
    ) from error
