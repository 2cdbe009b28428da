"""
backend/middleware/error_handler.py
Global error handling

Every failure leaving a handler is translated into the standard error
body defined in backend/errors.py. Unexpected exceptions are logged with a
short log_id which is the only internal detail returned to the client.
"""
import logging
import traceback
from typing import Any, Dict, List

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.errors import (
    APIError, ConflictError, ErrorCode, InternalError, RequestValidationFailed, new_log_id
)

logger = logging.getLogger(__name__)


ERROR_MAPPING = {
    400: ("Bad Request", ErrorCode.INVALID_INPUT),
    401: ("Unauthorized", ErrorCode.AUTH_REQUIRED),
    403: ("Forbidden", ErrorCode.FORBIDDEN),
    404: ("Not Found", ErrorCode.NOT_FOUND),
    405: ("Method Not Allowed", ErrorCode.INVALID_INPUT),
    409: ("Conflict", ErrorCode.CONFLICT),
    429: ("Too Many Requests", ErrorCode.RATE_LIMITED),
}


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Flatten pydantic/FastAPI error entries into {field, message} pairs.

    The location prefix ("body", "query", "path") is dropped so that the
    field name matches what the client sent.
    """
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append({"field": ".".join(loc) or None, "message": message})
    return formatted


def setup_error_handlers(app, debug: bool = False):
    """
    Setup error handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Include exception type in 500 responses (never a traceback)
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        if exc.status_code >= 500:
            logger.error(f"API error on {request.url.path}: {exc.code} - {exc.message}")
        else:
            logger.warning(f"API error on {request.url.path}: {exc.code} - {exc.message}")
        return exc.to_response()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return RequestValidationFailed(format_validation_errors(exc.errors())).to_response()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP exception on {request.url.path}: {exc.detail}")

        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content=exc.detail)

        error, code = ERROR_MAPPING.get(exc.status_code, ("Error", ErrorCode.INTERNAL_ERROR))
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": error,
                "message": str(exc.detail),
                "code": code
            },
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        # Unique constraints not pre-checked by a handler still surface as 409
        logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
        return ConflictError("Resource conflicts with an existing record").to_response()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        log_id = new_log_id()
        logger.error(
            f"[{log_id}] Unhandled exception on {request.method} {request.url.path}: "
            f"{type(exc).__name__}: {str(exc)}\n{traceback.format_exc()}"
        )
        message = "An unexpected error occurred. Please try again later."
        if debug:
            message = f"{message} ({type(exc).__name__})"
        return InternalError(message=message, log_id=log_id).to_response()

    logger.info("Error handlers configured")
