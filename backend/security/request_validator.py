"""
backend/security/request_validator.py
Declarative request validation

Each endpoint declares a RuleSet (a pydantic model: field -> constraint ->
message). RequestValidator is the request-scoped pipeline stage that runs
before the handler:

1. read the JSON or multipart body
2. store any declared upload fields
3. validate the remaining fields against the RuleSet
4. either continue with a ValidatedRequest, or delete the stored uploads
   and reject the request with 400 and the full list of violations

Uploads handed to the handler are also deleted when anything raised after
validation (rate limiting, a business rule, a failed commit) ends the
request, unless the handler has called keep_uploads() after its commit.
"""
import json
import logging
from typing import Any, AsyncGenerator, ClassVar, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel, ConfigDict, ValidationError
from starlette.datastructures import UploadFile

from backend.errors import RequestValidationFailed
from backend.services.storage import AssetKind, FileRejected, FileStorage, StoredFile, get_storage

logger = logging.getLogger(__name__)


class RuleSet(BaseModel):
    """
    Base class for per-endpoint rule sets.

    Subclasses declare constraints with pydantic Field/field_validator and
    may map a field name to the message reported for any violation of it.
    """
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    messages: ClassVar[Dict[str, str]] = {}

    @classmethod
    def format_errors(cls, exc: ValidationError) -> List[Dict[str, Any]]:
        errors = []
        seen = set()
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ())]
            field = loc[0] if loc else None
            path = ".".join(loc) or None
            message = cls.messages.get(field) if field else None
            if message is None:
                message = error.get("msg", "Invalid value")
                if message.startswith("Value error, "):
                    message = message[len("Value error, "):]
            key = (path, message)
            if key in seen:
                continue
            seen.add(key)
            errors.append({"field": path, "message": message})
        return errors

    def provided(self) -> Dict[str, Any]:
        """Only the non-null fields the client actually sent (partial updates)."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


R = TypeVar("R", bound=RuleSet)


class ValidatedRequest(Generic[R]):
    """Validated data plus the uploads stored for this request"""

    def __init__(self, data: R, uploads: Dict[str, StoredFile], storage: FileStorage):
        self.data = data
        self.uploads = uploads
        self.storage = storage
        self.kept = False

    def upload(self, field: str) -> Optional[StoredFile]:
        return self.uploads.get(field)

    def keep_uploads(self) -> None:
        """Mark the uploads as referenced by committed rows; they survive later errors."""
        self.kept = True

    def discard_uploads(self) -> None:
        for stored in self.uploads.values():
            self.storage.discard(stored)


def _drop_blank(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Empty strings count as "not provided"."""
    return {
        key: value for key, value in payload.items()
        if not (isinstance(value, str) and value.strip() == "")
    }


class RequestValidator:
    """
    FastAPI dependency running a RuleSet against the request body.

    Args:
        rules: RuleSet subclass to validate against
        files: Upload field name -> asset kind for multipart requests
        drop_blank: Treat empty strings as missing fields

    Usage:
        @router.post("/courses")
        async def create_course(req: ValidatedRequest = Depends(RequestValidator(CourseCreateRules))):
            ...
    """

    def __init__(
        self,
        rules: Type[RuleSet],
        files: Optional[Dict[str, AssetKind]] = None,
        drop_blank: bool = True,
    ):
        self.rules = rules
        self.files = files or {}
        self.drop_blank = drop_blank

    async def __call__(
        self,
        request: Request,
        storage: FileStorage = Depends(get_storage),
    ) -> AsyncGenerator[ValidatedRequest, None]:
        payload, upload_fields = await self._read_body(request)
        if self.drop_blank:
            payload = _drop_blank(payload)

        errors: List[Dict[str, Any]] = []
        stored: Dict[str, StoredFile] = {}

        for field, kind in self.files.items():
            upload = upload_fields.get(field)
            if upload is None or not upload.filename:
                continue
            try:
                stored[field] = await storage.save(kind, upload)
            except FileRejected as e:
                errors.append({"field": field, "message": e.message})

        data = None
        try:
            data = self.rules.model_validate(payload)
        except ValidationError as e:
            errors.extend(self.rules.format_errors(e))

        if errors:
            for item in stored.values():
                storage.discard(item)
            logger.info(f"Rejected {request.method} {request.url.path}: {len(errors)} violation(s)")
            raise RequestValidationFailed(errors)

        validated = ValidatedRequest(data, stored, storage)
        try:
            yield validated
        except Exception as e:
            if stored and not validated.kept:
                validated.discard_uploads()
                logger.info(
                    f"Discarded {len(stored)} upload(s) of failed {request.method} {request.url.path}: "
                    f"{type(e).__name__}"
                )
            raise

    async def _read_body(self, request: Request) -> Tuple[Dict[str, Any], Dict[str, UploadFile]]:
        content_type = request.headers.get("content-type", "")

        if content_type.startswith("multipart/form-data") or content_type.startswith(
            "application/x-www-form-urlencoded"
        ):
            form = await request.form()
            payload: Dict[str, Any] = {}
            uploads: Dict[str, UploadFile] = {}
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    uploads.setdefault(key, value)
                elif key in payload:
                    existing = payload[key]
                    payload[key] = existing + [value] if isinstance(existing, list) else [existing, value]
                else:
                    payload[key] = value
            return payload, uploads

        body = await request.body()
        if not body:
            return {}, {}
        try:
            payload = json.loads(body)
        except ValueError:
            raise RequestValidationFailed(
                [{"field": None, "message": "Request body must be valid JSON"}]
            )
        if not isinstance(payload, dict):
            raise RequestValidationFailed(
                [{"field": None, "message": "Request body must be a JSON object"}]
            )
        return payload, {}
