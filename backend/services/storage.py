"""
backend/services/storage.py
Upload intake and public URL shaping

Uploaded binaries are written to one subdirectory per asset kind under the
upload root and served back from the /uploads mount. Database rows store the
generated filename only; URLs are rebuilt on every response as
base + /uploads/<subdir>/<filename>.
"""
import logging
import os
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional

from fastapi import Request
from starlette.datastructures import UploadFile

from backend.config.settings import get_settings

logger = logging.getLogger(__name__)

MB = 1024 * 1024
CHUNK_SIZE = 64 * 1024


class AssetKind(str, Enum):
    """Upload categories; the value is the subdirectory name."""
    profile = "profiles"
    thumbnail = "course_thumbnails"
    video = "course_videos"
    document = "course_documents"


@dataclass(frozen=True)
class AssetPolicy:
    prefix: str
    max_bytes: int
    accepts: Callable[[str], bool]
    type_error: str


def _is_image(content_type: str) -> bool:
    return content_type.startswith("image/")


def _is_video(content_type: str) -> bool:
    return content_type.startswith("video/")


def _is_document(content_type: str) -> bool:
    return content_type == "application/pdf" or content_type.startswith("text/")


ASSET_POLICIES: Dict[AssetKind, AssetPolicy] = {
    AssetKind.profile: AssetPolicy("profile", 2 * MB, _is_image, "Only image files are allowed for profile pictures"),
    AssetKind.thumbnail: AssetPolicy("thumbnail", 5 * MB, _is_image, "Only image files are allowed for thumbnails"),
    AssetKind.video: AssetPolicy("video", 500 * MB, _is_video, "Only video files are allowed"),
    AssetKind.document: AssetPolicy("document", 500 * MB, _is_document, "Only PDF or text documents are allowed"),
}


class FileRejected(Exception):
    """Raised when an upload fails its kind's type or size rule."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass
class StoredFile:
    kind: AssetKind
    filename: str
    path: Path
    size: int
    content_type: str


def generate_filename(prefix: str, original_name: Optional[str]) -> str:
    """<prefix>-<epoch millis>-<random digits><original extension>"""
    ext = Path(original_name or "").suffix.lower()
    unique = f"{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}"
    return f"{prefix}-{unique}{ext}"


class FileStorage:
    """
    Disk-backed storage for uploaded assets.

    Args:
        root: Upload root; one subdirectory per AssetKind is created on demand
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def ensure_directories(self) -> None:
        for kind in AssetKind:
            (self.root / kind.value).mkdir(parents=True, exist_ok=True)

    def path_for(self, kind: AssetKind, filename: str) -> Path:
        # Stored names are generated, but never let one escape its subdirectory
        return self.root / kind.value / Path(filename).name

    async def save(self, kind: AssetKind, upload: UploadFile) -> StoredFile:
        """
        Stream an upload to disk with type and size enforcement.

        Raises:
            FileRejected: wrong content type or file larger than the kind's limit.
                Nothing is left on disk in that case.
        """
        policy = ASSET_POLICIES[kind]
        content_type = (upload.content_type or "").lower()
        if not policy.accepts(content_type):
            raise FileRejected(policy.type_error)

        filename = generate_filename(policy.prefix, upload.filename)
        destination = self.path_for(kind, filename)
        destination.parent.mkdir(parents=True, exist_ok=True)

        total_size = 0
        try:
            with open(destination, "wb") as f:
                while chunk := await upload.read(CHUNK_SIZE):
                    total_size += len(chunk)
                    if total_size > policy.max_bytes:
                        raise FileRejected(f"File exceeds {policy.max_bytes // MB}MB limit")
                    f.write(chunk)
        except (FileRejected, OSError):
            self._remove(destination)
            raise

        logger.info(f"Stored upload {filename} ({total_size} bytes) in {kind.value}")
        return StoredFile(kind=kind, filename=filename, path=destination, size=total_size, content_type=content_type)

    def delete(self, kind: AssetKind, filename: Optional[str]) -> None:
        """Best-effort removal; a missing file is not an error."""
        if not filename:
            return
        self._remove(self.path_for(kind, filename))

    def discard(self, stored: StoredFile) -> None:
        self._remove(stored.path)

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove file {path}: {e}")


def get_storage(request: Request) -> FileStorage:
    """Dependency returning the storage attached to the application"""
    return request.app.state.storage


# ================= URL SHAPING =================

def public_base_url(request: Request) -> str:
    """Configured PUBLIC_BASE_URL, else the base URL the request came in on"""
    configured = get_settings().PUBLIC_BASE_URL
    if configured:
        return configured
    return str(request.base_url).rstrip("/")


def asset_url(base_url: str, kind: AssetKind, filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    return f"{base_url}/uploads/{kind.value}/{filename}"


def material_asset_kind(material_type: str) -> AssetKind:
    """Video materials live with videos; every other type with documents."""
    return AssetKind.video if material_type == "video" else AssetKind.document


def material_file_url(base_url: str, material_type: str, file_path: Optional[str]) -> Optional[str]:
    return asset_url(base_url, material_asset_kind(material_type), file_path)


def meeting_url(room_name: str) -> str:
    return f"{get_settings().MEETING_BASE_URL}/{room_name}"
