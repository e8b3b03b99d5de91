"""Validation for uploaded image files."""
import uuid
from typing import NamedTuple, Optional

from database import settings
from errors import ValidationError
from storage import ALLOWED_IMAGE_EXTENSIONS, file_extension


class IncomingFile(NamedTuple):
    filename: str
    content_type: Optional[str]
    data: bytes


def validate_image(file: IncomingFile, max_bytes: Optional[int] = None) -> str:
    """Check type and size of an upload; returns the normalised extension."""
    max_bytes = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES
    if not file or not file.filename:
        raise ValidationError("No file provided", reason="missing-field")

    ext = file_extension(file.filename)
    content_type = (file.content_type or "").lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS or not content_type.startswith("image/"):
        raise ValidationError("Please upload an image file.", reason="wrong-type")

    if len(file.data) > max_bytes:
        raise ValidationError(
            f"File exceeds maximum upload size of {max_bytes // (1024 * 1024)} MB",
            reason="too-large"
        )
    return ext


def unique_blob_path(prefix: str, owner_id: str, ext: str) -> str:
    return f"{prefix}/{owner_id}/{uuid.uuid4().hex}.{ext}"
