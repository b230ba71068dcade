"""
Template attachments: local checks and upload to file storage.

Files are checked before any upload is attempted so an oversized or
unsupported file never reaches storage.
"""

import logging
import mimetypes
import secrets
import time
from pathlib import PurePath
from typing import Optional

from .errors import ValidationError

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024
ALLOWED_EXTENSIONS = {"pdf", "jpg", "jpeg", "png"}


def file_extension(filename: str) -> str:
    return PurePath(filename).suffix.lstrip(".").lower()


def validate_attachment(filename: str, size: int) -> None:
    """
    Check an attachment against the size and type limits.

    Raises:
        ValidationError: With every limit the file breaks
    """
    errors = []
    if file_extension(filename) not in ALLOWED_EXTENSIONS:
        errors.append(
            f"Unsupported file type: {filename} (allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))})"
        )
    if size > MAX_ATTACHMENT_BYTES:
        errors.append(f"File too large: {size} bytes (max {MAX_ATTACHMENT_BYTES})")

    if errors:
        raise ValidationError("; ".join(errors), errors)


def storage_path(lead_id, filename: str, now: Optional[float] = None) -> str:
    """Unique object path: <lead_id>/<millis>_<random>.<ext>"""
    millis = int((now if now is not None else time.time()) * 1000)
    return f"{lead_id}/{millis}_{secrets.token_hex(4)}.{file_extension(filename)}"


class AttachmentUploader:
    """Validates and uploads attachments through the store client."""

    def __init__(self, store):
        self.store = store

    def upload(self, lead_id, filename: str, data: bytes) -> str:
        """
        Upload an attachment for a lead.

        Returns:
            Public URL of the stored file

        Raises:
            ValidationError: If the file breaks the size/type limits
            UpstreamError: If storage rejects the upload
        """
        validate_attachment(filename, len(data))

        path = storage_path(lead_id, filename)
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        url = self.store.upload_attachment(path, data, content_type)
        logger.info("Uploaded attachment for lead %s: %s", lead_id, path)
        return url
