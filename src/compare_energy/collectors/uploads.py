"""Checks applied to an uploaded file before it is processed."""

import mimetypes
from pathlib import Path

MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5 MB

PDF_MIME_TYPE = "application/pdf"
JSON_MIME_TYPE = "application/json"
SUPPORTED_MIME_TYPES = (PDF_MIME_TYPE, JSON_MIME_TYPE)


class ValidationError(Exception):
    """The uploaded file was rejected before any processing."""
    pass


def guess_mime_type(path: Path) -> str | None:
    """Guess a MIME type from the file extension."""
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type


def is_json(mime_type: str | None, content: bytes = b"") -> bool:
    """Whether the upload is a saved simulation rather than a bill."""
    if mime_type == JSON_MIME_TYPE:
        return True
    return mime_type is None and content.lstrip().startswith(b"{")


def validate_upload(filename: str, content: bytes, mime_type: str | None) -> str:
    """Validate file type and size.

    Returns the MIME type to use for the file. Raises ValidationError if the
    file is not a PDF, JSON or image, or is larger than MAX_UPLOAD_BYTES.
    """
    if mime_type is None and is_json(None, content):
        mime_type = JSON_MIME_TYPE

    if not mime_type or not (mime_type in SUPPORTED_MIME_TYPES or mime_type.startswith("image/")):
        raise ValidationError(
            f"Unsupported file type for {filename}: {mime_type or 'unknown'}. "
            "Please use a PDF, an image or a saved simulation (.json)."
        )

    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"{filename} is too large ({len(content) / 1024 / 1024:.1f} MB). "
            f"Maximum is {MAX_UPLOAD_BYTES // (1024 * 1024)} MB."
        )

    if not content:
        raise ValidationError(f"{filename} is empty")

    return mime_type
