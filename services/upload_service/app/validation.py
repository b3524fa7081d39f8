# services/upload_service/app/validation.py
from typing import Iterable, Optional
from core.config import settings
from core.models import (
    RejectionReason, ValidationResult,
    SIZE_LIMIT_MESSAGE, TYPE_REJECTED_MESSAGE,
)
from core.utils import extension_of


def normalize_media_type(media_type: Optional[str]) -> str:
    """'Text/JavaScript; charset=utf-8' -> 'text/javascript'"""
    if not media_type:
        return ""
    return media_type.split(";", 1)[0].strip().lower()


def check_size(byte_length: int, max_bytes: Optional[int] = None) -> ValidationResult:
    limit = settings.MAX_UPLOAD_SIZE_BYTES if max_bytes is None else max_bytes
    if byte_length > limit:
        return ValidationResult.reject(RejectionReason.SIZE_EXCEEDED, SIZE_LIMIT_MESSAGE)
    return ValidationResult.accept()


def check_file_type(
    filename: str,
    media_type: Optional[str],
    allowed_extensions: Optional[Iterable[str]] = None,
    allowed_media_types: Optional[Iterable[str]] = None,
) -> ValidationResult:
    """Accepts a file only if BOTH its extension and its declared media type are allowed."""
    extensions = {e.lstrip(".").lower() for e in (allowed_extensions if allowed_extensions is not None else settings.ALLOWED_EXTENSIONS)}
    media_types = {normalize_media_type(m) for m in (allowed_media_types if allowed_media_types is not None else settings.ALLOWED_MEDIA_TYPES)}

    extension_ok = extension_of(filename) in extensions
    media_type_ok = normalize_media_type(media_type) in media_types
    if extension_ok and media_type_ok:
        return ValidationResult.accept()
    return ValidationResult.reject(RejectionReason.TYPE_REJECTED, TYPE_REJECTED_MESSAGE)
