"""Local storage for uploaded post images, served back under MEDIA_BASE_URL."""
import logging
import os
import uuid

from .config import settings
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
ALLOWED_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")


def _extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def validate_image_upload(filename: str, content_type: str, size: int) -> None:
    if size == 0:
        raise ValidationError("Image file is required")
    if size > settings.MAX_IMAGE_SIZE:
        raise ValidationError(f"File size exceeds maximum of {settings.MAX_IMAGE_SIZE // (1024 * 1024)}MB")
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(f"File type {content_type} is not allowed")
    extension = _extension(filename)
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError(f"File extension {extension or '(none)'} is not allowed")


def save_image(filename: str, content: bytes) -> str:
    """Writes the bytes under a random name and returns the public URL."""
    os.makedirs(settings.MEDIA_DIR, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}{_extension(filename)}"
    path = os.path.join(settings.MEDIA_DIR, stored_name)
    with open(path, "wb") as f:
        f.write(content)
    logger.info(f"Stored upload '{filename}' as {path} ({len(content)} bytes)")
    return f"{settings.MEDIA_BASE_URL.rstrip('/')}/{stored_name}"
