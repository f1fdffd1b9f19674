"""Media storage for uploaded images.

Files live under MEDIA_LOCATION in a folder tree derived from the hash of
the media id, so no directory grows too large.

Example:
    If the media ID is "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
    and it hashes to "9f86d0..."
    The file will be stored at: MEDIA_LOCATION/9f/86/d0/a1b2c3d4-e5f6-7890-abcd-ef1234567890.png
    and served from: MEDIA_BASE_URL/9f/86/d0/a1b2c3d4-e5f6-7890-abcd-ef1234567890.png
"""

from __future__ import annotations

import hashlib
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from PIL import Image, UnidentifiedImageError

from . import settings
from .errors import PayloadTooLarge, UnsupportedMediaType

logger = logging.getLogger(__name__)

# Pillow format name -> (MIME type, file extension)
ALLOWED_FORMATS = {
    "PNG": ("image/png", ".png"),
    "JPEG": ("image/jpeg", ".jpg"),
    "GIF": ("image/gif", ".gif"),
    "WEBP": ("image/webp", ".webp"),
}

ALLOWED_MIME_TYPES = {mime for mime, _ in ALLOWED_FORMATS.values()} | {"image/jpg"}


@dataclass
class ImageInfo:
    mime_type: str
    extension: str
    width: int
    height: int


def get_media_location() -> Path:
    return Path(settings.MEDIA_LOCATION)


def hash_media_id(media_id: UUID) -> str:
    """Hash the media ID using SHA256 for folder structure derivation."""
    return hashlib.sha256(str(media_id).encode()).hexdigest()


def relative_media_path(media_id: UUID, extension: str) -> str:
    """
    Path of a media file relative to MEDIA_LOCATION, with forward slashes.

    The first 6 characters of the hash are split into 3 chunks of 2.
    """
    hash_value = hash_media_id(media_id)
    ext = extension.lower() if extension.startswith(".") else f".{extension.lower()}"
    return f"{hash_value[0:2]}/{hash_value[2:4]}/{hash_value[4:6]}/{media_id}{ext}"


def media_url(relative_path: str) -> str:
    return f"{settings.MEDIA_BASE_URL}/{relative_path}"


def inspect_image(file_content: bytes, declared_mime: str | None = None) -> ImageInfo:
    """
    Validate an upload and read its real format and dimensions.

    The declared content type is only a first filter; the bytes must decode
    as one of the allowed formats.

    Raises:
        PayloadTooLarge: more than MEDIA_MAX_BYTES
        UnsupportedMediaType: not a PNG, JPEG, GIF or WebP image
    """
    if len(file_content) > settings.MEDIA_MAX_BYTES:
        max_mb = settings.MEDIA_MAX_BYTES / (1024 * 1024)
        actual_mb = len(file_content) / (1024 * 1024)
        raise PayloadTooLarge(f"File size ({actual_mb:.2f} MB) exceeds maximum of {max_mb:.2f} MB")

    if declared_mime and declared_mime.lower() not in ALLOWED_MIME_TYPES:
        raise UnsupportedMediaType(
            f"MIME type '{declared_mime}' is not allowed. Allowed types: {sorted(ALLOWED_MIME_TYPES)}"
        )

    try:
        with Image.open(io.BytesIO(file_content)) as img:
            image_format = img.format
            width, height = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise UnsupportedMediaType(f"File is not a valid image: {e}")

    if image_format not in ALLOWED_FORMATS:
        raise UnsupportedMediaType(f"Image format '{image_format}' is not allowed")

    mime_type, extension = ALLOWED_FORMATS[image_format]
    return ImageInfo(mime_type=mime_type, extension=extension, width=width, height=height)


def save_media(media_id: UUID, file_content: bytes, extension: str) -> str:
    """
    Write an image to the media location.

    Returns:
        The path relative to MEDIA_LOCATION

    Raises:
        OSError: If there's an error writing the file
    """
    relative_path = relative_media_path(media_id, extension)
    file_path = get_media_location() / relative_path
    file_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        file_path.write_bytes(file_content)
    except OSError as e:
        logger.error(f"Failed to save media {media_id}: {e}")
        raise

    logger.info(f"Saved media {media_id} to {file_path}")
    return relative_path


def delete_media(relative_path: str) -> bool:
    """
    Delete a media file. Returns True if a file was removed.
    """
    file_path = get_media_location() / relative_path
    try:
        file_path.unlink()
    except FileNotFoundError:
        logger.warning(f"Media file {file_path} was already gone")
        return False
    except OSError as e:
        logger.error(f"Failed to delete media file {file_path}: {e}")
        return False

    logger.info(f"Deleted media file {file_path}")
    return True
