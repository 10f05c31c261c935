"""
Image upload service.
Stores images through Django's default storage (local media or S3).
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import UploadedFile
from django.utils import timezone

from config.storage import is_s3_enabled

logger = logging.getLogger(__name__)

# Allowed image types
ALLOWED_MIME_TYPES = {
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/png': '.png',
    'image/gif': '.gif',
    'image/webp': '.webp',
}

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB


@dataclass(frozen=True)
class UploadedImageDTO:
    image_url: str
    file_name: str
    file_size: int
    file_type: str


def validate_image(file: UploadedFile) -> Tuple[bool, Optional[str]]:
    """
    Validate an uploaded image.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if file.content_type not in ALLOWED_MIME_TYPES:
        return False, "Chỉ chấp nhận file ảnh (JPEG, PNG, GIF, WEBP)"

    if file.size > MAX_FILE_SIZE:
        return False, "Kích thước file không được vượt quá 5MB"

    return True, None


def upload_image(file: UploadedFile, folder: str = "uploads") -> UploadedImageDTO:
    """
    Save an image under <folder>/<yyyy>/<mm>/<uuid><ext>.

    Raises:
        ValueError: If file validation fails
    """
    is_valid, error = validate_image(file)
    if not is_valid:
        raise ValueError(error)

    # Extension follows the validated content type
    extension = ALLOWED_MIME_TYPES[file.content_type]
    now = timezone.now()
    path = f"{folder}/{now:%Y}/{now:%m}/{uuid.uuid4().hex}{extension}"

    saved_path = default_storage.save(path, file)

    if is_s3_enabled():
        image_url = default_storage.url(saved_path)
    else:
        media_url = getattr(settings, 'MEDIA_URL', '/media/')
        image_url = f"{media_url}{saved_path}"

    logger.info(f"Stored image {file.name} ({file.size} bytes) at {saved_path}")

    return UploadedImageDTO(
        image_url=image_url,
        file_name=file.name,
        file_size=file.size,
        file_type=file.content_type,
    )
