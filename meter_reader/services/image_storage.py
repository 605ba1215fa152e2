"""Local storage for uploaded meter photos."""

import logging
import mimetypes
import uuid
from pathlib import Path

from meter_reader.core.config import settings

logger = logging.getLogger(__name__)

UPLOADS_MOUNT = "/uploads"


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_image(image_bytes: bytes, content_type: str | None) -> str:
    """Write the photo under a fresh name and return that name as its reference."""
    extension = mimetypes.guess_extension(content_type or "") or ".jpg"
    image_ref = f"meter_{uuid.uuid4().hex}{extension}"
    (upload_dir() / image_ref).write_bytes(image_bytes)
    return image_ref


def delete_image(image_ref: str) -> None:
    """Remove a stored photo; a missing file is ignored."""
    try:
        (Path(settings.UPLOAD_DIR) / image_ref).unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove image %s: %s", image_ref, exc)


def image_url(image_ref: str) -> str:
    """Public URL of a stored photo."""
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{UPLOADS_MOUNT}/{image_ref}"
