import io
import logging
import pathlib
import uuid
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from app.config import settings
from app.exceptions import DependencyError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG", "WEBP", "GIF"}


@dataclass
class Upload:
    filename: str
    content: bytes


@dataclass
class StoredFile:
    url: str
    storage_id: str
    thumbnail_url: str = ""


def _root() -> pathlib.Path:
    root = pathlib.Path(settings.UPLOAD_DIR)
    root.mkdir(parents=True, exist_ok=True)
    return root


def _url_for(storage_id: str) -> str:
    return f"/uploads/{storage_id}"


def _thumb_id(storage_id: str) -> str:
    path = pathlib.PurePosixPath(storage_id)
    return str(path.with_name(f"{path.stem}_thumb.jpg"))


def path_for(storage_id: str) -> pathlib.Path:
    """Absolute path of a stored file. Refuses ids that escape the upload root."""
    root = _root().resolve()
    path = (root / storage_id).resolve()
    if root not in path.parents:
        raise ValidationError.for_field("storage_id", "Invalid storage id")
    return path


def save_file(content: bytes, filename: str, folder: str) -> StoredFile:
    suffix = pathlib.PurePath(filename or "").suffix.lower()
    storage_id = f"{folder}/{uuid.uuid4().hex}{suffix}"
    path = path_for(storage_id)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    except OSError as e:
        logger.error("Failed to store %s: %s", storage_id, e)
        raise DependencyError("File storage failed") from e
    return StoredFile(url=_url_for(storage_id), storage_id=storage_id)


def save_image(content: bytes, filename: str, folder: str) -> StoredFile:
    """Store an uploaded image together with a JPEG thumbnail."""
    try:
        with Image.open(io.BytesIO(content)) as header:
            fmt = header.format
            header.verify()
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError.for_field("images", f"{filename or 'file'} is not a valid image") from e
    if fmt not in ALLOWED_IMAGE_FORMATS:
        raise ValidationError.for_field("images", f"Unsupported image format: {fmt}")

    stored = save_file(content, filename, folder)

    thumb_id = _thumb_id(stored.storage_id)
    try:
        with Image.open(io.BytesIO(content)) as img:
            img = img.convert("RGB")
            img.thumbnail((settings.THUMBNAIL_SIZE, settings.THUMBNAIL_SIZE))
            img.save(path_for(thumb_id), "JPEG", quality=80)
        stored.thumbnail_url = _url_for(thumb_id)
    except OSError as e:
        # The original is stored; fall back to serving it as its own thumbnail.
        logger.error("Thumbnail generation failed for %s: %s", stored.storage_id, e)
        stored.thumbnail_url = stored.url
    return stored


def delete_file(storage_id: str) -> None:
    if not storage_id:
        return
    try:
        for sid in (storage_id, _thumb_id(storage_id)):
            path_for(sid).unlink(missing_ok=True)
    except OSError as e:
        logger.error("Failed to delete %s: %s", storage_id, e)
        raise DependencyError("File deletion failed") from e
