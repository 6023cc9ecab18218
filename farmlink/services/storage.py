# farmlink/services/storage.py
"""Local photo storage: validates an uploaded image and returns a URL under /uploads."""
import io
import logging
import uuid
from pathlib import Path

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from farmlink.core.config import settings
from farmlink.core.errors import ValidationFailed

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"
# verified Pillow format -> stored extension
ALLOWED_FORMATS = {"JPEG": ".jpg", "PNG": ".png", "GIF": ".gif", "WEBP": ".webp", "BMP": ".bmp"}


class PhotoStorage:
    def __init__(self, root: str | None = None, max_mb: int | None = None):
        self.root = Path(root or settings.upload_dir)
        self.max_bytes = (max_mb or settings.max_upload_mb) * 1024 * 1024

    def path_for(self, url: str) -> Path:
        """Filesystem path of a URL previously returned by ``save``."""
        rel = url[len(URL_PREFIX):].lstrip("/") if url.startswith(URL_PREFIX) else url.lstrip("/")
        return self.root / rel

    def exists(self, url: str) -> bool:
        return self.path_for(url).is_file()

    def resolve(self, rel: str) -> Path | None:
        """Stored file for a path under /uploads, or None if missing or outside the root."""
        root = self.root.resolve()
        path = (root / rel).resolve()
        if root not in path.parents or not path.is_file():
            return None
        return path

    async def save(self, upload: UploadFile, folder: str, field: str = "photo") -> str:
        if not (upload.content_type or "").startswith("image/"):
            raise ValidationFailed("Only image files are allowed", content_type=upload.content_type)

        data = await upload.read()
        if not data:
            raise ValidationFailed("Please upload a photo")
        if len(data) > self.max_bytes:
            raise ValidationFailed(f"Image file size cannot exceed {settings.max_upload_mb}MB")

        try:
            img = Image.open(io.BytesIO(data))
            img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as ex:
            raise ValidationFailed(f"Invalid image file: {ex}")
        if (img.format or "").upper() not in ALLOWED_FORMATS:
            raise ValidationFailed(f"Unsupported image format: {img.format}")

        ext = ALLOWED_FORMATS[img.format.upper()]
        name = f"{field}-{uuid.uuid4().hex}{ext}"
        target = self.root / folder
        target.mkdir(parents=True, exist_ok=True)
        (target / name).write_bytes(data)

        url = f"{URL_PREFIX}/{folder}/{name}"
        logger.info("Stored %s (%s, %d bytes) as %s", upload.filename, upload.content_type, len(data), url)
        return url


def get_storage() -> PhotoStorage:
    return PhotoStorage()


def prune_missing_photos(order: dict, storage: PhotoStorage) -> dict:
    """Fields to reset on ``order`` for photos whose files are gone; empty when all exist."""
    fields = {}
    for key in ("pickup_photo", "delivery_proof_photo"):
        url = (order.get(key) or {}).get("url")
        if url and not storage.exists(url):
            logger.warning("Missing %s %s (order %s)", key, url, order.get("order_number"))
            fields[key] = None

    history = order.get("status_history") or []
    cleaned = []
    for entry in history:
        photo = entry.get("photo")
        if photo and not storage.exists(photo):
            logger.warning("Missing history photo %s (order %s)", photo, order.get("order_number"))
            entry = {**entry, "photo": None}
        cleaned.append(entry)
    if cleaned != history:
        fields["status_history"] = cleaned
    return fields
