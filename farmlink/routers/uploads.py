# farmlink/routers/uploads.py
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from farmlink.services.storage import get_storage

router = APIRouter(prefix="/uploads", tags=["uploads"])

SERVED_TYPES = {
    ".jpg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}


# Uploaded product and delivery photos
@router.get("/{path:path}")
def uploaded_file(path: str, storage=Depends(get_storage)):
    target = storage.resolve(path)
    media_type = SERVED_TYPES.get(target.suffix.lower()) if target else None
    if not media_type:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(target, media_type=media_type)
