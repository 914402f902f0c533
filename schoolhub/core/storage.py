"""
File uploads to Supabase storage buckets (leave attachments, notification images).
"""

import time

from fastapi import HTTPException, UploadFile, status

from schoolhub.core.config import settings
from schoolhub.core.database import get_supabase
from schoolhub.core.logging import get_logger

logger = get_logger("storage")

IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
DOCUMENT_TYPES = IMAGE_TYPES | {"application/pdf"}


def build_object_path(user_id: str, filename: str) -> str:
    """<user_id>-<epoch ms>.<ext>, keeping the client's extension."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    return f"{user_id}-{int(time.time() * 1000)}.{ext}"


async def upload_to_bucket(bucket: str, file: UploadFile, user_id: str, allowed_types: set[str]) -> dict:
    if file.content_type not in allowed_types:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type '{file.content_type}'",
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File exceeds the {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit",
        )

    path = build_object_path(user_id, file.filename or "")
    db = get_supabase()
    bucket_client = db.storage.from_(bucket)
    bucket_client.upload(path, content, {"content-type": file.content_type})
    url = bucket_client.get_public_url(path)

    logger.info("Uploaded %s (%d bytes) to bucket %s", path, len(content), bucket)
    return {"url": url, "path": path}
