# backend/utils/uploads.py
import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from config import settings
from utils.errors import BusinessError

logger = logging.getLogger(__name__)

IMAGE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}
IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}


def uploads_root() -> Path:
    return Path(settings.STORAGE_DIR) / "uploads"


def save_image(file: UploadFile, folder: str) -> str:
    """Store an uploaded image under uploads/<folder>/ and return its public path."""
    if file.content_type not in IMAGE_CONTENT_TYPES:
        raise BusinessError("Invalid file type", {"image": ["Image must be a jpeg, png or webp file"]}, status_code=422)

    ext = (file.filename or "").rsplit(".", 1)[-1].lower()
    if ext not in IMAGE_EXTENSIONS:
        ext = file.content_type.split("/")[-1]

    target_dir = uploads_root() / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    unique_filename = f"{uuid.uuid4()}.{ext}"

    try:
        with open(target_dir / unique_filename, "wb") as buffer:
            shutil.copyfileobj(file.file, buffer)
    finally:
        file.file.close()

    return f"/uploads/{folder}/{unique_filename}"


def delete_image(path: Optional[str]) -> None:
    if not path or not path.startswith("/uploads/"):
        return
    old_path = uploads_root() / path[len("/uploads/"):]
    if old_path.exists():
        old_path.unlink()
        logger.info(f"Removed image {old_path}")


def replace_image(file: UploadFile, folder: str, old_path: Optional[str]) -> str:
    new_path = save_image(file, folder)
    delete_image(old_path)
    return new_path
