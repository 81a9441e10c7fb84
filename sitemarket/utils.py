# sitemarket/utils.py
"""Shared utilities: logging setup, query-string parsing and upload storage."""
import os
import logging
import uuid
from typing import Optional
from dotenv import load_dotenv
from fastapi import UploadFile
from .errors import ValidationError

load_dotenv()

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("sitemarket")

def parse_positive_int(value, default: int, maximum: Optional[int] = None) -> int:
    """Parse a query-string integer, clamping to >= 1 and falling back on malformed input."""
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    n = max(1, n)
    if maximum is not None:
        n = min(n, maximum)
    return n

def parse_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

def save_upload(upload: UploadFile) -> str:
    """Store an uploaded image under UPLOAD_DIR and return its public path."""
    ext = os.path.splitext(upload.filename or "")[1].lower()
    if ext not in ALLOWED_IMAGE_EXTS:
        raise ValidationError("Unsupported image type")
    data = upload.file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError("Image exceeds 5MB limit")
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    filename = f"{uuid.uuid4().hex}{ext}"
    with open(os.path.join(UPLOAD_DIR, filename), "wb") as fh:
        fh.write(data)
    logger.info("Stored upload %s (%d bytes)", filename, len(data))
    return f"/uploads/{filename}"
