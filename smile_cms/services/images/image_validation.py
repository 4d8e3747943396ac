"""
Image file checks and object-key helpers for reward image uploads.
"""
import math
import os
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from ...core.errors import ValidationError
from ...models.roles import RewardCategory

DEFAULT_MAX_SIZE_MB = 5
DEFAULT_ALLOWED_TYPES = ("image/jpeg", "image/png", "image/webp")

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class ImageFile:
    """An uploaded image held in memory."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ImageValidationResult:
    valid: bool
    error: Optional[str] = None


def format_file_size(size_bytes: int) -> str:
    """Human-readable size, e.g. ``"1.5 MB"``."""
    if size_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size_bytes, 1024))), len(units) - 1)
    value = round(size_bytes / math.pow(1024, i), 1)
    return f"{value:g} {units[i]}"


def _short_type_name(mime_type: str) -> str:
    return mime_type.replace("image/", "").upper()


def validate_image(
    size: int,
    content_type: Optional[str],
    max_size_in_mb: float = DEFAULT_MAX_SIZE_MB,
    allowed_types: Sequence[str] = DEFAULT_ALLOWED_TYPES,
) -> ImageValidationResult:
    """
    Check an image against the size limit, then the type allow-list.

    Stops at the first failure. Size is compared in bytes against
    ``max_size_in_mb * 1024 * 1024``.
    """
    max_size_bytes = max_size_in_mb * 1024 * 1024
    if size > max_size_bytes:
        return ImageValidationResult(
            valid=False,
            error=f"File size exceeds {max_size_in_mb:g}MB limit ({size / (1024 * 1024):.2f} MB)",
        )

    if (content_type or "").lower() not in {t.lower() for t in allowed_types}:
        return ImageValidationResult(
            valid=False,
            error="File type not supported. Please upload "
            + ", ".join(_short_type_name(t) for t in allowed_types),
        )

    return ImageValidationResult(valid=True)


def generate_object_key(unit_id: str, category: str, filename: str) -> str:
    """
    Build a collision-resistant object path: ``{unit_id}/{category}/{epoch_ms}_{token}.{ext}``.

    The extension comes from the original filename and defaults to ``jpg``.
    """
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "jpg"
    token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(6))
    return f"{unit_id}/{category}/{int(time.time() * 1000)}_{token}.{ext}"


def extract_category_from_path(path: Optional[str]) -> Optional[str]:
    """
    Reward category named by an object key or public URL, or None.

    Works for keys from ``generate_object_key`` with or without a leading
    ``scheduled/`` segment.
    """
    known = {c.value for c in RewardCategory}
    for segment in (path or "").split("/"):
        if segment in known:
            return segment
    return None


def parse_category(value: Optional[str]) -> RewardCategory:
    try:
        return RewardCategory(value)
    except ValueError:
        raise ValidationError(
            "Invalid category. Expected one of: " + ", ".join(c.value for c in RewardCategory),
            field="category",
        )
