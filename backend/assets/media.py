"""Media type allow-lists and classification for site assets."""
from __future__ import annotations

import mimetypes
import posixpath
from enum import Enum
from typing import Optional

from backend.storage.keys import normalize_ext


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    UNRECOGNIZED = "unrecognized"


IMAGE_EXTS = ("png", "jpg", "webp", "gif")
VIDEO_EXTS = ("mp4", "mov", "webm")
AUDIO_EXTS = ("m4a", "mp3", "aac", "wav", "ogg")

# Allow-listed content types and the extension stored for each.
CONTENT_TYPE_EXTS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/webm": "webm",
}

_GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def base_content_type(value: Optional[str]) -> str:
    """Strip parameters: "image/png; charset=binary" -> "image/png"."""
    return str(value or "").split(";", 1)[0].strip().lower()


def ext_from_name(name: Optional[str]) -> str:
    _, ext = posixpath.splitext(posixpath.basename(name or ""))
    return normalize_ext(ext)


def resolve_content_type(filename: Optional[str], declared: Optional[str]) -> str:
    """Prefer the declared content type; sniff from the filename when generic."""
    ct = base_content_type(declared)
    if ct not in _GENERIC_TYPES:
        return ct
    guessed, _ = mimetypes.guess_type(filename or "")
    return base_content_type(guessed)


def classify(name: Optional[str] = None, content_type: Optional[str] = None) -> MediaKind:
    """Classify an object as image, video or unrecognized.

    An allow-listed content type decides; otherwise the file extension does.
    """
    ct = base_content_type(content_type)
    if ct in CONTENT_TYPE_EXTS:
        return MediaKind.IMAGE if ct.startswith("image/") else MediaKind.VIDEO
    ext = ext_from_name(name)
    if ext in VIDEO_EXTS:
        return MediaKind.VIDEO
    if ext in IMAGE_EXTS:
        return MediaKind.IMAGE
    return MediaKind.UNRECOGNIZED


def extension_for(filename: Optional[str], content_type: Optional[str]) -> str:
    """Pick the stored extension; an allow-listed content type wins over the name."""
    ct = base_content_type(content_type)
    if ct in CONTENT_TYPE_EXTS:
        return CONTENT_TYPE_EXTS[ct]
    ext = ext_from_name(filename)
    return ext if ext in IMAGE_EXTS + VIDEO_EXTS else ""


def allowed_exts(kind: MediaKind) -> tuple[str, ...]:
    return VIDEO_EXTS if kind is MediaKind.VIDEO else IMAGE_EXTS


__all__ = [
    "MediaKind",
    "IMAGE_EXTS",
    "VIDEO_EXTS",
    "AUDIO_EXTS",
    "CONTENT_TYPE_EXTS",
    "base_content_type",
    "ext_from_name",
    "resolve_content_type",
    "classify",
    "extension_for",
    "allowed_exts",
]
