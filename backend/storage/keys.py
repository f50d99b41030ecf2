"""
Helpers to generate standardized storage keys for site assets.

Why:
    Keep path shapes consistent across slots and provide simple, testable
    sanitization that avoids path traversal and exotic characters.

Conventions:
    - Replace-only slots use a fixed basename so overwrite-in-place works:
      logo/logo.{ext}, background/background.{ext}, audio/audio.{ext}
    - Gallery uploads use a unique basename so concurrent uploads never
      collide: showcase/{epoch_ms}-{uuid}.{ext}

Security:
    - Sanitization removes characters outside [A-Za-z0-9._-] from segments.
    - Extensions are lowercased and filtered to alphanumerics.
"""
from __future__ import annotations

import re
import unicodedata

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")

LOGO_PREFIX = "logo"
BACKGROUND_PREFIX = "background"
AUDIO_PREFIX = "audio"
SHOWCASE_PREFIX = "showcase"


def _sanitize_segment(value: str, *, fallback: str = "x") -> str:
    value = value or ""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii")
    sanitized = _SEGMENT_RE.sub("-", ascii_value).strip("-_.")
    return sanitized or fallback


def normalize_ext(ext: str | None) -> str:
    """Lowercase, drop a leading dot and non-alphanumerics; `jpeg` becomes `jpg`."""
    cleaned = "".join(ch for ch in (ext or "").strip().lower().lstrip(".") if ch.isalnum())
    return "jpg" if cleaned == "jpeg" else cleaned


def make_slot_key(*, prefix: str, basename: str, ext: str) -> str:
    """Build the fixed key of a replace-only slot.

    Returns: {prefix}/{basename}.{ext}
    """
    p = _sanitize_segment(prefix, fallback="asset")
    b = _sanitize_segment(basename, fallback=p)
    e = normalize_ext(ext)
    return f"{p}/{b}.{e}" if e else f"{p}/{b}"


def make_gallery_key(*, prefix: str, ext: str, epoch_ms: int, uuid_hex: str) -> str:
    """Build a unique key for an appended gallery object.

    Returns: {prefix}/{epoch_ms}-{uuid}.{ext}
    """
    p = _sanitize_segment(prefix, fallback=SHOWCASE_PREFIX)
    e = normalize_ext(ext)
    hexpart = _sanitize_segment((uuid_hex or "").strip(), fallback="file")
    name = f"{int(epoch_ms)}-{hexpart}"
    return f"{p}/{name}.{e}" if e else f"{p}/{name}"


__all__ = [
    "LOGO_PREFIX",
    "BACKGROUND_PREFIX",
    "AUDIO_PREFIX",
    "SHOWCASE_PREFIX",
    "normalize_ext",
    "make_slot_key",
    "make_gallery_key",
]
