"""
Canonical storage paths for site assets.

Why:
    Clients hand back whatever they were given: a raw storage key from an
    upload authorization, a public URL they rendered, or a bucket-prefixed key
    copied from a dashboard. Everything that reaches the configuration record
    must be the bucket-relative key so that comparisons ("did the path
    change?") and deletions address the same object.

Behavior:
    - `canonicalize()` strips scheme, host, the public-object marker
      (`/storage/v1/object/public/<bucket>/`), the store's public base URL,
      a leading `<bucket>/` and leading slashes. Query strings and fragments
      of URLs are dropped.
    - The stripping step is applied until the value stops changing, which
      makes the function idempotent for every input.
    - Empty or whitespace-only input yields "", which callers treat as invalid.
    - `url_for()` accepts either a key or a URL and returns the store's public
      URL for the canonical key.
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import unquote, urlsplit

from backend.storage.config import get_assets_bucket
from backend.storage.ports import ObjectStoreProtocol

_VALID_PATH_RE = re.compile(r"^[A-Za-z0-9._-]+(?:/[A-Za-z0-9._-]+)*$")


class PathCodec:
    """Translate between client-supplied locators and bucket-relative keys."""

    def __init__(self, store: ObjectStoreProtocol, *, bucket: Optional[str] = None) -> None:
        self._store = store
        self.bucket = (bucket or getattr(store, "bucket", None) or get_assets_bucket()).strip().strip("/")

    @property
    def public_marker(self) -> str:
        return f"/storage/v1/object/public/{self.bucket}/"

    @property
    def public_base(self) -> str:
        base = getattr(self._store, "public_base_url", "") or ""
        return str(base).rstrip("/")

    def canonicalize(self, value: object) -> str:
        current = "" if value is None else str(value)
        while True:
            nxt = self._strip_once(current)
            if nxt == current:
                return current
            current = nxt

    def url_for(self, value: object) -> str:
        path = self.canonicalize(value)
        if not path:
            return ""
        return self._store.resolve_public_url(path)

    def is_valid(self, path: str) -> bool:
        """Return True for keys that survive a `url_for`/`canonicalize` round trip."""
        if not path or not _VALID_PATH_RE.match(path):
            return False
        if any(seg in {".", ".."} for seg in path.split("/")):
            return False
        return not path.startswith(f"{self.bucket}/")

    def is_within(self, path: str, prefix: str) -> bool:
        """True when `path` is a valid key located strictly below `prefix/`."""
        folder = prefix.strip("/") + "/"
        return self.is_valid(path) and path.startswith(folder) and len(path) > len(folder)

    # --- Helpers -----------------------------------------------------------------

    def _strip_once(self, value: str) -> str:
        v = value.strip()
        if not v:
            return ""
        base = self.public_base
        if base and v.startswith(base + "/"):
            rest = v[len(base) + 1:]
            rest = rest.split("#", 1)[0].split("?", 1)[0]
            return unquote(rest)
        parts = urlsplit(v)
        if parts.scheme in ("http", "https") and parts.netloc:
            path = unquote(parts.path or "")
            idx = path.find(self.public_marker)
            if idx != -1:
                return path[idx + len(self.public_marker):]
            return path.lstrip("/")
        idx = v.find(self.public_marker)
        if idx != -1:
            return v[idx + len(self.public_marker):]
        if v.startswith(f"{self.bucket}/"):
            return v[len(self.bucket) + 1:]
        if v.startswith("/"):
            return v.lstrip("/")
        return v


__all__ = ["PathCodec"]
