"""
Supabase-backed object store for site assets.

This adapter implements ObjectStoreProtocol using a provided Supabase client.
It is intentionally duck-typed to avoid a hard dependency during testing. The
client is expected to expose `.storage.from_(bucket)` (supabase client) or
`.from_(bucket)` (storage3 client) returning an object offering:

- create_signed_upload_url(path, options=None) -> { signed_url | signedURL | url, token, path }
- upload(path, body, file_options) -> Any
- list(prefix, options) -> [ { name, id, updated_at, created_at, metadata } ]
- remove([path]) -> [ removed objects ]
- get_public_url(path) -> str

Security:
- The caller must ensure the client is initialized with the Service Role key.
- The assets bucket is public-read; writes only happen through short-lived
  signed upload URLs or this server-side adapter.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse as _urlparse, urlunparse as _urlunparse

from backend.assets.errors import StorageAuthorizationFailure, StorageWriteFailure
from backend.storage.config import get_assets_bucket, get_upload_authorization_ttl_seconds
from backend.storage.ports import StoredObject, UploadAuthorization

_log = logging.getLogger("backdrop.storage")


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


class SupabaseObjectStore:
    """Object store using a supabase client for Storage operations."""

    def __init__(self, client: Any, *, base_url: Optional[str] = None, bucket: Optional[str] = None):
        # Duck-typed supabase client, e.g., from `supabase import create_client(...)`.
        self._client = client
        self.bucket = (bucket or get_assets_bucket()).strip()
        base = (base_url if base_url is not None else os.getenv("SUPABASE_URL") or "").strip().rstrip("/")
        self.public_base_url = f"{base}/storage/v1/object/public/{self.bucket}" if base else ""

    # --- Helpers -----------------------------------------------------------------

    def _bucket(self) -> Any:
        """Return a bucket proxy from either supabase client or storage3 client.

        Supports two client shapes:
        - supabase.create_client(...): expose `.storage.from_(bucket)`
        - storage3 SyncStorageClient: expose `.from_(bucket)` directly
        """
        c = self._client
        storage = getattr(c, "storage", None)
        if storage is not None and hasattr(storage, "from_"):
            return storage.from_(self.bucket)
        if hasattr(c, "from_"):
            return c.from_(self.bucket)  # type: ignore[attr-defined]
        raise RuntimeError("invalid_supabase_client")

    def _norm(self, path: str) -> str:
        # Supabase expects keys relative to the bucket (storage3 prepends the bucket id)
        norm_key = (path or "").lstrip("/")
        prefix = f"{self.bucket}/"
        if norm_key.startswith(prefix):
            norm_key = norm_key[len(prefix):]
        return norm_key

    @staticmethod
    def _first_key(d: Dict[str, Any], *keys: str) -> Any:
        for k in keys:
            if k in d and d[k] is not None:
                return d[k]
        return None

    # --- Protocol methods --------------------------------------------------------

    def authorize_upload(self, path: str, *, overwrite: bool, content_type: Optional[str] = None) -> UploadAuthorization:
        b = self._bucket()
        norm_key = self._norm(path)
        try:
            try:
                res = b.create_signed_upload_url(norm_key, {"upsert": bool(overwrite)})
            except TypeError:
                # Older storage3 releases take no options; those always allow upsert via token.
                res = b.create_signed_upload_url(norm_key)
        except Exception as exc:
            _log.warning("signed upload url failed path=%s error=%s", norm_key, type(exc).__name__)
            raise StorageAuthorizationFailure("failed_to_presign_upload") from exc
        data: Dict[str, Any] = {}
        if isinstance(res, dict):
            data = res.get("data") if isinstance(res.get("data"), dict) else res
        url = self._first_key(data, "signed_url", "signedUrl", "signedURL", "url")
        token = self._first_key(data, "token")
        if url and not token:
            token = (parse_qs(_urlparse(str(url)).query).get("token") or [None])[0]
        if not url or not token:
            raise StorageAuthorizationFailure("failed_to_presign_upload")
        headers = {"x-upsert": "true"} if overwrite else {}
        if content_type:
            headers["content-type"] = content_type
        return UploadAuthorization(
            path=self._norm(str(self._first_key(data, "path") or norm_key)),
            token=str(token),
            url=self._normalize_signed_url_host(str(url)),
            method="PUT",
            headers=headers,
            expires_in=get_upload_authorization_ttl_seconds(),
        )

    def put_object(self, path: str, body: bytes, content_type: str) -> str:
        """Upload bytes server-side; refuses to overwrite an existing key."""
        b = self._bucket()
        norm_key = self._norm(path)
        # Some client versions expect file options with either kebab or camel case.
        opts = {"content-type": content_type, "contentType": content_type, "upsert": "false"}
        try:
            b.upload(norm_key, body, opts)
        except Exception as exc:
            raise StorageWriteFailure("storage_write_failed") from exc
        return norm_key

    def list(self, prefix: str, *, limit: int) -> List[StoredObject]:
        b = self._bucket()
        folder = self._norm(prefix).strip("/")
        res = b.list(
            folder,
            {"limit": int(limit), "offset": 0, "sortBy": {"column": "updated_at", "order": "desc"}},
        )
        rows = res.get("data") if isinstance(res, dict) else res
        items: List[StoredObject] = []
        for row in rows or []:
            if not isinstance(row, dict):
                continue
            name = row.get("name")
            # Folder placeholders come back without an id.
            if not name or row.get("id") is None:
                continue
            meta = row.get("metadata") if isinstance(row.get("metadata"), dict) else {}
            size = meta.get("size")
            items.append(
                StoredObject(
                    path=f"{folder}/{name}" if folder else str(name),
                    updated_at=_parse_ts(row.get("updated_at") or row.get("created_at")),
                    content_type=meta.get("mimetype") or meta.get("contentType"),
                    size=int(size) if isinstance(size, (int, float)) else None,
                )
            )
        return items[: int(limit)]

    def remove(self, path: str) -> bool:
        b = self._bucket()
        res = b.remove([self._norm(path)])
        rows = res.get("data") if isinstance(res, dict) else res
        # Supabase reports removed objects; an empty list means nothing was there.
        return bool(rows)

    def resolve_public_url(self, path: str) -> str:
        norm_key = self._norm(path)
        if self.public_base_url:
            return f"{self.public_base_url}/{norm_key}"
        url = str(self._bucket().get_public_url(norm_key))
        # storage3 appends a bare "?" when no transform options are given.
        return url[:-1] if url.endswith("?") else url

    # --- Local helpers ---------------------------------------------------------

    def _normalize_signed_url_host(self, url: str) -> str:
        """For local dev, rewrite signed URL host to SUPABASE_URL host.

        Why:
            Some local setups return signed URLs with container-internal hosts
            that are not resolvable from the browser. Rewriting the host to the
            configured SUPABASE_URL keeps signatures valid (token is path-bound).

        Behavior:
            - Only rewrites when SUPABASE_REWRITE_SIGNED_URL_HOST=true.
            - Ensures the "/storage/v1" prefix on storage object paths.
        """
        base = (os.getenv("SUPABASE_URL") or "").strip()
        force = (os.getenv("SUPABASE_REWRITE_SIGNED_URL_HOST", "false").lower() == "true")
        if not base or not force:
            return url
        src = _urlparse(url)
        dst = _urlparse(base)
        if not src.scheme or not src.netloc or not dst.netloc:
            return url
        path = src.path or "/"
        if path.startswith("/object/"):
            path = "/storage/v1" + path
        while "//" in path:
            path = path.replace("//", "/")
        return _urlunparse((dst.scheme or src.scheme, dst.netloc, path, src.params, src.query, src.fragment))


__all__ = ["SupabaseObjectStore"]
