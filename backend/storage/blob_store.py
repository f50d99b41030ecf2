"""
Public append-only blob store (Vercel Blob REST API) for site assets.

Intent:
    Second ObjectStoreProtocol backend. Every write lands on a fresh, unique
    pathname (`<stem>-<random>.<ext>`), nothing is ever overwritten, and the
    lifecycle of superseded objects is handled by listing and deletion.

Behavior:
    - authorize_upload() mints a client token: an HMAC-SHA256 signed payload
      derived from the read-write token, scoped to one pathname and valid for
      a short time. The browser PUTs the bytes directly to the blob API.
    - put_object() performs the same PUT server-side with the read-write token.
    - list() pages through `GET /?prefix=` to the end (the API orders by
      pathname), then returns the newest `limit` objects by upload time.
    - remove() probes the blob first so a missing object reports False, then
      issues `POST /delete`.
    - Public URLs have the shape https://<store>.public.blob.vercel-storage.com/<path>.

Security:
    The read-write token never leaves the server; clients only receive the
    derived client token.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import os
import posixpath
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from backend.assets.errors import StorageAuthorizationFailure, StorageWriteFailure
from backend.storage.config import get_assets_bucket, get_upload_authorization_ttl_seconds
from backend.storage.ports import StoredObject, UploadAuthorization

_log = logging.getLogger("backdrop.storage")

BLOB_API_URL_DEFAULT = "https://blob.vercel-storage.com"
BLOB_API_VERSION = "11"
LIST_PAGE_SIZE = 1000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _newest_first_key(obj: StoredObject):
    return (obj.updated_at or _EPOCH, obj.path)


def store_id_from_token(token: str) -> str:
    """Extract the store id from a `vercel_blob_rw_<storeId>_<secret>` token."""
    parts = (token or "").split("_")
    if len(parts) < 4 or not parts[3]:
        raise ValueError("invalid_blob_token")
    return parts[3]


def unique_pathname(path: str) -> str:
    """Append a random suffix to the basename: `logo/logo.png` -> `logo/logo-<hex>.png`."""
    folder, name = posixpath.split(path.lstrip("/"))
    stem, ext = posixpath.splitext(name)
    suffixed = f"{stem or 'file'}-{secrets.token_hex(8)}{ext.lower()}"
    return f"{folder}/{suffixed}" if folder else suffixed


class BlobObjectStore:
    """Object store backed by a public, append-only blob service."""

    def __init__(
        self,
        token: str,
        *,
        api_url: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        bucket: Optional[str] = None,
    ) -> None:
        self._token = token
        self._store_id = store_id_from_token(token)
        self._api = (api_url or os.getenv("BLOB_API_URL") or BLOB_API_URL_DEFAULT).rstrip("/")
        self._http = http or httpx.Client(timeout=httpx.Timeout(10.0, connect=3.0))
        # Blob stores have no buckets; keep the name so paths stay comparable.
        self.bucket = (bucket or get_assets_bucket()).strip()
        self.public_base_url = f"https://{self._store_id.lower()}.public.blob.vercel-storage.com"

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {"authorization": f"Bearer {token or self._token}", "x-api-version": BLOB_API_VERSION}

    def _client_token(self, pathname: str, *, content_type: Optional[str], ttl: int) -> str:
        claims: Dict[str, Any] = {
            "pathname": pathname,
            "validUntil": int(time.time() * 1000) + ttl * 1000,
            "addRandomSuffix": False,
            "allowOverwrite": False,
        }
        if content_type:
            claims["allowedContentTypes"] = [content_type]
        payload = base64.b64encode(json.dumps(claims, separators=(",", ":")).encode("utf-8")).decode("ascii")
        signature = hmac.new(self._token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()
        secured = base64.b64encode(f"{signature}.{payload}".encode("utf-8")).decode("ascii")
        return f"vercel_blob_client_{self._store_id}_{secured}"

    # --- Protocol methods --------------------------------------------------------

    def authorize_upload(self, path: str, *, overwrite: bool, content_type: Optional[str] = None) -> UploadAuthorization:
        # Append-only: `overwrite` cannot be honored, the unique path is returned instead.
        pathname = unique_pathname(path)
        ttl = get_upload_authorization_ttl_seconds()
        try:
            token = self._client_token(pathname, content_type=content_type, ttl=ttl)
        except Exception as exc:
            raise StorageAuthorizationFailure("failed_to_presign_upload") from exc
        headers = self._headers(token)
        if content_type:
            headers["x-content-type"] = content_type
        url = str(httpx.URL(f"{self._api}/", params={"pathname": pathname}))
        return UploadAuthorization(path=pathname, token=token, url=url, method="PUT", headers=headers, expires_in=ttl)

    def put_object(self, path: str, body: bytes, content_type: str) -> str:
        pathname = unique_pathname(path)
        headers = self._headers()
        headers.update({"x-content-type": content_type, "x-add-random-suffix": "0"})
        try:
            resp = self._http.put(f"{self._api}/", params={"pathname": pathname}, content=body, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageWriteFailure("storage_write_failed") from exc
        data = resp.json() if resp.content else {}
        return str(data.get("pathname") or pathname)

    def list(self, prefix: str, *, limit: int) -> List[StoredObject]:
        folder = prefix.strip("/") + "/"
        items: List[StoredObject] = []
        cursor: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"prefix": folder, "limit": LIST_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            resp = self._http.get(f"{self._api}/", params=params, headers=self._headers())
            resp.raise_for_status()
            data = resp.json()
            for blob in data.get("blobs") or []:
                items.append(
                    StoredObject(
                        path=str(blob.get("pathname") or ""),
                        updated_at=_parse_ts(blob.get("uploadedAt")),
                        content_type=blob.get("contentType"),
                        size=blob.get("size"),
                    )
                )
            cursor = data.get("cursor")
            if not data.get("hasMore") or not cursor:
                break
        items = [it for it in items if it.path]
        items.sort(key=_newest_first_key, reverse=True)
        return items[:limit]

    def remove(self, path: str) -> bool:
        url = self.resolve_public_url(path)
        probe = self._http.get(f"{self._api}/", params={"url": url}, headers=self._headers())
        if probe.status_code == 404:
            return False
        probe.raise_for_status()
        resp = self._http.post(f"{self._api}/delete", json={"urls": [url]}, headers=self._headers())
        resp.raise_for_status()
        _log.debug("blob removed path=%s", path)
        return True

    def resolve_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path.lstrip('/')}"


__all__ = ["BlobObjectStore", "store_id_from_token", "unique_pathname"]
