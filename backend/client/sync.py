"""
Client side of the asset protocol: poll versions, upload directly, commit.

Why:
    Displays must not re-download media on every poll. They fetch the small
    versioned state and only react when a slot's version changes. Admin tools
    upload bytes straight to the object store with a short-lived grant and then
    commit the returned path; the server never proxies the bytes.

Usage:
    client = AssetsClient("https://example.org")
    watcher = VersionWatcher(client, "logo")
    state = watcher.poll()   # dict on first call and after each change, else None
    client.upload_asset("logo", png_bytes, ext="png", content_type="image/png")
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from backend.assets.errors import (
    ConfigPersistenceFailure,
    InvalidInput,
    StorageAuthorizationFailure,
    StorageWriteFailure,
)

logger = logging.getLogger("backdrop.client")

SLOTS = ("logo", "audio", "background", "reviews")
UPLOAD_SLOTS = ("logo", "audio", "background")


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"http_{resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or f"http_{resp.status_code}")
    return f"http_{resp.status_code}"


class AssetsClient:
    """Thin httpx wrapper around the asset API."""

    def __init__(self, base_url: str, *, http: Optional[httpx.Client] = None, timeout: float = 10.0) -> None:
        self._base = base_url.rstrip("/")
        self._http = http or httpx.Client(timeout=timeout)

    def _url(self, path: str) -> str:
        return f"{self._base}{path}"

    def fetch_state(self, slot: str) -> Dict[str, Any]:
        if slot not in SLOTS:
            raise ValueError("unknown_slot")
        resp = self._http.get(self._url(f"/api/assets/{slot}"), headers={"Cache-Control": "no-cache"})
        resp.raise_for_status()
        return resp.json()

    def authorize_upload(self, slot: str, *, ext: str, kind: Optional[str] = None) -> Dict[str, Any]:
        if slot not in UPLOAD_SLOTS:
            raise ValueError("unknown_slot")
        body: Dict[str, Any] = {"ext": ext}
        if kind:
            body["type"] = kind
        resp = self._http.post(self._url(f"/api/assets/{slot}/upload"), json=body)
        if resp.status_code == 400:
            raise InvalidInput(_error_detail(resp))
        if resp.status_code != 200:
            raise StorageAuthorizationFailure(_error_detail(resp))
        return resp.json()

    def write_bytes(self, grant: Dict[str, Any], data: bytes, content_type: str) -> None:
        """PUT the bytes to the granted URL; nothing is committed on failure."""
        headers = {str(k): str(v) for k, v in (grant.get("headers") or {}).items()}
        headers.setdefault("content-type", content_type)
        method = str(grant.get("method") or "PUT").upper()
        try:
            resp = self._http.request(method, str(grant["signedUrl"]), content=data, headers=headers)
        except httpx.HTTPError as exc:
            raise StorageWriteFailure("storage_write_failed") from exc
        if resp.status_code >= 300:
            logger.warning("direct upload rejected status=%s path=%s", resp.status_code, grant.get("path"))
            raise StorageWriteFailure(f"storage_write_failed:{resp.status_code}")

    def commit(self, slot: str, path: str, *, kind: Optional[str] = None) -> Dict[str, Any]:
        if slot == "background":
            body: Dict[str, Any] = {"type": kind or "image", "value": path}
        else:
            body = {"path": path}
        resp = self._http.post(self._url(f"/api/assets/{slot}"), json=body)
        if resp.status_code == 400:
            raise InvalidInput(_error_detail(resp))
        if resp.status_code != 200:
            raise ConfigPersistenceFailure(_error_detail(resp))
        return resp.json()

    def upload_asset(
        self,
        slot: str,
        data: bytes,
        *,
        ext: str,
        content_type: str,
        kind: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Authorize, write the bytes directly, then commit the granted path.

        The committed value is the path returned by the grant, which may differ
        from the requested one (append-only stores make it unique).
        """
        grant = self.authorize_upload(slot, ext=ext, kind=kind)
        self.write_bytes(grant, data, content_type)
        return self.commit(slot, str(grant["path"]), kind=kind)

    def set_background_color(self, color: str) -> Dict[str, Any]:
        resp = self._http.post(self._url("/api/assets/background"), json={"type": "color", "value": color})
        if resp.status_code == 400:
            raise InvalidInput(_error_detail(resp))
        resp.raise_for_status()
        return resp.json()

    def close(self) -> None:
        self._http.close()


class VersionWatcher:
    """Remember the last seen version of one slot and report changes only."""

    def __init__(self, client: AssetsClient, slot: str) -> None:
        self._client = client
        self.slot = slot
        self.version: Optional[int] = None

    def poll(self) -> Optional[Dict[str, Any]]:
        try:
            state = self._client.fetch_state(self.slot)
        except httpx.HTTPError as exc:
            logger.warning("poll failed slot=%s error=%s", self.slot, exc.__class__.__name__)
            return None
        version = state.get("version")
        if version == self.version:
            return None
        self.version = version
        return state


__all__ = ["AssetsClient", "VersionWatcher"]
