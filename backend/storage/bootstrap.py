"""
Supabase Storage bootstrap helpers.

Intent:
    Ensure the public assets bucket exists on startup (dev/stage friendly).

Security & Safety:
    - Controlled by `AUTO_CREATE_STORAGE_BUCKETS=true` env flag.
    - Requires server-side `SUPABASE_SERVICE_ROLE_KEY`.
    - Idempotent: lists buckets first, creates only missing ones.
    - Only relevant for the Supabase backend; the blob store has no buckets.

Usage:
    Call `ensure_buckets_from_env()` after wiring the object store.
"""
from __future__ import annotations

import inspect
import logging
import os
from typing import Iterable

import requests

from backend.storage.config import get_assets_bucket, get_storage_backend

_log = logging.getLogger("backdrop.storage")


def _env_flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() == "true"


def _supports_timeout(func) -> bool:
    """Return True if callable signature supports a 'timeout' kw or **kwargs.

    This guards tests that monkeypatch `bootstrap.requests` with simple callables
    not accepting a `timeout` keyword argument, while keeping timeouts enabled
    for real HTTP clients.
    """
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return False
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values()):
        return True
    return "timeout" in sig.parameters


def _auth_headers(key: str) -> dict:
    return {"apikey": key, "Authorization": f"Bearer {key}"}


def _list_buckets(base_url: str, key: str) -> list[dict]:
    url = f"{base_url.rstrip('/')}/storage/v1/bucket"
    kwargs: dict = {"headers": _auth_headers(key)}
    if _supports_timeout(requests.get):
        kwargs["timeout"] = (3, 10)
    try:
        resp = requests.get(url, **kwargs)
    except Exception as exc:
        _log.warning("list buckets failed: error=%s", type(exc).__name__)
        return []
    _log.debug("GET /storage/v1/bucket status=%s", getattr(resp, "status_code", "?"))
    try:
        data = resp.json()
    except ValueError:
        data = []
    return data if isinstance(data, list) else []


def _create_bucket(base_url: str, key: str, name: str, public: bool) -> bool:
    url = f"{base_url.rstrip('/')}/storage/v1/bucket"
    headers = dict(_auth_headers(key), **{"Content-Type": "application/json"})
    kwargs: dict = {"headers": headers, "json": {"name": name, "id": name, "public": public}}
    if _supports_timeout(requests.post):
        kwargs["timeout"] = (3, 10)
    try:
        resp = requests.post(url, **kwargs)
    except Exception as exc:
        _log.warning("create bucket '%s' failed: error=%s", name, type(exc).__name__)
        return False
    status = getattr(resp, "status_code", 500)
    # Log outcome for diagnostics (e.g., 409 conflict / 403 forbidden / 503 unavailable)
    if status >= 300:
        _log.warning("create bucket '%s' failed: status=%s body=%s", name, status, getattr(resp, "text", ""))
    else:
        _log.debug("POST /storage/v1/bucket status=%s created='%s'", status, name)
    return status < 300


def ensure_buckets(base_url: str, key: str, buckets: Iterable[str], *, public: bool = True) -> bool:
    """Ensure each bucket in `buckets` exists; create if missing.

    Parameters:
        base_url: Supabase API base (e.g., http://127.0.0.1:54321)
        key: Service role JWT for server-side administration
        buckets: Iterable of bucket names to ensure exist
        public: Create missing buckets public-read (site assets are public)

    Behavior:
        - Lists existing buckets, creates only missing ones (idempotent).
        - Logs non-2xx responses for visibility.
        - Verifies with a follow-up list and warns if a bucket is still missing.

    Returns:
        True (work attempted). Warnings in logs indicate problems to investigate.
    """
    wanted = {name for name in buckets if name}
    existing = _list_buckets(base_url, key)
    names = {str(it.get("name") or it.get("id") or "") for it in existing}
    for name in wanted - names:
        _create_bucket(base_url, key, name, public=public)
    final = _list_buckets(base_url, key)
    final_names = {str(it.get("name") or it.get("id") or "") for it in final}
    for name in wanted - final_names:
        _log.warning("bucket '%s' still missing after create attempt", name)
    return True


def ensure_buckets_from_env() -> bool:
    """Ensure the assets bucket when AUTO_CREATE_STORAGE_BUCKETS=true.

    Env:
        - AUTO_CREATE_STORAGE_BUCKETS=true (opt-in safety)
        - ASSETS_STORAGE_BACKEND must be "supabase"
        - SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY (server-side credentials)
        - ASSETS_BUCKET (default: assets)

    Behavior:
        - No-ops (False) when the flag is off, another backend is selected or
          mandatory env is missing; otherwise delegates to ensure_buckets().
    """
    if not _env_flag("AUTO_CREATE_STORAGE_BUCKETS"):
        return False
    if get_storage_backend() != "supabase":
        return False
    _log.warning(
        "AUTO_CREATE_STORAGE_BUCKETS=true detected (dev/test convenience only). Disable this flag in prod/stage environments."
    )
    base = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not base or not key:
        return False
    return ensure_buckets(base, key, [get_assets_bucket()], public=True)


__all__ = ["ensure_buckets_from_env", "ensure_buckets"]
