"""
Centralized storage configuration for the assets bucket and upload policies.

Intent:
    Provide a single source of truth for the bucket name, backend selection
    and size/TTL limits, with environment-variable overrides. Prevents drift
    across modules and enables simple testing.

Behavior:
    - ASSETS_BUCKET_DEFAULT defines the canonical bucket ("assets").
    - get_storage_backend() selects "supabase" (default) or "blob".
    - Size limits and TTLs fall back to contract defaults on missing, invalid
      or non-positive values and are clamped to their contract maximum.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os


ASSETS_BUCKET_DEFAULT = "assets"
STORAGE_BACKENDS = ("supabase", "blob")


def get_assets_bucket() -> str:
    """Return the configured assets bucket name.

    Env:
        ASSETS_BUCKET – optional override; otherwise ASSETS_BUCKET_DEFAULT.
    """
    return (os.getenv("ASSETS_BUCKET") or ASSETS_BUCKET_DEFAULT).strip()


def get_storage_backend() -> str:
    """Return the configured object-store backend ("supabase" or "blob").

    Unknown values fall back to "supabase" so a typo never silently selects a
    backend without credentials.
    """
    value = (os.getenv("ASSETS_STORAGE_BACKEND") or "supabase").strip().lower()
    return value if value in STORAGE_BACKENDS else "supabase"


__all__ = [
    "ASSETS_BUCKET_DEFAULT",
    "STORAGE_BACKENDS",
    "get_assets_bucket",
    "get_storage_backend",
]

# --- Size limits --------------------------------------------------------------

def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_showcase_max_image_bytes() -> int:
    """Maximum size of a single showcase image (default/clamped 10 MiB)."""
    contract_max = 10 * 1024 * 1024
    return _parse_int_env("SHOWCASE_MAX_IMAGE_BYTES", contract_max, contract_max=contract_max)


def get_showcase_max_video_bytes() -> int:
    """Maximum size of a single showcase video (default/clamped 100 MiB)."""
    contract_max = 100 * 1024 * 1024
    return _parse_int_env("SHOWCASE_MAX_VIDEO_BYTES", contract_max, contract_max=contract_max)


def get_upload_authorization_ttl_seconds() -> int:
    """Lifetime of a direct-upload authorization (default 2h, clamped 2h)."""
    return _parse_int_env("UPLOAD_AUTHORIZATION_TTL_SECONDS", 2 * 60 * 60, contract_max=2 * 60 * 60)


LIST_PAGE_SIZE = 200


__all__ += [
    "get_showcase_max_image_bytes",
    "get_showcase_max_video_bytes",
    "get_upload_authorization_ttl_seconds",
    "LIST_PAGE_SIZE",
]


def get_database_dsn() -> str:
    """Return the Postgres DSN for the asset record stores, or "".

    Env:
        ASSETS_DATABASE_URL – preferred; DATABASE_URL otherwise.
    """
    return (os.getenv("ASSETS_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip()


__all__ += ["get_database_dsn"]
