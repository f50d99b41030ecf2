"""
Configuration and startup security checks for backdrop.

Why: A public display must never run against a half-configured backend in
production: lost commits (in-memory records) or a dummy service key would
only show up once the screens go stale. This module provides a single guard
that enforces minimal production safety constraints without burdening local
development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

from backend.storage.config import get_database_dsn


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("BACKDROP_ENV", "dev") or "dev").strip().lower()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/stage only):
    - The selected storage backend has credentials; the Supabase service role
      key is not a known dummy placeholder.
    - A Postgres DSN is configured (the in-memory record store loses state).
    - The DSN does not explicitly disable TLS.
    - The bucket bootstrap convenience flag is off.
    """
    if not _is_prod_like(current_environment()):
        return  # dev/test remain permissive

    backend = (os.getenv("ASSETS_STORAGE_BACKEND", "supabase") or "").strip().lower()
    if backend == "blob":
        if not (os.getenv("BLOB_READ_WRITE_TOKEN", "") or "").strip():
            raise SystemExit("Refusing to start: BLOB_READ_WRITE_TOKEN is unset in production.")
    else:
        srole = (os.getenv("SUPABASE_SERVICE_ROLE_KEY", "") or "").strip()
        if not srole or srole.upper() == "DUMMY_DO_NOT_USE":
            raise SystemExit(
                "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
            )
        url = (os.getenv("SUPABASE_URL", "") or "").strip().lower()
        if not url:
            raise SystemExit("Refusing to start: SUPABASE_URL is unset in production.")
        if url.startswith("http://"):
            raise SystemExit("Refusing to start: SUPABASE_URL must use https in production (got http).")

    dsn = get_database_dsn()
    if not dsn:
        raise SystemExit(
            "Refusing to start: ASSETS_DATABASE_URL/DATABASE_URL is unset in production; "
            "the in-memory record store is for development only."
        )
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: database DSN contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    if (os.getenv("AUTO_CREATE_STORAGE_BUCKETS", "false") or "").strip().lower() == "true":
        raise SystemExit(
            "Refusing to start: AUTO_CREATE_STORAGE_BUCKETS must be false in production/staging."
        )
