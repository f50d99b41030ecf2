"""
Wiring of the asset services from environment configuration.

Why:
    Slot services depend on three handles only: an object store, the
    configuration record store and the reviews repository. This module builds
    them once at startup, picks the object store backend named by
    `ASSETS_STORAGE_BACKEND` and falls back to safe defaults (Null store,
    in-memory records) when a backend is not configured or not reachable, so
    the app still boots locally.

Security:
    Requires SUPABASE_SERVICE_ROLE_KEY/SUPABASE_URL (supabase backend) or
    BLOB_READ_WRITE_TOKEN (blob backend). Only server-side handles are built;
    no secrets are exposed to clients.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlparse

from backend.assets.config_store import ConfigStoreProtocol, InMemoryConfigStore
from backend.assets.paths import PathCodec
from backend.assets.reviews_repo import InMemoryReviewsRepo, ReviewsRepoProtocol
from backend.assets.services.reviews import ReviewsService
from backend.assets.services.showcase import ShowcaseService, ShowcaseSettings
from backend.assets.services.slots import (
    AUDIO_SLOT,
    BACKGROUND_SLOT,
    LOGO_SLOT,
    AssetSlotService,
    BackgroundService,
)
from backend.storage.config import get_database_dsn, get_storage_backend
from backend.storage.ports import NullObjectStore, ObjectStoreProtocol

logger = logging.getLogger("backdrop.web")


@dataclass
class AssetServices:
    """Slot services sharing one object store and one configuration store."""

    logo: AssetSlotService
    audio: AssetSlotService
    background: BackgroundService
    showcase: ShowcaseService
    reviews: ReviewsService
    store: ObjectStoreProtocol
    config: ConfigStoreProtocol

    @classmethod
    def from_stores(
        cls,
        *,
        store: ObjectStoreProtocol,
        config: ConfigStoreProtocol,
        reviews_repo: ReviewsRepoProtocol,
        showcase_settings: Optional[ShowcaseSettings] = None,
    ) -> "AssetServices":
        codec = PathCodec(store)
        return cls(
            logo=AssetSlotService(LOGO_SLOT, config, store, codec),
            audio=AssetSlotService(AUDIO_SLOT, config, store, codec),
            background=BackgroundService(BACKGROUND_SLOT, config, store, codec),
            showcase=ShowcaseService(store, showcase_settings or ShowcaseSettings(), codec),
            reviews=ReviewsService(reviews_repo, config),
            store=store,
            config=config,
        )


def _is_local_host(url: str) -> bool:
    try:
        host = (urlparse(url).hostname or "").lower()
    except Exception:
        host = ""
    return host in {"127.0.0.1", "localhost"}


def _build_supabase_store() -> Optional[ObjectStoreProtocol]:
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        return None
    from backend.storage.supabase_store import SupabaseObjectStore

    # Preferred: official client when the key is a JWT (remote/prod)
    try:
        from supabase import create_client

        return SupabaseObjectStore(create_client(url, key), base_url=url)
    except Exception as exc:
        logger.warning("Supabase client unavailable: %s: %s", exc.__class__.__name__, str(exc))

    # Local `supabase start` keys are not JWTs; talk to storage3 directly.
    force = (os.getenv("SUPABASE_FALLBACK_STORAGE3", "false") or "").strip().lower() == "true"
    if not force and not _is_local_host(url):
        return None
    try:
        from storage3._sync.client import SyncStorageClient
    except Exception as exc:  # pragma: no cover - storage3 ships with supabase
        logger.warning("storage3 client import failed: %s: %s", exc.__class__.__name__, str(exc))
        return None
    headers = {"Authorization": f"Bearer {key}", "apikey": key}
    client = SyncStorageClient(f"{url.rstrip('/')}/storage/v1", headers)
    return SupabaseObjectStore(client, base_url=url)


def _build_blob_store() -> Optional[ObjectStoreProtocol]:
    token = (os.getenv("BLOB_READ_WRITE_TOKEN") or "").strip()
    if not token:
        return None
    from backend.storage.blob_store import BlobObjectStore

    try:
        return BlobObjectStore(token)
    except ValueError as exc:
        logger.warning("Blob store token rejected: %s", str(exc))
        return None


def build_object_store() -> ObjectStoreProtocol:
    """Return the configured object store, or the Null store when unavailable."""
    backend = get_storage_backend()
    try:
        store = _build_blob_store() if backend == "blob" else _build_supabase_store()
    except Exception as exc:  # pragma: no cover - keep the app bootable
        logger.warning("Object store wiring skipped: %s: %s", exc.__class__.__name__, str(exc))
        store = None
    if store is None:
        logger.warning("Object store not configured (backend=%s); uploads return 503", backend)
        return NullObjectStore()
    logger.info("Object store wired: %s", backend)
    if backend == "supabase":
        from backend.storage.bootstrap import ensure_buckets_from_env

        try:
            ensure_buckets_from_env()
        except Exception as exc:
            # Do not block wiring on bootstrap issues in dev.
            logger.warning("Bucket bootstrap failed: %s", exc.__class__.__name__)
    return store


def build_record_stores() -> Tuple[ConfigStoreProtocol, ReviewsRepoProtocol]:
    """Return (config store, reviews repo): Postgres when reachable, else in-memory."""
    dsn = get_database_dsn()
    if dsn:
        from backend.assets import repo_db

        status = repo_db.probe(dsn)
        if status["ok"]:
            logger.info("Asset records wired: postgres")
            return repo_db.DBConfigStore(dsn), repo_db.DBReviewsRepo(dsn)
        logger.warning("Asset database unreachable (%s); using in-memory records", status["error"])
    return InMemoryConfigStore(), InMemoryReviewsRepo()


def build_asset_services() -> AssetServices:
    config, reviews_repo = build_record_stores()
    return AssetServices.from_stores(store=build_object_store(), config=config, reviews_repo=reviews_repo)


__all__ = ["AssetServices", "build_object_store", "build_record_stores", "build_asset_services"]
