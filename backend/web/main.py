"backdrop"
from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from backend.web import config as _cfg
from backend.web.routes.assets import assets_router
from backend.web.storage_wiring import AssetServices, build_asset_services


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via BACKDROP_ENABLE_DOTENV (default true
      outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("BACKDROP_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("backdrop.web")

_STORE_LABELS = {
    "SupabaseObjectStore": "supabase",
    "BlobObjectStore": "blob",
    "NullObjectStore": "unconfigured",
}
_CONFIG_LABELS = {
    "DBConfigStore": "postgres",
    "InMemoryConfigStore": "memory",
}


def create_app(services: Optional[AssetServices] = None) -> FastAPI:
    """Build the FastAPI app; tests pass their own `services`."""
    application = FastAPI(
        title="backdrop",
        description="Site asset configuration and versioning",
        version="0.1.0",
    )
    application.state.assets = services if services is not None else build_asset_services()
    application.include_router(assets_router)

    @application.get("/health")
    async def health_check():
        # Security: include no-store to avoid caching any runtime status.
        assets: AssetServices = application.state.assets
        store = _STORE_LABELS.get(type(assets.store).__name__, "custom")
        config = _CONFIG_LABELS.get(type(assets.config).__name__, "custom")
        status = "degraded" if store == "unconfigured" else "healthy"
        return JSONResponse(
            {"status": status, "objectStore": store, "configStore": config},
            headers={"Cache-Control": "private, no-store"},
        )

    logger.info("backdrop app ready (env=%s)", _cfg.current_environment())
    return application


app = create_app()
