"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors), and
keep every test independent of the developer's shell environment.
"""
import sys
from pathlib import Path

import pytest

# Ensure the repo root and the tests dir are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

_ASSET_ENV_VARS = (
    "BACKDROP_ENV",
    "ASSETS_STORAGE_BACKEND",
    "ASSETS_BUCKET",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_REWRITE_SIGNED_URL_HOST",
    "SUPABASE_FALLBACK_STORAGE3",
    "BLOB_READ_WRITE_TOKEN",
    "BLOB_API_URL",
    "ASSETS_DATABASE_URL",
    "DATABASE_URL",
    "SUPABASE_DB_URL",
    "SHOWCASE_MAX_IMAGE_BYTES",
    "SHOWCASE_MAX_VIDEO_BYTES",
    "UPLOAD_AUTHORIZATION_TTL_SECONDS",
    "AUTO_CREATE_STORAGE_BUCKETS",
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_asset_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from an unconfigured dev environment.

    Why:
        Wiring and config guards read the process environment; a developer's
        exported SUPABASE_URL or DATABASE_URL must not leak into unit tests.
    """
    for var in _ASSET_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield
