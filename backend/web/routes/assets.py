"""
Asset API routes: replace-only slots, showcase gallery and reviews.

Why:
    Displays poll these endpoints and compare version counters; admins use the
    write endpoints to swap assets. The adapter stays thin: it parses requests,
    delegates to the slot services attached to `app.state.assets` and maps
    domain errors to JSON responses.

Notes:
    - Every response carries `Cache-Control: private, no-store` so clients
      always observe the current version.
    - Reads never fail: on any error they log a warning and return safe
      defaults (version 0, no URL, black background, empty lists).
    - Error bodies are `{"error": <code>, "detail": <detail code>}` with an
      optional human readable `message`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, ValidationError
from starlette.datastructures import UploadFile

from backend.assets.config_store import DEFAULT_BACKGROUND_COLOR
from backend.assets.errors import (
    STORAGE_NOT_CONFIGURED,
    ConfigPersistenceFailure,
    InvalidInput,
    StorageAuthorizationFailure,
    StorageWriteFailure,
)
from backend.assets.services.showcase import UploadedFile
from backend.assets.services.slots import AssetSlotService
from backend.web.storage_wiring import AssetServices

assets_router = APIRouter(tags=["Assets"])
logger = logging.getLogger("backdrop.web.assets")


# --- Request models --------------------------------------------------------------

class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UploadRequest(_Payload):
    ext: Any = None
    type: Any = None


class CommitRequest(_Payload):
    path: Any = None
    value: Any = None
    type: Any = None

    def locator(self) -> Any:
        return self.path if self.path is not None else self.value


class ReviewCreate(_Payload):
    name: Any = None
    label: Any = None
    rating: Any = None
    comment: Any = None


class ReviewDelete(_Payload):
    reviewId: Any = None


# --- Helpers ---------------------------------------------------------------------

def _json_private(payload, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers."""
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _bad_request(detail: str, message: Optional[str] = None) -> JSONResponse:
    payload: Dict[str, Any] = {"error": "bad_request", "detail": detail}
    if message:
        payload["message"] = message
    return _json_private(payload, status_code=400)


def _services(request: Request) -> AssetServices:
    return request.app.state.assets


async def _read_model(request: Request, model: type[_Payload]):
    """Parse a JSON object body into `model`; returns (payload, error_response)."""
    try:
        raw = await request.json()
    except Exception:
        return None, _bad_request("invalid_json", "Request body must be JSON")
    if not isinstance(raw, dict):
        return None, _bad_request("invalid_json", "Request body must be a JSON object")
    try:
        return model.model_validate(raw), None
    except ValidationError:
        return None, _bad_request("invalid_request")


def _error_response(exc: Exception, *, operation: str) -> JSONResponse:
    """Map domain errors to HTTP responses; unexpected errors become 500."""
    if isinstance(exc, InvalidInput):
        return _bad_request(exc.detail, exc.message)
    if isinstance(exc, StorageAuthorizationFailure):
        logger.warning("%s: upload authorization failed (%s)", operation, str(exc))
        return _json_private({"error": "storage_authorization_failed", "detail": str(exc)}, status_code=500)
    if isinstance(exc, StorageWriteFailure):
        logger.warning("%s: storage write failed (%s)", operation, str(exc))
        return _json_private({"error": "storage_write_failed", "detail": str(exc)}, status_code=500)
    if isinstance(exc, ConfigPersistenceFailure):
        logger.warning("%s: config persistence failed (%s)", operation, str(exc))
        return _json_private({"error": "config_persistence_failed", "detail": str(exc)}, status_code=500)
    if isinstance(exc, RuntimeError) and str(exc) == STORAGE_NOT_CONFIGURED:
        return _json_private({"error": "service_unavailable", "detail": STORAGE_NOT_CONFIGURED}, status_code=503)
    logger.exception("%s: unexpected error", operation)
    return _json_private({"error": "internal_error"}, status_code=500)


def _slot_state(service: AssetSlotService) -> JSONResponse:
    try:
        state = service.get_state()
    except Exception as exc:
        logger.warning("%s read degraded: %s", service.name, exc.__class__.__name__)
        state = {"version": 0, "url": None}
    return _json_private(state)


async def _slot_upload(request: Request, service: AssetSlotService) -> JSONResponse:
    payload, error = await _read_model(request, UploadRequest)
    if error:
        return error
    try:
        grant = service.authorize_upload(payload.ext)
    except Exception as exc:
        return _error_response(exc, operation=f"{service.name}.upload")
    return _json_private(grant)


async def _slot_commit(request: Request, service: AssetSlotService) -> JSONResponse:
    payload, error = await _read_model(request, CommitRequest)
    if error:
        return error
    try:
        result = service.commit(payload.locator())
    except Exception as exc:
        return _error_response(exc, operation=f"{service.name}.commit")
    return _json_private({"ok": True, **result})


# --- Logo & audio ------------------------------------------------------------------

@assets_router.get("/api/assets/logo")
async def get_logo(request: Request):
    return _slot_state(_services(request).logo)


@assets_router.post("/api/assets/logo/upload")
async def authorize_logo_upload(request: Request):
    return await _slot_upload(request, _services(request).logo)


@assets_router.post("/api/assets/logo")
async def commit_logo(request: Request):
    return await _slot_commit(request, _services(request).logo)


@assets_router.get("/api/assets/audio")
async def get_audio(request: Request):
    return _slot_state(_services(request).audio)


@assets_router.post("/api/assets/audio/upload")
async def authorize_audio_upload(request: Request):
    return await _slot_upload(request, _services(request).audio)


@assets_router.post("/api/assets/audio")
async def commit_audio(request: Request):
    return await _slot_commit(request, _services(request).audio)


# --- Background --------------------------------------------------------------------

@assets_router.get("/api/assets/background")
async def get_background(request: Request):
    try:
        state = _services(request).background.get_state()
    except Exception as exc:
        logger.warning("background read degraded: %s", exc.__class__.__name__)
        state = {"version": 0, "background": {"type": "color", "value": DEFAULT_BACKGROUND_COLOR}}
    return _json_private(state)


@assets_router.post("/api/assets/background/upload")
async def authorize_background_upload(request: Request):
    payload, error = await _read_model(request, UploadRequest)
    if error:
        return error
    try:
        grant = _services(request).background.authorize_upload(payload.ext, kind=payload.type)
    except Exception as exc:
        return _error_response(exc, operation="background.upload")
    return _json_private(grant)


@assets_router.post("/api/assets/background")
async def commit_background(request: Request):
    payload, error = await _read_model(request, CommitRequest)
    if error:
        return error
    try:
        result = _services(request).background.commit(payload.locator(), bg_type=payload.type)
    except Exception as exc:
        return _error_response(exc, operation="background.commit")
    return _json_private({"ok": True, **result})


# --- Showcase ----------------------------------------------------------------------

@assets_router.get("/api/assets/showcase")
async def list_showcase(request: Request):
    try:
        items = [item.to_public() for item in _services(request).showcase.list_items()]
    except Exception as exc:
        logger.warning("showcase read degraded: %s", exc.__class__.__name__)
        items = []
    # `images` keeps older displays working; they only know about pictures.
    images = [item for item in items if item["type"] == "image"]
    return _json_private({"items": items, "images": images})


@assets_router.post("/api/assets/showcase")
async def upload_showcase(request: Request):
    try:
        form = await request.form()
    except Exception:
        return _bad_request("invalid_form", "Expected multipart/form-data")
    showcase = _services(request).showcase
    files: List[UploadedFile] = []
    for entry in form.getlist("files"):
        if not isinstance(entry, UploadFile):
            continue
        # Oversized files are rejected from the first byte past the ceiling.
        data = await entry.read(showcase.read_limit(entry.filename, entry.content_type))
        files.append(UploadedFile(filename=entry.filename or "", content_type=entry.content_type, data=data))
    try:
        items = showcase.upload(files)
    except Exception as exc:
        return _error_response(exc, operation="showcase.upload")
    return _json_private({"ok": True, "uploaded": [item.to_public() for item in items], "count": len(items)})


@assets_router.delete("/api/assets/showcase")
async def delete_showcase(request: Request, url: Optional[str] = None):
    try:
        _services(request).showcase.delete(url)
    except Exception as exc:
        return _error_response(exc, operation="showcase.delete")
    return _json_private({"ok": True, "deleted": url})


# --- Reviews -----------------------------------------------------------------------

@assets_router.get("/api/assets/reviews")
async def list_reviews(request: Request):
    try:
        result = _services(request).reviews.list()
        payload = {"version": result["version"], "reviews": [r.to_public() for r in result["reviews"]]}
    except Exception as exc:
        logger.warning("reviews read degraded: %s", exc.__class__.__name__)
        payload = {"version": 0, "reviews": []}
    return _json_private(payload)


@assets_router.post("/api/assets/reviews")
async def add_review(request: Request):
    payload, error = await _read_model(request, ReviewCreate)
    if error:
        return error
    try:
        result = _services(request).reviews.add(
            name=payload.name,
            label=payload.label,
            rating=payload.rating,
            comment=payload.comment,
        )
    except Exception as exc:
        return _error_response(exc, operation="reviews.add")
    return _json_private({"ok": True, "version": result["version"], "reviewId": result["review"].id})


@assets_router.delete("/api/assets/reviews")
async def delete_review(request: Request):
    payload, error = await _read_model(request, ReviewDelete)
    if error:
        return error
    try:
        result = _services(request).reviews.delete(payload.reviewId)
    except Exception as exc:
        return _error_response(exc, operation="reviews.delete")
    return _json_private({"ok": True, "version": result["version"]})


__all__ = ["assets_router"]
