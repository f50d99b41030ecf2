"""
Blob object store driven through httpx.MockTransport.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json

import httpx
import pytest

from backend.assets.errors import StorageWriteFailure
from backend.storage.blob_store import BlobObjectStore, store_id_from_token, unique_pathname

TOKEN = "vercel_blob_rw_AbC123_s3cr3tvalue"
API = "https://blob.test"


def _store(handler) -> BlobObjectStore:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return BlobObjectStore(TOKEN, api_url=API, http=http)


def _unused(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request {request.method} {request.url}")


def test_store_id_and_public_base() -> None:
    assert store_id_from_token(TOKEN) == "AbC123"
    store = _store(_unused)
    assert store.public_base_url == "https://abc123.public.blob.vercel-storage.com"
    assert store.resolve_public_url("logo/logo-1.png") == "https://abc123.public.blob.vercel-storage.com/logo/logo-1.png"


@pytest.mark.parametrize("token", ["", "vercel_blob_rw", "vercel_blob_rw__secret"])
def test_invalid_token_rejected(token: str) -> None:
    with pytest.raises(ValueError):
        store_id_from_token(token)


def test_unique_pathname_keeps_folder_and_extension() -> None:
    path = unique_pathname("/logo/logo.PNG")
    assert path.startswith("logo/logo-") and path.endswith(".png")
    assert unique_pathname("logo/logo.png") != unique_pathname("logo/logo.png")


def test_authorize_upload_mints_signed_client_token() -> None:
    store = _store(_unused)
    grant = store.authorize_upload("logo/logo.png", overwrite=True, content_type="image/png")

    assert grant.path.startswith("logo/logo-") and grant.path.endswith(".png")
    assert grant.method == "PUT"
    assert httpx.URL(grant.url).params["pathname"] == grant.path
    assert grant.headers["authorization"] == f"Bearer {grant.token}"

    prefix = "vercel_blob_client_AbC123_"
    assert grant.token.startswith(prefix)
    signature, payload = base64.b64decode(grant.token[len(prefix):]).decode("ascii").split(".", 1)
    expected = hmac.new(TOKEN.encode(), payload.encode(), hashlib.sha256).hexdigest()
    assert hmac.compare_digest(signature, expected)
    claims = json.loads(base64.b64decode(payload))
    assert claims["pathname"] == grant.path
    assert claims["allowedContentTypes"] == ["image/png"]
    assert claims["allowOverwrite"] is False


def test_put_object_returns_stored_pathname() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"pathname": request.url.params["pathname"], "url": "https://x"})

    store = _store(handler)
    path = store.put_object("showcase/1-a.png", b"png-bytes", "image/png")
    req = seen[0]
    assert req.method == "PUT"
    assert req.headers["authorization"] == f"Bearer {TOKEN}"
    assert req.headers["x-content-type"] == "image/png"
    assert req.content == b"png-bytes"
    assert path == req.url.params["pathname"]
    assert path.startswith("showcase/1-a-")


def test_put_object_failure_is_typed() -> None:
    store = _store(lambda request: httpx.Response(500, json={"error": "boom"}))
    with pytest.raises(StorageWriteFailure):
        store.put_object("showcase/1-a.png", b"x", "image/png")


def test_list_follows_cursor() -> None:
    pages = {
        None: {
            "blobs": [{"pathname": "showcase/2-b.mp4", "uploadedAt": "2024-02-01T00:00:00.000Z", "contentType": "video/mp4", "size": 5}],
            "hasMore": True,
            "cursor": "c1",
        },
        "c1": {
            "blobs": [{"pathname": "showcase/1-a.png", "uploadedAt": "2024-01-01T00:00:00.000Z", "size": 3}],
            "hasMore": False,
        },
    }
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=pages[request.url.params.get("cursor")])

    items = _store(handler).list("showcase", limit=200)
    assert [i.path for i in items] == ["showcase/2-b.mp4", "showcase/1-a.png"]
    assert items[0].content_type == "video/mp4"
    assert items[0].updated_at is not None and items[0].updated_at.month == 2
    assert seen[0].url.params["prefix"] == "showcase/"
    assert seen[1].url.params["cursor"] == "c1"


def test_list_returns_newest_when_pages_are_oldest_first() -> None:
    blobs = [
        {"pathname": f"showcase/{1700000000000 + i}-ab.png", "uploadedAt": f"2024-03-01T00:{i // 60:02d}:{i % 60:02d}.000Z"}
        for i in range(250)
    ]
    pages = {None: (blobs[:100], "c1"), "c1": (blobs[100:200], "c2"), "c2": (blobs[200:], None)}

    def handler(request: httpx.Request) -> httpx.Response:
        page, cursor = pages[request.url.params.get("cursor")]
        return httpx.Response(200, json={"blobs": page, "hasMore": cursor is not None, "cursor": cursor})

    items = _store(handler).list("showcase", limit=200)

    assert len(items) == 200
    assert items[0].path == "showcase/1700000000249-ab.png"
    assert items[-1].path == "showcase/1700000000050-ab.png"
    assert all(a.updated_at >= b.updated_at for a, b in zip(items, items[1:]))


def test_remove_missing_blob_reports_false_without_delete() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(404, json={"error": {"code": "not_found"}})

    assert _store(handler).remove("logo/logo-1.png") is False
    assert [r.method for r in seen] == ["GET"]


def test_remove_existing_blob_posts_delete() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"pathname": "logo/logo-1.png"})
        return httpx.Response(200, json={})

    assert _store(handler).remove("logo/logo-1.png") is True
    delete = seen[-1]
    assert delete.method == "POST" and delete.url.path == "/delete"
    assert json.loads(delete.content) == {"urls": ["https://abc123.public.blob.vercel-storage.com/logo/logo-1.png"]}
