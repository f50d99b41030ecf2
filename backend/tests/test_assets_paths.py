"""
PathCodec canonicalization of keys, bucket-prefixed values and public URLs.

Expected:
  - URLs, bucket-prefixed keys and leading slashes collapse to one key.
  - canonicalize is idempotent and inverts resolve_public_url.
  - Empty input yields "" (callers reject it).
"""
from __future__ import annotations

import pytest

from backend.assets.paths import PathCodec
from backend.tests.utils.storage_fixtures import PUBLIC_BASE, FakeObjectStore


@pytest.fixture
def codec() -> PathCodec:
    return PathCodec(FakeObjectStore())


@pytest.mark.parametrize(
    "value, expected",
    [
        ("logo/logo.png", "logo/logo.png"),
        (f"{PUBLIC_BASE}/logo/logo.png", "logo/logo.png"),
        (f"{PUBLIC_BASE}/logo/logo.png?t=1700000000#top", "logo/logo.png"),
        ("assets/logo/logo.png", "logo/logo.png"),
        ("/logo/logo.png", "logo/logo.png"),
        ("https://cdn.example/storage/v1/object/public/assets/background/background.mp4", "background/background.mp4"),
        ("/storage/v1/object/public/assets/audio/audio.m4a", "audio/audio.m4a"),
        (f"{PUBLIC_BASE}/showcase/a%20b.png", "showcase/a b.png"),
        ("  showcase/1-abc.webp  ", "showcase/1-abc.webp"),
    ],
)
def test_canonicalize_strips_locators_to_bucket_relative_key(codec: PathCodec, value: str, expected: str) -> None:
    assert codec.canonicalize(value) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "/", "assets/"])
def test_canonicalize_empty_inputs_yield_empty_string(codec: PathCodec, value) -> None:
    assert codec.canonicalize(value) == ""


@pytest.mark.parametrize(
    "value",
    [
        "logo/logo.png",
        "assets/assets/logo/logo.png",
        f"{PUBLIC_BASE}/assets/logo/logo.png",
        "//background/background.jpg",
        "https://x.example/storage/v1/object/public/assets/assets/showcase/1-a.png?x=1",
        "weird value",
    ],
)
def test_canonicalize_is_idempotent(codec: PathCodec, value: str) -> None:
    once = codec.canonicalize(value)
    assert codec.canonicalize(once) == once


@pytest.mark.parametrize("path", ["logo/logo.png", "background/background.webm", "showcase/1700000000000-ab12.gif"])
def test_canonicalize_inverts_public_url(codec: PathCodec, path: str) -> None:
    url = codec.url_for(path)
    assert url == f"{PUBLIC_BASE}/{path}"
    assert codec.canonicalize(url) == path


def test_url_for_empty_is_empty(codec: PathCodec) -> None:
    assert codec.url_for("") == ""
    assert codec.url_for(None) == ""


def test_is_within_enforces_prefix_and_rejects_traversal(codec: PathCodec) -> None:
    assert codec.is_within("showcase/1-a.png", "showcase")
    assert codec.is_within("showcase/1-a.png", "showcase/")
    assert not codec.is_within("logo/logo.png", "showcase")
    assert not codec.is_within("showcase/../logo/logo.png", "showcase")
    assert not codec.is_within("showcase/", "showcase")
    assert not codec.is_within("showcase-evil/x.png", "showcase")
    assert not codec.is_within("assets/showcase/x.png", "showcase")
