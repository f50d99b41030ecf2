"""
Object storage port used by the asset slot services.

Keep this small and framework-agnostic so tests can supply simple fakes. Two
backends implement it (Supabase Storage and a public blob store); slot logic
depends on this contract only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from backend.assets.errors import STORAGE_NOT_CONFIGURED


@dataclass(frozen=True)
class UploadAuthorization:
    """Short-lived, single-path permission to write bytes directly to storage.

    `path` is authoritative: a backend may rewrite the requested path (e.g. to
    make it unique), and the client must commit exactly this value.
    """

    path: str
    token: str
    url: str
    method: str = "PUT"
    headers: Dict[str, str] = field(default_factory=dict)
    expires_in: int = 0


@dataclass(frozen=True)
class StoredObject:
    path: str
    updated_at: Optional[datetime] = None
    content_type: Optional[str] = None
    size: Optional[int] = None


class ObjectStoreProtocol(Protocol):
    """Capabilities the asset services need from an object store.

    Intent:
        Issue upload authorizations, write server-side objects, list a prefix,
        delete by path and resolve public URLs without depending on a specific
        cloud SDK.

    Semantics:
        - `remove()` is idempotent and returns False when nothing was there.
        - Direct uploads are performed by clients and are atomic at the path.
    """

    bucket: str
    public_base_url: str

    def authorize_upload(self, path: str, *, overwrite: bool, content_type: Optional[str] = None) -> UploadAuthorization: ...

    def put_object(self, path: str, body: bytes, content_type: str) -> str: ...

    def list(self, prefix: str, *, limit: int) -> List[StoredObject]: ...

    def remove(self, path: str) -> bool: ...

    def resolve_public_url(self, path: str) -> str: ...


class NullObjectStore:
    """Fallback store that signals the storage backend is not configured."""

    bucket = ""
    public_base_url = ""

    def authorize_upload(self, path: str, *, overwrite: bool, content_type: Optional[str] = None) -> UploadAuthorization:  # noqa: D401
        raise RuntimeError(STORAGE_NOT_CONFIGURED)

    def put_object(self, path: str, body: bytes, content_type: str) -> str:  # noqa: D401
        raise RuntimeError(STORAGE_NOT_CONFIGURED)

    def list(self, prefix: str, *, limit: int) -> List[StoredObject]:  # noqa: D401
        raise RuntimeError(STORAGE_NOT_CONFIGURED)

    def remove(self, path: str) -> bool:  # noqa: D401
        raise RuntimeError(STORAGE_NOT_CONFIGURED)

    def resolve_public_url(self, path: str) -> str:  # noqa: D401
        raise RuntimeError(STORAGE_NOT_CONFIGURED)


__all__ = ["UploadAuthorization", "StoredObject", "ObjectStoreProtocol", "NullObjectStore"]
