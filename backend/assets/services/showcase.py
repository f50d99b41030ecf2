"""
Showcase gallery: an append-only set of images and videos under `showcase/`.

Why:
    Unlike the replace-only slots, the gallery has no version counter and no
    configuration record. Storage itself is the source of truth: listing a
    prefix yields the items, uploads append uniquely named objects and deletes
    remove them.

Batch policy:
    Uploads are all-or-nothing. Every file is validated (content type, size)
    before the first byte is written; if a write fails mid-batch, the objects
    already written by that batch are removed best-effort and the error
    propagates.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from backend.assets.errors import InvalidInput
from backend.assets.media import (
    CONTENT_TYPE_EXTS,
    MediaKind,
    classify,
    extension_for,
    resolve_content_type,
)
from backend.assets.paths import PathCodec
from backend.assets.services.slots import discard_object
from backend.storage.config import (
    LIST_PAGE_SIZE,
    get_showcase_max_image_bytes,
    get_showcase_max_video_bytes,
)
from backend.storage.keys import SHOWCASE_PREFIX, make_gallery_key
from backend.storage.ports import ObjectStoreProtocol

logger = logging.getLogger("backdrop.assets")


@dataclass
class UploadedFile:
    """A file received from a multipart form, fully buffered."""

    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass(frozen=True)
class ShowcaseItem:
    id: str
    url: str
    type: str
    uploaded_at: str

    def to_public(self) -> Dict[str, Any]:
        return {"id": self.id, "url": self.url, "type": self.type, "uploadedAt": self.uploaded_at}


@dataclass
class ShowcaseSettings:
    prefix: str = SHOWCASE_PREFIX
    max_image_bytes: int = field(default_factory=get_showcase_max_image_bytes)
    max_video_bytes: int = field(default_factory=get_showcase_max_video_bytes)
    page_size: int = LIST_PAGE_SIZE

    def max_bytes_for(self, kind: MediaKind) -> int:
        return self.max_video_bytes if kind is MediaKind.VIDEO else self.max_image_bytes


def _as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class ShowcaseService:
    store: ObjectStoreProtocol
    settings: ShowcaseSettings = field(default_factory=ShowcaseSettings)
    codec: Optional[PathCodec] = None

    def __post_init__(self) -> None:
        if self.codec is None:
            self.codec = PathCodec(self.store)

    def list_items(self) -> List[ShowcaseItem]:
        """Return recognized gallery objects, newest first."""
        objects = self.store.list(self.settings.prefix, limit=self.settings.page_size)
        ranked: List[Tuple[datetime, int, ShowcaseItem]] = []
        for index, obj in enumerate(objects):
            if not self.codec.is_within(obj.path, self.settings.prefix):
                continue
            kind = classify(obj.path, obj.content_type)
            if kind is MediaKind.UNRECOGNIZED:
                continue
            stamp = _as_utc(obj.updated_at)
            item = ShowcaseItem(
                id=obj.path,
                url=self.codec.url_for(obj.path),
                type=kind.value,
                uploaded_at=stamp.isoformat(),
            )
            # Ties keep the store's order.
            ranked.append((stamp, -index, item))
        ranked.sort(key=lambda it: (it[0], it[1]), reverse=True)
        return [item for _, _, item in ranked[: self.settings.page_size]]

    def read_limit(self, filename: Optional[str], content_type: Optional[str]) -> int:
        """Bytes worth reading from an incoming file: its ceiling plus one."""
        kind = classify(filename or "file", resolve_content_type(filename or "file", content_type))
        if kind is MediaKind.UNRECOGNIZED:
            return 1
        return self.settings.max_bytes_for(kind) + 1

    def upload(self, files: Sequence[UploadedFile]) -> List[ShowcaseItem]:
        """Validate and store a batch of files.

        Raises:
            InvalidInput: no files, unsupported type, empty or oversized file.
            StorageWriteFailure: a write failed; earlier writes were rolled back.
        """
        if not files:
            raise InvalidInput("no_files", "No files provided")
        prepared = [self._prepare(f) for f in files]

        written: List[Tuple[str, MediaKind]] = []
        try:
            for key, upload, content_type, kind in prepared:
                path = self.store.put_object(key, upload.data, content_type)
                written.append((path, kind))
        except Exception:
            for path, _ in written:
                discard_object(self.store, path, slot="showcase")
            logger.warning("showcase batch aborted written=%s total=%s", len(written), len(prepared))
            raise

        uploaded_at = datetime.now(timezone.utc).isoformat()
        items = [
            ShowcaseItem(id=path, url=self.codec.url_for(path), type=kind.value, uploaded_at=uploaded_at)
            for path, kind in written
        ]
        logger.info("showcase batch stored count=%s", len(items))
        return items

    def delete(self, locator: Any) -> str:
        """Remove one gallery object; an already absent object is not an error."""
        if not isinstance(locator, str) or not locator.strip():
            raise InvalidInput("missing_url", "No media URL provided")
        path = self.codec.canonicalize(locator)
        if not self.codec.is_within(path, self.settings.prefix):
            raise InvalidInput("invalid_path", "Invalid media path")
        removed = self.store.remove(path)
        logger.info("showcase delete path=%s removed=%s", path, bool(removed))
        return path

    # --- Helpers -----------------------------------------------------------------

    def _prepare(self, upload: UploadedFile) -> Tuple[str, UploadedFile, str, MediaKind]:
        name = upload.filename or "file"
        content_type = resolve_content_type(name, upload.content_type)
        if content_type not in CONTENT_TYPE_EXTS:
            raise InvalidInput("unsupported_type", f"Unsupported file type: {name}")
        kind = classify(name, content_type)
        size = len(upload.data or b"")
        if size <= 0:
            raise InvalidInput("empty_file", f"File is empty: {name}")
        limit = self.settings.max_bytes_for(kind)
        if size > limit:
            raise InvalidInput("file_too_large", f"File too large: {name} ({size} > {limit} bytes)")
        ext = extension_for(name, content_type)
        key = make_gallery_key(
            prefix=self.settings.prefix,
            ext=ext,
            epoch_ms=int(time.time() * 1000),
            uuid_hex=uuid4().hex,
        )
        return key, upload, content_type, kind


__all__ = ["UploadedFile", "ShowcaseItem", "ShowcaseSettings", "ShowcaseService"]
