"""
Singleton asset configuration record and its store contract.

Why:
    Clients detect asset changes by comparing a per-slot version counter, so
    the counter and the value it describes must always move together. Stores
    implement `commit()` as one atomic operation: bump the slot's version by
    exactly one, swap the value, stamp `updated_at`, and hand back both the
    previous and the new record from that same operation.

Notes:
    - `get_or_create()` lazily creates the single record (id=1); concurrent
      first reads must end up with exactly one record.
    - No caller caches a ConfigRecord across requests.
    - `InMemoryConfigStore` serves dev/tests; its lock plays the role of the
      database's row lock.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol

CONFIG_ID = 1
DEFAULT_BACKGROUND_COLOR = "#000000"
BACKGROUND_TYPES = ("color", "image", "video")

SLOT_VERSION_FIELDS = {
    "background": "background_version",
    "logo": "logo_version",
    "audio": "audio_version",
    "reviews": "reviews_version",
}

SLOT_VALUE_FIELDS = {
    "background": ("background_type", "background_path", "background_color"),
    "logo": ("logo_path",),
    "audio": ("audio_path",),
    "reviews": (),
}

SLOT_PATH_FIELDS = {
    "background": "background_path",
    "logo": "logo_path",
    "audio": "audio_path",
}


@dataclass
class ConfigRecord:
    id: int = CONFIG_ID
    background_version: int = 0
    background_type: str = "color"
    background_path: Optional[str] = None
    background_color: str = DEFAULT_BACKGROUND_COLOR
    logo_version: int = 0
    logo_path: Optional[str] = None
    audio_version: int = 0
    audio_path: Optional[str] = None
    reviews_version: int = 0
    updated_at: str = ""

    def version_of(self, slot: str) -> int:
        return int(getattr(self, SLOT_VERSION_FIELDS[slot]) or 0)

    def path_of(self, slot: str) -> Optional[str]:
        field_name = SLOT_PATH_FIELDS.get(slot)
        return getattr(self, field_name) if field_name else None


@dataclass(frozen=True)
class CommitResult:
    previous: ConfigRecord
    current: ConfigRecord

    @property
    def superseded_path(self) -> Optional[str]:
        """Path that the commit stopped referencing, if any."""
        for field_name in SLOT_PATH_FIELDS.values():
            before = getattr(self.previous, field_name)
            after = getattr(self.current, field_name)
            if before and before != after:
                return before
        return None


class ConfigStoreProtocol(Protocol):
    """Contract for the configuration record store."""

    def get_or_create(self) -> ConfigRecord: ...

    def commit(self, slot: str, changes: Mapping[str, Any]) -> CommitResult: ...


def validate_patch(slot: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Check a slot patch and enforce the background type/path invariant.

    Raises:
        ValueError("unknown_slot") for unknown slots,
        ValueError("invalid_patch") for fields that do not belong to the slot
        or a background patch that would break the type/path invariant.
    """
    if slot not in SLOT_VERSION_FIELDS:
        raise ValueError("unknown_slot")
    patch = dict(changes)
    if set(patch) - set(SLOT_VALUE_FIELDS[slot]):
        raise ValueError("invalid_patch")
    if slot == "background":
        bg_type = patch.get("background_type")
        if bg_type not in BACKGROUND_TYPES:
            raise ValueError("invalid_patch")
        if bg_type == "color":
            if not patch.get("background_color"):
                raise ValueError("invalid_patch")
            patch["background_path"] = None
        elif not patch.get("background_path"):
            raise ValueError("invalid_patch")
    return patch


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryConfigStore:
    """Process-local store; the lock makes each commit atomic."""

    def __init__(self, record: Optional[ConfigRecord] = None) -> None:
        self._record = replace(record) if record is not None else None
        self._lock = threading.Lock()
        self.creations = 0

    def _ensure(self) -> ConfigRecord:
        if self._record is None:
            self._record = ConfigRecord(updated_at=_now_iso())
            self.creations += 1
        return self._record

    def get_or_create(self) -> ConfigRecord:
        with self._lock:
            return replace(self._ensure())

    def commit(self, slot: str, changes: Mapping[str, Any]) -> CommitResult:
        patch = validate_patch(slot, changes)
        with self._lock:
            current = self._ensure()
            previous = replace(current)
            for name, value in patch.items():
                setattr(current, name, value)
            version_field = SLOT_VERSION_FIELDS[slot]
            setattr(current, version_field, int(getattr(current, version_field) or 0) + 1)
            current.updated_at = _now_iso()
            return CommitResult(previous=previous, current=replace(current))


__all__ = [
    "CONFIG_ID",
    "DEFAULT_BACKGROUND_COLOR",
    "BACKGROUND_TYPES",
    "SLOT_VERSION_FIELDS",
    "SLOT_VALUE_FIELDS",
    "ConfigRecord",
    "CommitResult",
    "ConfigStoreProtocol",
    "validate_patch",
    "InMemoryConfigStore",
]
