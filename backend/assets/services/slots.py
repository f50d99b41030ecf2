"""
Replace-only asset slots: logo, audio and background.

Why:
    Each slot holds exactly one active object. Uploads go straight from the
    client to the object store under a fixed key per slot (extension varies),
    then the client commits the resulting path here. The commit is what makes
    the new asset visible: it bumps the slot's version so polling clients can
    pick the change up cheaply.

Commit algorithm (all slots):
    1. Canonicalize the caller's value; empty -> InvalidInput("invalid_path").
    2. Atomically swap the value and bump the version by exactly one; the
       store returns the previous and the new record from that operation.
    3. Best-effort delete of the superseded object when the path changed and
       nothing else references it. Failures are logged and discarded.
    4. Return the new version and the public URL.

Background adds a `color` type that bypasses storage entirely, clears the
stored path and still bumps the version.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from backend.assets.config_store import (
    DEFAULT_BACKGROUND_COLOR,
    CommitResult,
    ConfigStoreProtocol,
)
from backend.assets.errors import InvalidInput
from backend.assets.media import AUDIO_EXTS, IMAGE_EXTS, VIDEO_EXTS, MediaKind, allowed_exts
from backend.assets.paths import PathCodec
from backend.storage.keys import (
    AUDIO_PREFIX,
    BACKGROUND_PREFIX,
    LOGO_PREFIX,
    make_slot_key,
    normalize_ext,
)
from backend.storage.ports import ObjectStoreProtocol

logger = logging.getLogger("backdrop.assets")

_MAX_COLOR_LENGTH = 64


@dataclass(frozen=True)
class SlotSettings:
    """Naming and extension policy of a replace-only slot."""

    name: str
    prefix: str
    basename: str
    allowed_exts: Tuple[str, ...]
    default_ext: Optional[str] = None


LOGO_SLOT = SlotSettings(name="logo", prefix=LOGO_PREFIX, basename="logo", allowed_exts=IMAGE_EXTS)
AUDIO_SLOT = SlotSettings(
    name="audio", prefix=AUDIO_PREFIX, basename="audio", allowed_exts=AUDIO_EXTS, default_ext="m4a"
)
BACKGROUND_SLOT = SlotSettings(
    name="background",
    prefix=BACKGROUND_PREFIX,
    basename="background",
    allowed_exts=IMAGE_EXTS + VIDEO_EXTS,
)


def discard_object(store: ObjectStoreProtocol, path: Optional[str], *, slot: str) -> bool:
    """Delete an object nobody references anymore; never raises.

    Returns True when the store reported a removal.
    """
    if not path:
        return False
    try:
        return bool(store.remove(path))
    except Exception as exc:
        logger.warning(
            "best-effort delete failed slot=%s path=%s error=%s", slot, path, exc.__class__.__name__
        )
        return False


def _non_empty(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


@dataclass
class AssetSlotService:
    """Read, authorize-upload and commit flows for one replace-only slot."""

    settings: SlotSettings
    config: ConfigStoreProtocol
    store: ObjectStoreProtocol
    codec: Optional[PathCodec] = field(default=None)

    def __post_init__(self) -> None:
        if self.codec is None:
            self.codec = PathCodec(self.store)

    @property
    def name(self) -> str:
        return self.settings.name

    def get_state(self) -> Dict[str, Any]:
        record = self.config.get_or_create()
        path = record.path_of(self.name)
        return {"version": record.version_of(self.name), "url": self.codec.url_for(path) if path else None}

    def authorize_upload(self, ext: Any = None) -> Dict[str, Any]:
        """Issue a direct-upload authorization for the slot's fixed key."""
        key = self._key_for(ext, self.settings.allowed_exts)
        auth = self.store.authorize_upload(key, overwrite=True)
        logger.info("upload authorized slot=%s path=%s", self.name, auth.path)
        return {
            "path": auth.path,
            "token": auth.token,
            "signedUrl": auth.url,
            "method": auth.method,
            "headers": dict(auth.headers),
            "expiresIn": auth.expires_in,
        }

    def commit(self, value: Any) -> Dict[str, Any]:
        path = self._slot_path(value)
        result = self.config.commit(self.name, {f"{self.name}_path": path})
        self._cleanup(result)
        version = result.current.version_of(self.name)
        logger.info("slot committed slot=%s version=%s", self.name, version)
        return {"version": version, "url": self.codec.url_for(path)}

    # --- Helpers -----------------------------------------------------------------

    def _key_for(self, ext: Any, allowed: Tuple[str, ...]) -> str:
        raw = ext if isinstance(ext, str) and ext.strip() else self.settings.default_ext
        normalized = normalize_ext(raw)
        if not normalized:
            raise InvalidInput("invalid_request", "Missing file extension.")
        if normalized not in allowed:
            raise InvalidInput("unsupported_ext", f"Unsupported file type. Use {', '.join(allowed)}.")
        return make_slot_key(prefix=self.settings.prefix, basename=self.settings.basename, ext=normalized)

    def _slot_path(self, value: Any) -> str:
        # Committed keys stay below the slot folder.
        path = self.codec.canonicalize(value)
        if not self.codec.is_within(path, self.settings.prefix):
            raise InvalidInput("invalid_path", f"Invalid {self.name} path")
        return path

    def _cleanup(self, result: CommitResult) -> None:
        superseded = result.superseded_path
        if not superseded:
            return
        current = result.current
        if superseded in {current.logo_path, current.audio_path, current.background_path}:
            return
        discard_object(self.store, superseded, slot=self.name)


class BackgroundService(AssetSlotService):
    """Background slot with its color | image | video state machine."""

    def get_state(self) -> Dict[str, Any]:
        record = self.config.get_or_create()
        bg_type = record.background_type or "color"
        if bg_type == "color":
            background = {"type": "color", "value": record.background_color or DEFAULT_BACKGROUND_COLOR}
        elif record.background_path:
            background = {"type": bg_type, "value": self.codec.url_for(record.background_path)}
        else:
            background = {"type": "color", "value": DEFAULT_BACKGROUND_COLOR}
        return {"version": record.background_version, "background": background}

    def authorize_upload(self, ext: Any = None, kind: Any = None) -> Dict[str, Any]:  # type: ignore[override]
        if kind not in (MediaKind.IMAGE.value, MediaKind.VIDEO.value) or not isinstance(ext, str):
            raise InvalidInput("invalid_request", "Invalid request")
        allowed = allowed_exts(MediaKind(kind))
        try:
            key = self._key_for(ext, allowed)
        except InvalidInput as exc:
            if exc.detail != "unsupported_ext":
                raise
            message = "Use mp4, mov or webm." if kind == MediaKind.VIDEO.value else "Unsupported image type."
            raise InvalidInput("unsupported_ext", message) from exc
        auth = self.store.authorize_upload(key, overwrite=True)
        logger.info("upload authorized slot=background kind=%s path=%s", kind, auth.path)
        return {
            "path": auth.path,
            "token": auth.token,
            "signedUrl": auth.url,
            "method": auth.method,
            "headers": dict(auth.headers),
            "expiresIn": auth.expires_in,
        }

    def commit(self, value: Any, bg_type: Any = None) -> Dict[str, Any]:  # type: ignore[override]
        """Switch the background; every successful call bumps the version.

        Raises:
            InvalidInput: unknown type, empty value, invalid path or color.
        """
        if bg_type == "color":
            color = value.strip() if isinstance(value, str) else ""
            if not color or len(color) > _MAX_COLOR_LENGTH or not color.isprintable():
                raise InvalidInput("invalid_color", "Invalid color background data")
            result = self.config.commit(
                "background", {"background_type": "color", "background_color": color}
            )
            self._cleanup(result)
            background = {"type": "color", "value": color}
        elif bg_type in (MediaKind.IMAGE.value, MediaKind.VIDEO.value):
            if not _non_empty(value):
                raise InvalidInput("invalid_background", "Invalid background data")
            path = self._slot_path(value)
            result = self.config.commit("background", {"background_type": bg_type, "background_path": path})
            self._cleanup(result)
            background = {"type": bg_type, "value": self.codec.url_for(path)}
        else:
            raise InvalidInput("unsupported_type", "Unsupported background type")
        version = result.current.background_version
        logger.info("slot committed slot=background type=%s version=%s", bg_type, version)
        return {"version": version, "background": background}


__all__ = [
    "SlotSettings",
    "LOGO_SLOT",
    "AUDIO_SLOT",
    "BACKGROUND_SLOT",
    "discard_object",
    "AssetSlotService",
    "BackgroundService",
]
