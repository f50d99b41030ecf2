"""
Error taxonomy for asset slot operations.

The classes subclass the builtin exception types the web adapter already maps
(`ValueError` -> 400, `RuntimeError` -> 5xx), so callers that only know the
builtins keep working. Each error carries a short, stable detail code in
`str(exc)` that routes echo back to clients.
"""
from __future__ import annotations


class InvalidInput(ValueError):
    """Client supplied a bad path, extension, content type, size or field."""

    def __init__(self, detail: str = "invalid_input", message: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.message = message or detail.replace("_", " ")


class StorageAuthorizationFailure(RuntimeError):
    """The object store refused or failed to issue an upload authorization."""


class StorageWriteFailure(RuntimeError):
    """Bytes could not be written to the object store."""


class ConfigPersistenceFailure(RuntimeError):
    """The atomic configuration patch could not be persisted."""


STORAGE_NOT_CONFIGURED = "storage_adapter_not_configured"


__all__ = [
    "InvalidInput",
    "StorageAuthorizationFailure",
    "StorageWriteFailure",
    "ConfigPersistenceFailure",
    "STORAGE_NOT_CONFIGURED",
]
