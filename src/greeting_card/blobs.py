"""
In-memory blob store with revocable handles.

Decoded image bytes are registered once and referred to by a ``blob:`` URL,
so callers pass a small handle around instead of a base64 string. A revoked
handle can no longer be read.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

log = logging.getLogger("greeting_card.blobs")

BLOB_SCHEME = "blob:greeting-card/"


class RevokedHandleError(LookupError):
    """Raised when reading a handle whose blob has been released."""


class ImageHandle:
    """Opaque reference to bytes held in a ``BlobStore``."""

    def __init__(self, store: BlobStore, url: str, mime_type: str, size: int) -> None:
        self._store = store
        self.url = url
        self.mime_type = mime_type
        self.size = size

    @property
    def revoked(self) -> bool:
        return not self._store.contains(self.url)

    def read(self) -> bytes:
        return self._store.resolve(self.url)

    def save(self, path: Path) -> Path:
        """Write the blob bytes to ``path`` and return it."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.read())
        return path

    def revoke(self) -> None:
        self._store.revoke(self.url)

    def __repr__(self) -> str:
        return f"ImageHandle(url={self.url!r}, mime_type={self.mime_type!r}, size={self.size})"


class BlobStore:
    """Registry of blob URLs to bytes for the current session."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def create(self, data: bytes, mime_type: str = "image/png") -> ImageHandle:
        url = f"{BLOB_SCHEME}{uuid.uuid4()}"
        self._blobs[url] = bytes(data)
        log.debug("Blob created", extra={"url": url, "size": len(data), "mime_type": mime_type})
        return ImageHandle(self, url, mime_type, len(data))

    def contains(self, url: str) -> bool:
        return url in self._blobs

    def resolve(self, url: str) -> bytes:
        try:
            return self._blobs[url]
        except KeyError:
            raise RevokedHandleError(f"Blob {url} has been revoked") from None

    def revoke(self, url: str) -> None:
        """Release a blob. Revoking an unknown or already revoked URL is a no-op."""
        if self._blobs.pop(url, None) is not None:
            log.debug("Blob revoked", extra={"url": url})

    def clear(self) -> None:
        self._blobs.clear()

    def __len__(self) -> int:
        return len(self._blobs)
