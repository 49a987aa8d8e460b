"""
Image-generation client.

Requests a card background for a style, decodes the base64 PNG and registers
the bytes in a ``BlobStore``. Image failures never reach the caller as
exceptions: after the retries are exhausted the client returns None and the
card falls back to its default background.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging

from greeting_card.blobs import BlobStore, ImageHandle
from greeting_card.errors import ErrorKind, GenerationError
from greeting_card.facades.backend import BackendFacade
from greeting_card.models import StyleOption
from greeting_card.retry import RetryPolicy, Sleep, retry_with_backoff

log = logging.getLogger("greeting_card.image_client")

IMAGE_PATH = "/api/generate-image"
IMAGE_MIME_TYPE = "image/png"
IMAGE_FAILURE_MESSAGE = "Image generation failed"


class ImageClient:
    """Calls the image endpoint with retry.

    Handles returned by ``generate`` belong to the caller; this client never
    revokes them.

    Args:
        backend: Backend facade.
        blobs:   Store the decoded images are registered in.
        policy:  Retry policy (default 3 attempts, 1 s base delay).
        path:    Endpoint path.
        sleep:   Sleep used between retries.
    """

    def __init__(
        self,
        backend: BackendFacade,
        blobs: BlobStore,
        policy: RetryPolicy | None = None,
        *,
        path: str = IMAGE_PATH,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._blobs = blobs
        self._policy = policy or RetryPolicy()
        self._path = path
        self._sleep = sleep

    async def generate(self, style: StyleOption) -> ImageHandle | None:
        """Return a handle to the generated background, or None.

        None means either that the backend sent no image or that every
        attempt failed.
        """
        payload = {"style": style.value}

        async def _attempt() -> bytes | None:
            data = await self._backend.post_json(
                self._path, payload, failure_message=IMAGE_FAILURE_MESSAGE
            )
            image_data = data.get("imageData")
            if not image_data:
                return None
            if not isinstance(image_data, str):
                raise GenerationError(
                    "imageData is not a base64 string", kind=ErrorKind.MALFORMED
                )
            try:
                return base64.b64decode(image_data, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise GenerationError(
                    f"imageData is not valid base64: {exc}", kind=ErrorKind.MALFORMED
                ) from exc

        try:
            raw = await retry_with_backoff(
                _attempt, self._policy, sleep=self._sleep, label="Image generation"
            )
        except GenerationError as exc:
            log.warning(
                "Image generation failed, using default background: %s",
                exc,
                extra={"style": style.name, "kind": exc.kind.value},
            )
            return None
        except Exception as exc:
            log.exception("Unexpected error during image generation: %s", exc)
            return None

        if raw is None:
            log.info("Backend returned no image", extra={"style": style.name})
            return None

        handle = self._blobs.create(raw, IMAGE_MIME_TYPE)
        log.info(
            "Card image generated",
            extra={"style": style.name, "bytes": handle.size, "url": handle.url},
        )
        return handle
