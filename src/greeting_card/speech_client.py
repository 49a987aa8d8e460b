"""
Speech-generation client.

Best effort only: one request, no retry, and every failure is logged and
reported as an empty string.
"""

from __future__ import annotations

import logging

from greeting_card.errors import GenerationError
from greeting_card.facades.backend import BackendFacade

log = logging.getLogger("greeting_card.speech_client")

SPEECH_PATH = "/api/generate-speech"


class SpeechClient:
    """Calls the speech endpoint exactly once.

    Args:
        backend: Backend facade.
        path:    Endpoint path.
    """

    def __init__(self, backend: BackendFacade, *, path: str = SPEECH_PATH) -> None:
        self._backend = backend
        self._path = path

    async def generate(self, text: str) -> str:
        """Return the base64 PCM payload for ``text``, or "" on any failure."""
        try:
            data = await self._backend.post_json(self._path, {"text": text})
        except GenerationError as exc:
            log.warning(
                "Speech generation failed: %s",
                exc,
                extra={"kind": exc.kind.value, "status_code": exc.status_code},
            )
            return ""
        except Exception as exc:
            log.exception("Unexpected error during speech generation: %s", exc)
            return ""

        audio = data.get("audioData")
        if not isinstance(audio, str) or not audio:
            log.info("Backend returned no audio")
            return ""

        log.info("Speech generated", extra={"payload_chars": len(audio)})
        return audio
