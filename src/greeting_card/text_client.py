"""
Text-generation client.

Sends the full ``GenerationConfig`` to the backend's text endpoint through
the retry wrapper and returns the generated greeting.
"""

from __future__ import annotations

import asyncio
import logging

from greeting_card.errors import ErrorKind, GenerationError
from greeting_card.facades.backend import BackendFacade
from greeting_card.models import GenerationConfig
from greeting_card.retry import RetryPolicy, Sleep, retry_with_backoff

log = logging.getLogger("greeting_card.text_client")

TEXT_PATH = "/api/generate-text"


class TextClient:
    """Calls the text endpoint with retry.

    Args:
        backend: Backend facade.
        policy:  Retry policy (default 3 attempts, 1 s base delay).
        path:    Endpoint path.
        sleep:   Sleep used between retries.
    """

    def __init__(
        self,
        backend: BackendFacade,
        policy: RetryPolicy | None = None,
        *,
        path: str = TEXT_PATH,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._policy = policy or RetryPolicy()
        self._path = path
        self._sleep = sleep

    async def generate(self, config: GenerationConfig) -> str:
        """Return the greeting text for ``config``.

        Placeholder text from the backend is returned as-is.

        Raises:
            GenerationError: When every attempt failed; the last error is raised.
        """
        payload = {"config": config.to_payload()}

        async def _attempt() -> str:
            data = await self._backend.post_json(self._path, payload)
            text = data.get("text")
            if not isinstance(text, str):
                raise GenerationError(
                    "Text response is missing the 'text' field",
                    kind=ErrorKind.MALFORMED,
                )
            return text

        text = await retry_with_backoff(
            _attempt, self._policy, sleep=self._sleep, label="Text generation"
        )
        log.info(
            "Greeting text generated",
            extra={"recipient": config.recipient, "style": config.style.name, "chars": len(text)},
        )
        return text
