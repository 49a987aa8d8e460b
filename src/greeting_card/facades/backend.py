"""
Facade for the greeting-card backend's JSON endpoints.

Wraps all direct HTTP calls so the generation clients depend only on this
facade, not on ``httpx``. Every failure leaves this module as a
``GenerationError`` with a classified ``ErrorKind``:

  httpx.RequestError (connect, timeout, ...) → NETWORK
  non-2xx response                           → HTTP_STATUS or CREDENTIAL_INVALID
  body is not a JSON object                  → MALFORMED

Endpoints (POST, JSON in / JSON out):
  /api/generate-text    {"config": {...}}  → {"text": "..."}
  /api/generate-image   {"style": "..."}   → {"imageData": "<base64 png>"}
  /api/generate-speech  {"text": "..."}    → {"audioData": "<base64 pcm>"}
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from greeting_card.errors import ErrorKind, GenerationError, classify_status

log = logging.getLogger("greeting_card.facades.backend")

DEFAULT_ERROR_MESSAGE = "API request failed"
API_KEY_HEADER = "x-api-key"


class BackendFacade:
    """Facade wrapping the backend's generation endpoints.

    One ``httpx.AsyncClient`` is created lazily and reused for the session.

    Args:
        base_url:    Backend origin, e.g. ``http://localhost:3000``.
        timeout:     HTTP timeout in seconds (image generation can be slow).
        api_key:     Optional callable returning the API key to send, if any.
        transport:   Optional custom transport (useful for testing).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        *,
        api_key: Callable[[], str | None] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        key = self._api_key() if self._api_key else None
        if key:
            headers[API_KEY_HEADER] = key
        return headers

    async def post_json(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        failure_message: str | None = None,
    ) -> dict[str, Any]:
        """POST ``payload`` to ``path`` and return the decoded JSON object.

        Args:
            path:            Endpoint path relative to the base URL.
            payload:         JSON-serialisable request body.
            failure_message: Fixed message for non-2xx responses. When None,
                             the body's ``error`` field is used instead.

        Raises:
            GenerationError: On transport failure, non-2xx status or a body
                             that is not a JSON object.
        """
        client = self._get_client()
        log.debug("POST %s", path, extra={"path": path})

        try:
            resp = await client.post(path, json=payload, headers=self._headers())
        except httpx.RequestError as exc:
            raise GenerationError(
                str(exc) or exc.__class__.__name__,
                kind=ErrorKind.NETWORK,
            ) from exc

        if not resp.is_success:
            raise self._status_error(resp, failure_message)

        try:
            data = resp.json()
        except ValueError as exc:
            raise GenerationError(
                f"Response from {path} is not valid JSON",
                kind=ErrorKind.MALFORMED,
                status_code=resp.status_code,
            ) from exc

        if not isinstance(data, dict):
            raise GenerationError(
                f"Response from {path} is not a JSON object",
                kind=ErrorKind.MALFORMED,
                status_code=resp.status_code,
            )
        return data

    def _status_error(
        self,
        resp: httpx.Response,
        failure_message: str | None,
    ) -> GenerationError:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        reported = body.get("error")
        reported = str(reported) if reported else None
        details = body.get("details")
        details = str(details) if details else None

        message = failure_message or reported or DEFAULT_ERROR_MESSAGE
        kind = classify_status(resp.status_code, reported, details)

        log.debug(
            "Backend returned HTTP %d",
            resp.status_code,
            extra={"path": resp.request.url.path, "kind": kind.value, "error": reported},
        )
        return GenerationError(
            message,
            kind=kind,
            status_code=resp.status_code,
            details=details,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
