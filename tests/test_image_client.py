"""Tests for the image-generation client (image_client.py)."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from greeting_card.blobs import BLOB_SCHEME, BlobStore
from greeting_card.image_client import IMAGE_MIME_TYPE, IMAGE_PATH, ImageClient
from greeting_card.models import StyleOption


def _client(make_backend, handler, no_sleep, blobs=None):
    blobs = blobs if blobs is not None else BlobStore()
    return ImageClient(make_backend(handler), blobs, sleep=no_sleep), blobs


class TestImageClient:
    @pytest.mark.asyncio
    async def test_decodes_image_into_handle(self, make_backend, no_sleep, png_b64):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"imageData": png_b64})

        client, blobs = _client(make_backend, handler, no_sleep)
        handle = await client.generate(StyleOption.ELEGANT)

        assert handle is not None
        assert handle.url.startswith(BLOB_SCHEME)
        assert handle.mime_type == IMAGE_MIME_TYPE
        assert handle.read() == base64.b64decode(png_b64)
        assert len(blobs) == 1
        assert seen[0].url.path == IMAGE_PATH
        assert json.loads(seen[0].content) == {"style": "古风典雅"}

    @pytest.mark.asyncio
    async def test_non_success_returns_none(self, make_backend, no_sleep):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(500, json={"error": "No image generated"})

        client, blobs = _client(make_backend, handler, no_sleep)
        assert await client.generate(StyleOption.CREATIVE) is None
        # Retried like the text call before giving up
        assert calls["n"] == 3
        assert len(blobs) == 0

    @pytest.mark.asyncio
    async def test_network_failure_returns_none(self, make_backend, no_sleep):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = _client(make_backend, handler, no_sleep)
        assert await client.generate(StyleOption.INTIMATE) is None

    @pytest.mark.asyncio
    async def test_missing_payload_is_empty_result(self, make_backend, no_sleep):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(200, json={})

        client, blobs = _client(make_backend, handler, no_sleep)
        assert await client.generate(StyleOption.COLLOQUIAL) is None
        assert calls["n"] == 1
        assert len(blobs) == 0
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_then_success(self, make_backend, no_sleep, png_b64):
        responses = [
            httpx.Response(500, json={}),
            httpx.Response(200, json={"imageData": png_b64}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        client, _ = _client(make_backend, handler, no_sleep)
        handle = await client.generate(StyleOption.ELEGANT)
        assert handle is not None
        no_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_invalid_base64_returns_none(self, make_backend, no_sleep):
        client, blobs = _client(
            make_backend,
            lambda request: httpx.Response(200, json={"imageData": "***not base64***"}),
            no_sleep,
        )
        assert await client.generate(StyleOption.ELEGANT) is None
        assert len(blobs) == 0

    @pytest.mark.asyncio
    async def test_client_never_revokes(self, make_backend, no_sleep, png_b64):
        client, blobs = _client(
            make_backend,
            lambda request: httpx.Response(200, json={"imageData": png_b64}),
            no_sleep,
        )
        first = await client.generate(StyleOption.ELEGANT)
        second = await client.generate(StyleOption.ELEGANT)
        assert first is not None and second is not None
        assert not first.revoked
        assert len(blobs) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_none(self, make_backend, no_sleep):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            raise RuntimeError("boom from transport")

        client, blobs = _client(make_backend, handler, no_sleep)
        assert await client.generate(StyleOption.ELEGANT) is None
        assert calls["n"] == 3
        assert len(blobs) == 0
