"""Tests for the text-generation client (text_client.py)."""

from __future__ import annotations

import json

import httpx
import pytest

from greeting_card.errors import ErrorKind, GenerationError
from greeting_card.models import GenerationConfig, StyleOption
from greeting_card.retry import RetryPolicy
from greeting_card.text_client import TEXT_PATH, TextClient


def _counting(responses):
    """Handler replaying ``responses`` in order; items may be exceptions."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = responses[min(len(seen), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    return handler, seen


class TestTextClient:
    @pytest.mark.asyncio
    async def test_returns_generated_text(self, make_backend, no_sleep):
        handler, seen = _counting([httpx.Response(200, json={"text": "测试祝福语"})])
        client = TextClient(make_backend(handler), sleep=no_sleep)
        config = GenerationConfig(
            recipient="家人", style=StyleOption.ELEGANT, length=60, custom_text=""
        )

        assert await client.generate(config) == "测试祝福语"
        assert len(seen) == 1
        assert seen[0].url.path == TEXT_PATH
        body = json.loads(seen[0].content)
        assert body == {
            "config": {
                "recipient": "家人",
                "style": "古风典雅",
                "length": 60,
                "customText": "",
            }
        }

    @pytest.mark.asyncio
    async def test_retries_network_errors(self, make_backend, no_sleep):
        request = httpx.Request("POST", "http://card.test/api/generate-text")
        handler, seen = _counting(
            [
                httpx.ConnectError("Network error", request=request),
                httpx.ConnectError("Network error", request=request),
                httpx.Response(200, json={"text": "重试成功"}),
            ]
        )
        client = TextClient(make_backend(handler), sleep=no_sleep)
        config = GenerationConfig(
            recipient="朋友", style=StyleOption.CREATIVE, length=80, custom_text="新年快乐"
        )

        assert await client.generate(config) == "重试成功"
        assert len(seen) == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_raises_after_max_retries(self, make_backend, no_sleep):
        handler, seen = _counting([httpx.Response(500, json={"error": "Persistent error"})])
        client = TextClient(make_backend(handler), sleep=no_sleep)

        with pytest.raises(GenerationError, match="Persistent error"):
            await client.generate(GenerationConfig(recipient="同事", style=StyleOption.COLLOQUIAL))
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_custom_policy(self, make_backend, no_sleep):
        handler, seen = _counting([httpx.Response(503, json={})])
        client = TextClient(
            make_backend(handler), RetryPolicy(max_attempts=5, base_delay=0.1), sleep=no_sleep
        )
        with pytest.raises(GenerationError):
            await client.generate(GenerationConfig())
        assert len(seen) == 5

    @pytest.mark.asyncio
    async def test_placeholder_text_is_not_an_error(self, make_backend, no_sleep):
        handler, _ = _counting([httpx.Response(200, json={"text": "生成失败，请重试。"})])
        client = TextClient(make_backend(handler), sleep=no_sleep)
        assert await client.generate(GenerationConfig()) == "生成失败，请重试。"

    @pytest.mark.asyncio
    async def test_empty_text_is_returned(self, make_backend, no_sleep):
        handler, _ = _counting([httpx.Response(200, json={"text": ""})])
        client = TextClient(make_backend(handler), sleep=no_sleep)
        assert await client.generate(GenerationConfig()) == ""

    @pytest.mark.asyncio
    async def test_missing_text_field_is_malformed(self, make_backend, no_sleep):
        handler, seen = _counting([httpx.Response(200, json={"message": "hi"})])
        client = TextClient(make_backend(handler), sleep=no_sleep)
        with pytest.raises(GenerationError) as excinfo:
            await client.generate(GenerationConfig())
        assert excinfo.value.kind is ErrorKind.MALFORMED
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_credential_error_surfaces_kind(self, make_backend, no_sleep):
        handler, _ = _counting([httpx.Response(403, json={"error": "PERMISSION_DENIED"})])
        client = TextClient(make_backend(handler), sleep=no_sleep)
        with pytest.raises(GenerationError) as excinfo:
            await client.generate(GenerationConfig())
        assert excinfo.value.is_credential_error
