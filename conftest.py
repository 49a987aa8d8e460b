"""Pytest configuration — put the local src/ first on sys.path and provide
shared fixtures for faking the generation backend."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Resolve imports to this checkout, not an editable install elsewhere.
_src = str(Path(__file__).parent / "src")
if _src not in sys.path:
    sys.path.insert(0, _src)

import httpx  # noqa: E402

from greeting_card.facades.backend import BackendFacade  # noqa: E402

TEST_BACKEND_URL = "http://card.test"

# 1x1 transparent PNG
PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_backend() -> Callable[..., BackendFacade]:
    """Build a BackendFacade whose HTTP traffic goes to ``handler``."""

    def _make(handler: Handler, **kwargs) -> BackendFacade:
        return BackendFacade(
            TEST_BACKEND_URL,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return _make


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records requested delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def png_b64() -> str:
    return PNG_B64
