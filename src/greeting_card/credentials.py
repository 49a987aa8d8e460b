"""
Credential gating for the generation backend.

Before the first generation the gate asks its provider whether a usable API
credential is selected; if not, the provider's selection flow must complete
first. A credential-invalid failure clears the flag so the next generation
re-enters the selection flow.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

log = logging.getLogger("greeting_card.credentials")


class CredentialProvider(Protocol):
    async def has_selected_key(self) -> bool:
        """Return True if a usable credential is already selected."""
        ...

    async def select_key(self) -> None:
        """Run the credential-selection flow."""
        ...

    def invalidate(self) -> None:
        """Forget the current credential."""
        ...

    @property
    def api_key(self) -> str | None:
        """Key to send with requests, or None when the backend holds it."""
        ...


class ServerSideCredentials:
    """The backend holds the key itself; the client never selects one."""

    async def has_selected_key(self) -> bool:
        return True

    async def select_key(self) -> None:
        return None

    def invalidate(self) -> None:
        return None

    @property
    def api_key(self) -> str | None:
        return None


class PromptedCredentials:
    """Key supplied up front or obtained from ``prompt`` when missing.

    Args:
        api_key: Initial key, if already known.
        prompt:  Callable returning a key entered by the user.
    """

    def __init__(
        self,
        api_key: str | None = None,
        prompt: Callable[[], str] | None = None,
    ) -> None:
        self._api_key = api_key or None
        self._prompt = prompt

    async def has_selected_key(self) -> bool:
        return self._api_key is not None

    async def select_key(self) -> None:
        if self._prompt is None:
            return
        self._api_key = self._prompt().strip() or None

    def invalidate(self) -> None:
        self._api_key = None

    @property
    def api_key(self) -> str | None:
        return self._api_key


class CredentialGate:
    """Tracks whether generation is currently permitted."""

    def __init__(self, provider: CredentialProvider | None = None) -> None:
        self._provider = provider or ServerSideCredentials()
        self._has_valid_credential = False
        self._checked = False

    @property
    def has_valid_credential(self) -> bool:
        return self._has_valid_credential

    @property
    def api_key(self) -> str | None:
        return self._provider.api_key

    async def ensure(self) -> bool:
        """Return True once a credential is selected, running selection if needed."""
        if self._has_valid_credential:
            return True

        if not self._checked:
            self._checked = True
            self._has_valid_credential = await self._provider.has_selected_key()
            if self._has_valid_credential:
                return True

        log.info("No usable API credential selected, starting selection")
        await self._provider.select_key()
        self._has_valid_credential = await self._provider.has_selected_key()
        if not self._has_valid_credential:
            log.warning("Credential selection did not yield a usable key")
        return self._has_valid_credential

    def invalidate(self) -> None:
        """Clear the flag after the backend rejected the credential."""
        self._has_valid_credential = False
        self._provider.invalidate()
        log.warning("API credential invalidated")
