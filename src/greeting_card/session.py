"""
CardSession — explicit state container for one greeting-card session.

Holds all mutable state the orchestrator works on:
  - The current GenerationConfig, GenerationStatus and GeneratedResult
  - The generation epoch and the cancellation token of the active attempt
  - Background task handles (speech synthesis, success → idle revert)

Every new attempt cancels the previous attempt's token and background work,
so late results from a superseded attempt are discarded instead of
overwriting fresh ones.

Usage::

    session = CardSession()
    token = session.begin_attempt(config)
    ...
    if session.is_current(token):
        session.result.text = text
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from greeting_card.errors import InvalidTransitionError
from greeting_card.models import GeneratedResult, GenerationConfig, GenerationStatus

log = logging.getLogger("greeting_card.session")

_TRANSITIONS: dict[GenerationStatus, frozenset[GenerationStatus]] = {
    GenerationStatus.IDLE: frozenset({GenerationStatus.GENERATING}),
    GenerationStatus.GENERATING: frozenset(
        {GenerationStatus.GENERATING, GenerationStatus.SUCCESS, GenerationStatus.ERROR}
    ),
    GenerationStatus.SUCCESS: frozenset({GenerationStatus.IDLE, GenerationStatus.GENERATING}),
    GenerationStatus.ERROR: frozenset({GenerationStatus.GENERATING}),
}


@dataclass
class GenerationToken:
    """Cancellation token for one generation attempt."""

    epoch: int
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class CardSession:
    """Per-session generation state.

    Attributes:
        config:       Config of the most recent attempt.
        status:       Current generation status.
        result:       What the card currently displays.
        epoch:        Monotonically increasing attempt counter.
        token:        Cancellation token of the active attempt, or None.
        speech_task:  Detached speech synthesis task of the active attempt.
        idle_task:    Pending SUCCESS → IDLE revert, or None.
        on_status:    Optional callback invoked after every status change.
    """

    config: GenerationConfig = field(default_factory=GenerationConfig)
    status: GenerationStatus = GenerationStatus.IDLE
    result: GeneratedResult = field(default_factory=GeneratedResult)
    epoch: int = 0
    token: GenerationToken | None = None
    speech_task: asyncio.Task | None = None
    idle_task: asyncio.Task | None = None
    on_status: Callable[[GenerationStatus], None] | None = None

    def begin_attempt(self, config: GenerationConfig) -> GenerationToken:
        """Start a new attempt: supersede the old one, clear the card, enter GENERATING."""
        if self.token is not None:
            self.token.cancel()
        self._cancel_task(self.speech_task)
        self._cancel_task(self.idle_task)
        self.speech_task = None
        self.idle_task = None

        self.epoch += 1
        self.token = GenerationToken(epoch=self.epoch)
        self.config = config
        self.clear_result()
        self.set_status(GenerationStatus.GENERATING)

        log.debug("Generation attempt started", extra={"epoch": self.epoch})
        return self.token

    def is_current(self, token: GenerationToken) -> bool:
        """True if ``token`` belongs to the active, uncancelled attempt."""
        return not token.cancelled and token is self.token and token.epoch == self.epoch

    def clear_result(self) -> None:
        """Clear text, image and audio, releasing the displayed image."""
        if self.result.image is not None:
            self.result.image.revoke()
        self.result = GeneratedResult()

    def set_status(self, status: GenerationStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot move from {self.status.value} to {status.value}"
            )
        previous, self.status = self.status, status
        log.info(
            "Status changed",
            extra={"from": previous.value, "to": status.value, "epoch": self.epoch},
        )
        if self.on_status is not None:
            self.on_status(status)

    def is_active(self) -> bool:
        """Return True if any background task is still running."""
        return any(t is not None and not t.done() for t in (self.speech_task, self.idle_task))

    async def stop_tasks(self) -> None:
        """Cancel background tasks and wait for them to finish."""
        tasks = [t for t in (self.speech_task, self.idle_task) if t is not None and not t.done()]
        for t in tasks:
            t.cancel()
        for t in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await t
        self.speech_task = None
        self.idle_task = None

    @staticmethod
    def _cancel_task(task: asyncio.Task | None) -> None:
        if task is not None and not task.done():
            task.cancel()

    def __repr__(self) -> str:
        return (
            f"CardSession(status={self.status.value}, epoch={self.epoch}, "
            f"active={self.is_active()})"
        )
