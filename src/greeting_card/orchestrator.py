"""
Generation orchestrator — runs one greeting-card attempt.

Stage policy:
  1. Text   (awaited):  decides SUCCESS vs ERROR; empty text is an ERROR.
                         A credential failure aborts the attempt before
                         any other stage.
  2. Image  (awaited):  failure-tolerant; the card keeps its default
                         background when no image arrives.
  3. Speech (detached): started only when text succeeded; attached to the
                         result when it resolves, unless a newer attempt has
                         started in the meantime.

SUCCESS reverts to IDLE after ``success_display_seconds``; ERROR stays until
the next attempt.

Usage::

    orchestrator = GenerationOrchestrator.from_config(AppConfig())
    status = await orchestrator.generate(GenerationConfig(recipient="朋友"))
    audio = await orchestrator.wait_for_audio(timeout=30)
    await orchestrator.aclose()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx

from greeting_card.blobs import BlobStore
from greeting_card.config import AppConfig
from greeting_card.credentials import CredentialGate
from greeting_card.errors import GenerationError
from greeting_card.facades.backend import BackendFacade
from greeting_card.image_client import ImageClient
from greeting_card.models import GenerationConfig, GenerationStatus
from greeting_card.retry import RetryPolicy
from greeting_card.session import CardSession, GenerationToken
from greeting_card.speech_client import SpeechClient
from greeting_card.text_client import TextClient

log = logging.getLogger("greeting_card.orchestrator")

DEFAULT_SUCCESS_DISPLAY_SECONDS = 5.0

CREDENTIAL_REQUIRED_MESSAGE = "请先连接 API Key 后再生成贺卡。"
CREDENTIAL_INVALID_MESSAGE = "API Key 验证失败，请检查您的 API Key。"
TEXT_FAILURE_PREFIX = "文字生成失败: "


def _ignore(_message: str) -> None:
    return None


class GenerationOrchestrator:
    """Sequences the text, image and speech clients for one session.

    Args:
        session:        State container the orchestrator mutates.
        text_client:    Text-generation client.
        image_client:   Image-generation client.
        speech_client:  Speech-generation client.
        credentials:    Credential gate (default: backend-held key).
        notify:         Callback receiving user-facing messages.
        success_display_seconds: How long SUCCESS is shown before IDLE.
    """

    def __init__(
        self,
        session: CardSession,
        text_client: TextClient,
        image_client: ImageClient,
        speech_client: SpeechClient,
        credentials: CredentialGate | None = None,
        *,
        notify: Callable[[str], None] | None = None,
        success_display_seconds: float = DEFAULT_SUCCESS_DISPLAY_SECONDS,
    ) -> None:
        self._session = session
        self._text = text_client
        self._image = image_client
        self._speech = speech_client
        self._credentials = credentials or CredentialGate()
        self._notify = notify or _ignore
        self._success_display_seconds = success_display_seconds
        self._backend: BackendFacade | None = None
        self._blobs: BlobStore | None = None

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        credentials: CredentialGate | None = None,
        notify: Callable[[str], None] | None = None,
        session: CardSession | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> GenerationOrchestrator:
        """Wire a facade, blob store and the three clients from ``config``."""
        credentials = credentials or CredentialGate()
        backend = BackendFacade(
            config.backend_url,
            config.http_timeout,
            api_key=lambda: credentials.api_key,
            transport=transport,
        )
        blobs = BlobStore()
        policy = RetryPolicy(
            max_attempts=config.retry_attempts,
            base_delay=config.retry_base_delay,
        )
        orchestrator = cls(
            session or CardSession(),
            TextClient(backend, policy, path=config.text_path),
            ImageClient(backend, blobs, policy, path=config.image_path),
            SpeechClient(backend, path=config.speech_path),
            credentials,
            notify=notify,
            success_display_seconds=config.success_display_seconds,
        )
        orchestrator._backend = backend
        orchestrator._blobs = blobs
        return orchestrator

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def session(self) -> CardSession:
        return self._session

    @property
    def credentials(self) -> CredentialGate:
        return self._credentials

    async def generate(self, config: GenerationConfig) -> GenerationStatus:
        """Run one generation attempt and return the resulting status.

        If a newer attempt starts while this one is awaiting a stage, this
        attempt is abandoned and leaves the session untouched.
        """
        if not await self._credentials.ensure():
            self._notify(CREDENTIAL_REQUIRED_MESSAGE)
            return self._session.status

        session = self._session
        token = session.begin_attempt(config)
        log.info(
            "Generation started",
            extra={
                "epoch": token.epoch,
                "recipient": config.recipient,
                "style": config.style.name,
                "length": config.length,
            },
        )

        # Stage 1: text
        text: str | None = None
        try:
            text = await self._text.generate(config)
        except GenerationError as exc:
            if not session.is_current(token):
                return self._abandon(token, "text")
            log.error(
                "Text generation failed: %s",
                exc,
                extra={"epoch": token.epoch, "kind": exc.kind.value},
            )
            if exc.is_credential_error:
                self._credentials.invalidate()
                self._notify(CREDENTIAL_INVALID_MESSAGE)
                session.set_status(GenerationStatus.ERROR)
                return GenerationStatus.ERROR
            self._notify(f"{TEXT_FAILURE_PREFIX}{exc.message}")
        except Exception as exc:
            if not session.is_current(token):
                return self._abandon(token, "text")
            log.exception(
                "Unexpected error during text generation: %s",
                exc,
                extra={"epoch": token.epoch},
            )
            self._notify(f"{TEXT_FAILURE_PREFIX}{exc}")

        if not session.is_current(token):
            return self._abandon(token, "text")
        if text is not None:
            session.result.text = text

        # Stage 2: image
        image = await self._image.generate(config.style)
        if not session.is_current(token):
            if image is not None:
                image.revoke()
            return self._abandon(token, "image")
        if image is not None:
            session.result.image = image
        else:
            log.info("No card image, default background applies", extra={"epoch": token.epoch})

        # Stage 3: speech, detached
        if text:
            session.speech_task = asyncio.create_task(
                self._attach_speech(token, text),
                name=f"greeting-card-speech-{token.epoch}",
            )

        status = GenerationStatus.SUCCESS if text else GenerationStatus.ERROR
        session.set_status(status)
        if status is GenerationStatus.SUCCESS:
            session.idle_task = asyncio.create_task(
                self._revert_to_idle(token),
                name=f"greeting-card-idle-{token.epoch}",
            )

        log.info(
            "Generation finished",
            extra={
                "epoch": token.epoch,
                "status": status.value,
                "has_image": image is not None,
            },
        )
        return status

    async def wait_for_audio(self, timeout: float | None = None) -> str | None:
        """Wait for the active attempt's speech task and return its payload.

        Returns None when there is no speech, it failed, it was superseded,
        or it did not finish within ``timeout`` seconds.
        """
        task = self._session.speech_task
        if task is not None and not task.done():
            done, _ = await asyncio.wait({task}, timeout=timeout)
            if not done:
                log.info("Speech still pending after %.1fs", timeout or 0.0)
                return None
        return self._session.result.audio_data or None

    async def aclose(self) -> None:
        """Cancel background work and release owned resources."""
        await self._session.stop_tasks()
        if self._backend is not None:
            await self._backend.aclose()
        if self._blobs is not None:
            self._blobs.clear()

    # ------------------------------------------------------------------
    # Internal steps
    # ------------------------------------------------------------------

    async def _attach_speech(self, token: GenerationToken, text: str) -> str | None:
        audio = await self._speech.generate(text)
        if not audio:
            return None
        if not self._session.is_current(token):
            log.info("Discarding stale speech result", extra={"epoch": token.epoch})
            return None
        self._session.result.audio_data = audio
        log.debug("Speech attached", extra={"epoch": token.epoch})
        return audio

    async def _revert_to_idle(self, token: GenerationToken) -> None:
        await asyncio.sleep(self._success_display_seconds)
        if self._session.is_current(token) and self._session.status is GenerationStatus.SUCCESS:
            self._session.set_status(GenerationStatus.IDLE)

    def _abandon(self, token: GenerationToken, stage: str) -> GenerationStatus:
        log.info(
            "Superseded attempt abandoned",
            extra={"epoch": token.epoch, "stage": stage, "current_epoch": self._session.epoch},
        )
        return self._session.status
