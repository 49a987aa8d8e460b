"""
Decode and play the backend's speech payload.

The speech endpoint returns base64-encoded signed 16-bit little-endian mono
PCM at 24 kHz. ``decode_pcm16`` turns it into float samples in [-1.0, 1.0);
``AudioPlayer`` plays one payload at a time on a lazily opened output stream.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from collections.abc import Callable
from typing import Any, Protocol

import numpy as np

log = logging.getLogger("greeting_card.audio")

SAMPLE_RATE = 24_000
SAMPLE_WIDTH = 2  # 16-bit PCM
CHANNELS = 1
PCM_SCALE = 32768.0


def decode_pcm16(audio_b64: str, *, dtype: Any = np.float32) -> np.ndarray:
    """Decode base64 int16 LE PCM into a 1-D float array.

    Args:
        audio_b64: Base64 string of raw PCM bytes (no WAV header).
        dtype:     Float dtype of the returned samples.

    Returns:
        Samples normalised by 32768, so full-scale negative maps to -1.0.

    Raises:
        ValueError: Invalid base64, or a byte count that is not a whole
                    number of samples.
    """
    try:
        raw = base64.b64decode(audio_b64, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Audio payload is not valid base64: {exc}") from exc

    if len(raw) % SAMPLE_WIDTH:
        raise ValueError(f"PCM payload has an odd byte length ({len(raw)})")

    samples = np.frombuffer(raw, dtype="<i2")
    return samples.astype(dtype) / dtype(PCM_SCALE)


class OutputStream(Protocol):
    def write(self, data: np.ndarray) -> Any: ...

    def close(self) -> Any: ...


StreamFactory = Callable[[int], OutputStream]


def _sounddevice_stream(sample_rate: int) -> OutputStream:
    """Open and start a mono float32 output stream on the default device."""
    import sounddevice as sd

    stream = sd.OutputStream(samplerate=sample_rate, channels=CHANNELS, dtype="float32")
    stream.start()
    return stream


class AudioPlayer:
    """One-shot player for speech payloads.

    At most one playback runs at a time; requests made while playing are
    ignored. The output stream is opened on the first playback and reused.

    Args:
        sample_rate:    Payload sample rate in Hz.
        stream_factory: Callable opening an output stream for a sample rate
                        (default: sounddevice).
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        stream_factory: StreamFactory | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self._stream_factory = stream_factory or _sounddevice_stream
        self._stream: OutputStream | None = None
        self._is_playing = False

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    async def play(self, audio_b64: str | None) -> bool:
        """Decode and play ``audio_b64`` once.

        Returns:
            True if the payload played to completion, False if the request
            was ignored or playback failed.
        """
        if not audio_b64 or self._is_playing:
            return False

        self._is_playing = True
        try:
            samples = decode_pcm16(audio_b64)
            stream = self._ensure_stream()
            await asyncio.to_thread(stream.write, samples.reshape(-1, CHANNELS))
            log.info(
                "Playback finished",
                extra={"samples": int(samples.size), "seconds": samples.size / self.sample_rate},
            )
            return True
        except Exception as exc:
            log.exception("Audio playback failed: %s", exc)
            return False
        finally:
            self._is_playing = False

    def _ensure_stream(self) -> OutputStream:
        if self._stream is None:
            log.debug("Opening audio output stream", extra={"sample_rate": self.sample_rate})
            self._stream = self._stream_factory(self.sample_rate)
        return self._stream

    def close(self) -> None:
        """Close the output stream, if one was opened."""
        if self._stream is not None:
            try:
                self._stream.close()
            finally:
                self._stream = None
