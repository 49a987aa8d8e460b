"""
Data model for one greeting-card session.

The style labels are sent to the backend verbatim, so ``StyleOption`` values
are the Chinese names the backend prompts are keyed on.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import numpy as np

    from greeting_card.blobs import ImageHandle

MIN_LENGTH = 20
MAX_LENGTH = 150
LENGTH_STEP = 10

RECIPIENTS: tuple[str, ...] = ("家人", "朋友", "同事", "长辈", "商业伙伴", "爱人")


class StyleOption(str, Enum):
    ELEGANT = "古风典雅"
    CREATIVE = "文采斐然"
    COLLOQUIAL = "通俗口语"
    INTIMATE = "亲密温馨"

    @classmethod
    def parse(cls, text: str) -> StyleOption:
        """Accept a member name (any case) or the Chinese label."""
        cleaned = text.strip()
        for option in cls:
            if cleaned == option.value or cleaned.upper() == option.name:
                return option
        choices = ", ".join(f"{o.name.lower()} ({o.value})" for o in cls)
        raise ValueError(f"Unknown style {text!r}; expected one of: {choices}")


_CARD_TITLES: dict[StyleOption, str] = {
    StyleOption.ELEGANT: "新春大吉",
    StyleOption.CREATIVE: "福蛇迎春",
    StyleOption.INTIMATE: "幸福安康",
    StyleOption.COLLOQUIAL: "恭喜发财",
}


def card_title(style: StyleOption) -> str:
    """Heading shown above the greeting text for a style."""
    return _CARD_TITLES[style]


class GenerationStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class GenerationConfig:
    """User input for one generation attempt.

    ``length`` is an approximate character-count target.
    """

    recipient: str = "家人"
    style: StyleOption = StyleOption.ELEGANT
    length: int = 60
    custom_text: str = ""

    def __post_init__(self) -> None:
        if self.recipient not in RECIPIENTS:
            raise ValueError(
                f"recipient must be one of {', '.join(RECIPIENTS)}; got {self.recipient!r}"
            )
        if not isinstance(self.style, StyleOption):
            raise ValueError(f"style must be a StyleOption; got {self.style!r}")
        if isinstance(self.length, bool) or not isinstance(self.length, int):
            raise ValueError(f"length must be an integer; got {self.length!r}")
        if not MIN_LENGTH <= self.length <= MAX_LENGTH:
            raise ValueError(
                f"length must be between {MIN_LENGTH} and {MAX_LENGTH}; got {self.length}"
            )
        if not isinstance(self.custom_text, str):
            raise ValueError("custom_text must be a string")

    def to_payload(self) -> dict[str, Any]:
        """Wire form expected by the text endpoint."""
        return {
            "recipient": self.recipient,
            "style": self.style.value,
            "length": self.length,
            "customText": self.custom_text,
        }

    def with_length_step(self, delta: int = LENGTH_STEP) -> GenerationConfig:
        """Return a copy with ``length`` moved by ``delta``, clamped to the valid range."""
        length = max(MIN_LENGTH, min(MAX_LENGTH, self.length + delta))
        return dataclasses.replace(self, length=length)


@dataclass
class GeneratedResult:
    """What the card currently displays.

    Fields are filled independently; a missing image or audio payload never
    invalidates the text.
    """

    text: str | None = None
    image: ImageHandle | None = None
    audio_data: str | None = None  # base64 16-bit PCM as returned by the backend

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_data)

    def audio_samples(self) -> np.ndarray | None:
        """Decode ``audio_data`` into float samples, or None if absent."""
        if not self.audio_data:
            return None
        from greeting_card.audio import decode_pcm16

        return decode_pcm16(self.audio_data)
