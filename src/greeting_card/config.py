"""
Application configuration.

Sources (highest priority first):
  1. CLI flags (applied by the caller via ``dataclasses.replace``)
  2. Environment variables (GREETING_CARD_*)
  3. TOML config file, ``[card]`` table
  4. Built-in defaults
"""

from __future__ import annotations

import dataclasses
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

log = logging.getLogger("greeting_card.config")

ENV_PREFIX = "GREETING_CARD_"


@dataclass(frozen=True)
class AppConfig:
    """Configuration for the generation client."""

    # Backend
    backend_url: str = "http://localhost:3000"
    text_path: str = "/api/generate-text"
    image_path: str = "/api/generate-image"
    speech_path: str = "/api/generate-speech"

    # HTTP timeout in seconds; image generation can be slow
    http_timeout: float = 60.0

    # Retry policy for text and image calls
    retry_attempts: int = 3
    retry_base_delay: float = 1.0

    # How long SUCCESS is shown before the status reverts to IDLE
    success_display_seconds: float = 5.0

    # Speech payload sample rate (16-bit mono PCM)
    sample_rate: int = 24_000

    def __post_init__(self) -> None:
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        if self.retry_base_delay < 0:
            raise ValueError("retry_base_delay must not be negative")
        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be positive")
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")


def env_setting(key: str, default: str | None = None) -> str | None:
    """Read an environment variable with the GREETING_CARD_ prefix."""
    return os.environ.get(f"{ENV_PREFIX}{key.upper()}", default)


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load a TOML config file and return the parsed dict."""
    try:
        if sys.version_info >= (3, 11):
            import tomllib

            return tomllib.loads(path.read_text(encoding="utf-8"))
        else:
            import tomli  # type: ignore[import]

            return tomli.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        log.warning("Config file not found: %s", path)
        return {}


def _coerce(name: str, raw: Any, target: type) -> Any:
    try:
        return target(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be of type {target.__name__}; got {raw!r}") from exc


def load_config(path: Path | None = None) -> AppConfig:
    """Build an AppConfig from the TOML file (if any) and the environment."""
    values: dict[str, Any] = {}
    if path is not None:
        values.update(load_toml_config(path).get("card", {}))

    for f in dataclasses.fields(AppConfig):
        raw = env_setting(f.name)
        if raw is not None:
            values[f.name] = raw

    kwargs: dict[str, Any] = {}
    types = {f.name: type(f.default) for f in dataclasses.fields(AppConfig)}
    for name, raw in values.items():
        if name not in types:
            log.warning("Ignoring unknown config key: %s", name)
            continue
        kwargs[name] = _coerce(name, raw, types[name])

    return AppConfig(**kwargs)
