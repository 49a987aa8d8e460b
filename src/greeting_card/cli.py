"""
greeting-card CLI — unified entry point.

Sub-commands:
  generate   Generate one card (text, background image, voice-over)
  options    List recipients and styles
  play       Play a base64 PCM payload saved to a file

Configuration sources (in priority order, highest first):
  1. CLI flags
  2. Environment variables (GREETING_CARD_*)
  3. TOML config file (--config / GREETING_CARD_CONFIG), ``[card]`` table
  4. Built-in defaults

Examples:
  greeting-card generate --recipient 朋友 --style creative --length 80
  greeting-card generate --save-image card.png --play
  greeting-card generate --longer --longer --copy
  greeting-card play speech.b64
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path

import click

from greeting_card.audio import AudioPlayer
from greeting_card.config import AppConfig, env_setting, load_config
from greeting_card.credentials import CredentialGate, PromptedCredentials, ServerSideCredentials
from greeting_card.logging_config import setup_logging
from greeting_card.models import (
    LENGTH_STEP,
    MAX_LENGTH,
    MIN_LENGTH,
    RECIPIENTS,
    GenerationConfig,
    GenerationStatus,
    StyleOption,
    card_title,
)
from greeting_card.orchestrator import GenerationOrchestrator

log = logging.getLogger("greeting_card.cli")


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

_config_option = click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    default=lambda: env_setting("CONFIG"),
    help="Path to TOML config file",
    show_default=False,
)

_log_level_option = click.option(
    "--log-level",
    default=lambda: env_setting("LOG_LEVEL", "WARNING"),
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
    show_default=True,
)


def _load_app_config(config: Path | None, **overrides: object) -> AppConfig:
    """Load file/env config and apply explicit CLI overrides."""
    try:
        app_config = load_config(config)
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(app_config, **overrides) if overrides else app_config
    except ValueError as exc:
        raise click.ClickException(f"Config error: {exc}") from exc


def _parse_style(ctx: click.Context, param: click.Parameter, value: str) -> StyleOption:
    try:
        return StyleOption.parse(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc


def _notify(message: str) -> None:
    click.echo(message, err=True)


def _copy_to_clipboard(text: str) -> bool:
    """Put ``text`` on the system clipboard; False when no clipboard is available."""
    import pyperclip

    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as exc:
        log.warning("Clipboard unavailable: %s", exc)
        return False
    return True


# ---------------------------------------------------------------------------
# CLI root
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="greeting-card")
def main() -> None:
    """greeting-card: Year of the Horse greeting cards from the generation backend."""


# ---------------------------------------------------------------------------
# options sub-command
# ---------------------------------------------------------------------------


@main.command("options")
def options_cmd() -> None:
    """List the recipients and styles the backend understands."""
    click.echo("Recipients:")
    for recipient in RECIPIENTS:
        click.echo(f"  {recipient}")
    click.echo("Styles:")
    for style in StyleOption:
        click.echo(f"  {style.name.lower():<11} {style.value}  ({card_title(style)})")
    click.echo(f"Length: {MIN_LENGTH}-{MAX_LENGTH} characters")


# ---------------------------------------------------------------------------
# generate sub-command
# ---------------------------------------------------------------------------


@main.command("generate")
@_config_option
@_log_level_option
@click.option(
    "--recipient",
    "-r",
    default="家人",
    type=click.Choice(RECIPIENTS),
    show_default=True,
    help="Who the card is for",
)
@click.option(
    "--style",
    "-s",
    default="elegant",
    callback=_parse_style,
    show_default=True,
    help="Style name (elegant, creative, colloquial, intimate) or its Chinese label",
)
@click.option(
    "--length",
    "-l",
    default=60,
    type=click.IntRange(MIN_LENGTH, MAX_LENGTH),
    show_default=True,
    help="Approximate length in characters",
)
@click.option(
    "--longer",
    count=True,
    help=f"Lengthen by {LENGTH_STEP} characters per use (repeatable, clamped)",
)
@click.option(
    "--shorter",
    count=True,
    help=f"Shorten by {LENGTH_STEP} characters per use (repeatable, clamped)",
)
@click.option("--custom-text", "-t", default="", help="Extra context for the greeting")
@click.option(
    "--backend-url",
    default=lambda: env_setting("BACKEND_URL"),
    help="Backend origin, e.g. http://localhost:3000",
)
@click.option(
    "--api-key",
    default=lambda: env_setting("API_KEY"),
    help="API key sent to the backend (prompted for when --require-key is set)",
    show_default=False,
)
@click.option(
    "--require-key/--no-require-key",
    default=False,
    help="Require a client-side API key instead of relying on the backend's",
)
@click.option(
    "--save-image",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the generated background PNG here",
)
@click.option(
    "--save-audio",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the base64 PCM voice-over here",
)
@click.option("--copy/--no-copy", default=False, help="Copy the greeting text to the clipboard")
@click.option("--play/--no-play", default=False, help="Play the voice-over when it arrives")
@click.option(
    "--audio-timeout",
    default=60.0,
    type=float,
    show_default=True,
    help="Seconds to wait for the voice-over",
)
def generate_cmd(
    config: Path | None,
    log_level: str,
    recipient: str,
    style: StyleOption,
    length: int,
    longer: int,
    shorter: int,
    custom_text: str,
    backend_url: str | None,
    api_key: str | None,
    require_key: bool,
    save_image: Path | None,
    save_audio: Path | None,
    copy: bool,
    play: bool,
    audio_timeout: float,
) -> None:
    """Generate one greeting card."""
    setup_logging(log_level)

    app_config = _load_app_config(config, backend_url=backend_url)
    card_config = GenerationConfig(
        recipient=recipient,
        style=style,
        length=length,
        custom_text=custom_text,
    )
    if longer or shorter:
        card_config = card_config.with_length_step(LENGTH_STEP * (longer - shorter))

    if require_key or api_key:
        provider = PromptedCredentials(
            api_key,
            prompt=lambda: click.prompt("API key", hide_input=True, err=True),
        )
    else:
        provider = ServerSideCredentials()

    status = asyncio.run(
        _run_generate(
            app_config,
            card_config,
            CredentialGate(provider),
            save_image=save_image,
            save_audio=save_audio,
            copy=copy,
            play=play,
            audio_timeout=audio_timeout,
        )
    )
    if status is not GenerationStatus.SUCCESS:
        raise SystemExit(1)


async def _run_generate(
    app_config: AppConfig,
    card_config: GenerationConfig,
    credentials: CredentialGate,
    *,
    save_image: Path | None,
    save_audio: Path | None,
    copy: bool,
    play: bool,
    audio_timeout: float,
) -> GenerationStatus:
    orchestrator = GenerationOrchestrator.from_config(
        app_config,
        credentials=credentials,
        notify=_notify,
    )
    player = AudioPlayer(sample_rate=app_config.sample_rate)
    try:
        status = await orchestrator.generate(card_config)
        result = orchestrator.session.result

        if result.text is not None:
            click.echo(card_title(card_config.style))
            click.echo(result.text)

        if copy and result.text:
            if _copy_to_clipboard(result.text):
                click.echo("Greeting copied to the clipboard.", err=True)
            else:
                click.echo("Clipboard unavailable; greeting not copied.", err=True)

        if save_image is not None:
            if result.image is not None:
                result.image.save(save_image)
                click.echo(f"Image saved to {save_image}", err=True)
            else:
                click.echo("No image generated; the default background applies.", err=True)

        if status is GenerationStatus.SUCCESS and (play or save_audio is not None):
            await orchestrator.wait_for_audio(timeout=audio_timeout)
            result = orchestrator.session.result
            audio = result.audio_data
            if not result.has_audio:
                click.echo("No voice-over available.", err=True)
            else:
                if save_audio is not None:
                    save_audio.write_text(audio, encoding="ascii")
                    click.echo(f"Voice-over saved to {save_audio}", err=True)
                if play:
                    await player.play(audio)
        return status
    finally:
        player.close()
        await orchestrator.aclose()


# ---------------------------------------------------------------------------
# play sub-command
# ---------------------------------------------------------------------------


@main.command("play")
@_log_level_option
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--sample-rate",
    default=24_000,
    type=int,
    show_default=True,
    help="Sample rate of the PCM payload",
)
def play_cmd(log_level: str, payload: Path, sample_rate: int) -> None:
    """Play a base64 16-bit PCM payload (as written by --save-audio)."""
    setup_logging(log_level)

    player = AudioPlayer(sample_rate=sample_rate)
    try:
        played = asyncio.run(player.play(payload.read_text(encoding="ascii").strip()))
    finally:
        player.close()
    if not played:
        raise click.ClickException(f"Could not play {payload}")


if __name__ == "__main__":
    main()
