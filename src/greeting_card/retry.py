"""
Retry with exponential backoff for remote calls.

The delay before retry ``i`` (0-based, counting failed attempts) is
``base_delay * 2 ** i``. The last failure propagates unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

log = logging.getLogger("greeting_card.retry")

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[object]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for text and image calls.

    Args:
        max_attempts: Total invocations, including the first one.
        base_delay:   Delay in seconds before the first retry.
    """

    max_attempts: int = 3
    base_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt_index: int) -> float:
        """Delay in seconds after the failed attempt ``attempt_index`` (0-based)."""
        return self.base_delay * (2**attempt_index)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
    label: str = "remote call",
) -> T:
    """Await ``operation()`` until it succeeds or ``policy.max_attempts`` is reached.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt.
        policy:    Retry policy (default: 3 attempts, 1 s base delay).
        sleep:     Awaitable sleep used between attempts.
        label:     Name used in log messages.

    Returns:
        The first successful result.

    Raises:
        Exception: The exception raised by the final attempt, unchanged.
    """
    policy = policy or RetryPolicy()

    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except Exception as exc:
            if attempt == policy.max_attempts - 1:
                log.warning(
                    "%s failed after %d attempts: %s",
                    label,
                    policy.max_attempts,
                    exc,
                )
                raise
            delay = policy.delay_for(attempt)
            log.warning(
                "%s attempt %d/%d failed, retrying in %.2fs: %s",
                label,
                attempt + 1,
                policy.max_attempts,
                delay,
                exc,
            )
            await sleep(delay)

    raise AssertionError("unreachable: max_attempts is validated to be >= 1")
