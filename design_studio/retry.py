"""Bounded retry with backoff for provider calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def exponential_backoff(base_sec: float) -> Callable[[int], float]:
    """Return a backoff function: base_sec * 2**attempt (10s, 20s, ... for base 10)."""

    def _backoff(attempt: int) -> float:
        return base_sec * (2 ** attempt)

    return _backoff


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    backoff: Callable[[int], float],
    is_retryable: Callable[[Exception], bool],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Await ``operation`` until it succeeds or retries are exhausted.

    Args:
        operation: Zero-arg coroutine factory, re-invoked on every attempt.
        max_retries: Retries after the first attempt (total calls <= max_retries + 1).
        backoff: Maps the 0-indexed retry attempt to a wait in seconds.
        is_retryable: Errors for which this returns False are raised immediately.
        sleep: Awaitable sleep, injectable for tests.
        label: Name used in log messages.

    Returns:
        The first successful result.

    Raises:
        The last error once it is non-retryable or retries are exhausted.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc) or attempt >= max_retries:
                raise
            wait = backoff(attempt)
            logger.warning(
                "[%s] %s, waiting %.0fs before retry %d/%d",
                label, exc, wait, attempt + 1, max_retries,
            )
            await sleep(wait)
            attempt += 1
