"""Retry with exponential backoff for async operations."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_DELAY = 1.0
MAX_DELAY = 10.0


def backoff_delay(attempt: int, base_delay: float = BASE_DELAY, max_delay: float = MAX_DELAY) -> float:
    """Delay in seconds after the given failed attempt (1-based).

    2s, 4s, 8s, then capped at 10s with the defaults.
    """
    return min((2 ** attempt) * base_delay, max_delay)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    backoff: Callable[[int], float] = backoff_delay,
    is_retryable: Callable[[BaseException], bool] = lambda exc: True,
    on_failure: Optional[Callable[[int, BaseException], None]] = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    operation_name: str = "operation",
) -> T:
    """Run operation until it succeeds or max_attempts is reached.

    Args:
        operation: Coroutine factory to execute
        max_attempts: Maximum number of attempts (at least one is made)
        backoff: Maps a failed attempt number to the delay before the next one
        is_retryable: Non-retryable exceptions propagate immediately
        on_failure: Called with (attempt, exception) for every retryable failure
        sleep: Coroutine used to wait between attempts
        operation_name: Label for log messages

    Returns:
        Result of the first successful attempt

    Raises:
        The last exception once every attempt has failed
    """
    attempts = max(1, max_attempts)
    last_error: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e
            if on_failure:
                on_failure(attempt, e)

            # No wait after the final attempt
            if attempt < attempts:
                delay = backoff(attempt)
                logger.debug(
                    f"Retry {attempt}/{attempts} for {operation_name} "
                    f"in {delay:.1f}s after: {e}"
                )
                await sleep(delay)

    if last_error is None:
        raise RuntimeError(f"{operation_name} failed without an exception")
    raise last_error
