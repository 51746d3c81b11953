"""
Retry helper for transient network failures.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff delay for a zero-based attempt number, capped at ``max_delay``."""
    return min(base_delay * (2 ** attempt), max_delay)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    retry_on: tuple[type[BaseException], ...],
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    description: str = "operation",
) -> T:
    """
    Run an async operation, retrying on the given exception types.

    Args:
        operation: Zero-argument coroutine factory
        retry_on: Exception types considered transient
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound on any single delay
        description: Name used in log messages

    Returns:
        The operation's result

    Raises:
        The last transient exception once retries are exhausted; any other
        exception immediately.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_retries:
                logger.error(f"{description} failed after {attempt + 1} attempts: {e}")
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            attempt += 1
            logger.warning(
                f"{description} failed (attempt {attempt}/{max_retries + 1}): {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)
