# ============================================================================
# src/prescription_pipeline/core/retry.py
# ============================================================================
"""
Bounded exponential backoff for transient failures.

Only timeouts and connectivity failures are retried. Everything else
(rejected requests, malformed responses) propagates on the first attempt.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from ..config.pipeline_config import pipeline_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number `attempt` (0-based)."""
    return min(base_delay * (2 ** attempt), max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    description: str,
    attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
) -> T:
    """
    Await `operation()` up to `attempts` times.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        description: Human-readable name for log lines
        attempts: Total attempts (defaults to RETRY_ATTEMPTS)
        base_delay: First backoff delay in seconds
        max_delay: Cap on a single delay
        retry_on: Exception types treated as transient

    Returns:
        Result of the first successful attempt

    Raises:
        The last transient error once attempts are exhausted, or any
        non-transient error immediately.
    """
    attempts = attempts if attempts is not None else pipeline_settings.RETRY_ATTEMPTS
    base_delay = base_delay if base_delay is not None else pipeline_settings.RETRY_BASE_DELAY
    max_delay = max_delay if max_delay is not None else pipeline_settings.RETRY_MAX_DELAY

    for attempt in range(attempts):
        try:
            return await operation()
        except retry_on as e:
            if attempt >= attempts - 1:
                logger.warning(f"{description} failed after {attempts} attempts: {e!r}")
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.info(
                f"{description} attempt {attempt + 1}/{attempts} failed ({e!r}), "
                f"retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise ValueError("attempts must be at least 1")
