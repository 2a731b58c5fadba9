"""
Retry Logic with Exponential Backoff.

`retry_with_backoff` retries an async call in-process (short transient
storage errors). `backoff_delay` computes the reschedule delay the job
queue applies between attempts of a failed job.
"""

import asyncio
import logging
from typing import TypeVar, Callable, Tuple, Optional
from functools import wraps

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def backoff_delay(attempt: int, initial_delay: float, backoff_factor: float) -> float:
    """
    Delay before the next try after `attempt` failed attempts.

    Delays:
        after attempt 1: initial_delay
        after attempt 2: initial_delay * backoff_factor
        after attempt 3: initial_delay * backoff_factor^2
    """
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return initial_delay * (backoff_factor ** (attempt - 1))


def retry_with_backoff(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: Tuple = (Exception,),
    on_retry: Optional[Callable] = None
):
    """
    Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        initial_delay: Initial delay between retries (seconds)
        backoff_factor: Multiplier for delay after each retry
        exceptions: Tuple of exception types to catch
        on_retry: Optional callback(attempt, exception, delay) called before retry

    Example:
        @retry_with_backoff(max_attempts=3, initial_delay=0.2, exceptions=(OperationalError,))
        async def send_message(...):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(
                            f"❌ {func.__name__} failed after {max_attempts} attempts: {e}"
                        )
                        raise

                    delay = backoff_delay(attempt, initial_delay, backoff_factor)
                    logger.warning(
                        f"⚠️ {func.__name__} attempt {attempt}/{max_attempts} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    if on_retry:
                        on_retry(attempt, e, delay)

                    await asyncio.sleep(delay)

        return wrapper
    return decorator


class RetryConfig:
    """Retry settings for in-process retries."""

    MESSAGING_MAX_ATTEMPTS = 3
    MESSAGING_INITIAL_DELAY = 0.2
    MESSAGING_BACKOFF_FACTOR = 2.0
    MESSAGING_EXCEPTIONS = (OperationalError,)

    @classmethod
    def get_messaging_retry_decorator(cls):
        """Pre-configured decorator for conversation/message writes."""
        return retry_with_backoff(
            max_attempts=cls.MESSAGING_MAX_ATTEMPTS,
            initial_delay=cls.MESSAGING_INITIAL_DELAY,
            backoff_factor=cls.MESSAGING_BACKOFF_FACTOR,
            exceptions=cls.MESSAGING_EXCEPTIONS
        )


messaging_retry = RetryConfig.get_messaging_retry_decorator()
