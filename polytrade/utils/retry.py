# polytrade/utils/retry.py
"""
Retry logic for exchange and RPC transport calls.

Only transport failures are retried. Construction and signing errors are
deterministic: the same input fails the same way, so they propagate at once.

Functions:
    retry: Retry function with exponential backoff

Example:
    >>> from polytrade.utils.retry import retry
    >>> @retry(max_attempts=3)
    ... def api_call():
    ...     return client.get_tick_size(token_id)
"""

import time
import random
import functools
from typing import Callable

import structlog

from polytrade.exceptions import PolytradeError, TRANSIENT_ERRORS

logger = structlog.get_logger(__name__)


def retry(
    exceptions: type[PolytradeError] | tuple[type[PolytradeError], ...] = TRANSIENT_ERRORS,
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    backoff_factor: float = 2.0,
    jitter: bool = True,
) -> Callable:
    """
    Decorator for retrying function calls with exponential backoff.

    Args:
        exceptions: Exception type(s) to catch and retry on
        max_attempts: Maximum number of attempts
        initial_delay: Initial delay in seconds before first retry
        backoff_factor: Multiplier for delay after each retry
        jitter: Add random jitter to delay to prevent thundering herd

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = initial_delay
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt == max_attempts - 1:
                        break

                    actual_delay = delay
                    if jitter:
                        actual_delay = delay * (0.5 + random.random())

                    logger.warning(
                        "retrying",
                        func=func.__name__,
                        attempt=attempt + 1,
                        max_attempts=max_attempts,
                        delay=round(actual_delay, 2),
                        error=str(e),
                    )

                    time.sleep(actual_delay)
                    delay *= backoff_factor

            raise last_exception

        return wrapper

    return decorator
