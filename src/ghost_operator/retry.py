"""
Exponential backoff for collaborator HTTP calls.

Only transport failures are retried. A compute API that answers with an
error status is a recorded failure, not something to hammer.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Callable, Tuple, Type

import requests

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first
        backoff_factor: Multiplier for exponential backoff
        min_wait: Wait before the first retry, in seconds
        max_wait: Upper bound on any single wait
        jitter: Randomize each wait to 50-100% of its computed value
        retryable_exceptions: Exception types that trigger a retry
    """
    max_attempts: int = 3
    backoff_factor: float = 1.0
    min_wait: float = 0.5
    max_wait: float = 8.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        requests.ConnectionError,
        requests.Timeout,
    )


HTTP_RETRY = RetryConfig()


def calculate_backoff(
    attempt: int,
    backoff_factor: float,
    min_wait: float,
    max_wait: float,
    jitter: bool
) -> float:
    """
    Wait time before retry number ``attempt`` (0-indexed).

    ``min(max_wait, min_wait * 2**attempt * backoff_factor)``, optionally
    scaled into the 50-100% band.
    """
    wait = min(max_wait, min_wait * (2 ** attempt) * backoff_factor)

    if jitter:
        wait = wait * (0.5 + random.random() * 0.5)

    return wait


def retry_async(config: RetryConfig = HTTP_RETRY) -> Callable:
    """
    Decorator retrying an async function with exponential backoff.

    Waits are cooperative (``asyncio.sleep``) so a retrying call never
    blocks other pipeline work. The last exception is re-raised once
    attempts are exhausted.

    Example:
        @retry_async(RetryConfig(max_attempts=5))
        async def list_services(self):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(config.max_attempts):
                try:
                    return await func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    if attempt + 1 >= config.max_attempts:
                        logger.error(
                            f"Max retries ({config.max_attempts}) exceeded for {func.__name__}: {e}"
                        )
                        raise

                    wait_time = calculate_backoff(
                        attempt,
                        config.backoff_factor,
                        config.min_wait,
                        config.max_wait,
                        config.jitter,
                    )
                    logger.warning(
                        f"Retry {attempt + 1}/{config.max_attempts} for {func.__name__} "
                        f"after {wait_time:.2f}s: {e}"
                    )
                    await asyncio.sleep(wait_time)

        return wrapper
    return decorator
