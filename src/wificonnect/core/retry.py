"""Retrying async operations that may not succeed yet.

Used for work that fails until the radio catches up, such as a scan that
finds nothing right after the device comes up.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator, ParamSpec, TypeVar

from .errors import NetworkError

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """How often and how patiently to retry.

    Attributes:
        max_attempts: Total attempts, the first one included
        base_delay: Seconds before the first retry
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor per retry (1.0 keeps the delay fixed)
        jitter: Randomize each delay to 50-100% of its value
        retryable_exceptions: Exceptions that trigger another attempt
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (NetworkError,)
    )

    def calculate_delay(self, attempt: int) -> float:
        """Delay after the 0-indexed `attempt` failed."""
        delay = min(self.base_delay * self.exponential_base**attempt, self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random() * 0.5
        return delay

    def delays(self) -> Iterator[float]:
        """Delays between consecutive attempts (max_attempts - 1 of them)."""
        for attempt in range(self.max_attempts - 1):
            yield self.calculate_delay(attempt)


def async_retry(
    config: RetryConfig | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator retrying a coroutine function per `config`.

    The last failure propagates unchanged; exceptions outside
    ``retryable_exceptions`` propagate immediately.

    Usage:
        @async_retry(RetryConfig(max_attempts=5))
        async def list_devices():
            ...

        scan = async_retry(RetryConfig(max_attempts=11, jitter=False))(scan_once)
    """
    config = config or RetryConfig()

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            for attempt, delay in enumerate(config.delays(), start=1):
                try:
                    return await func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    logger.debug(
                        "%s attempt %d/%d failed, retrying in %.1fs: %s",
                        func.__name__,
                        attempt,
                        config.max_attempts,
                        delay,
                        e,
                        extra={"error_type": type(e).__name__},
                    )
                await asyncio.sleep(delay)

            try:
                return await func(*args, **kwargs)
            except config.retryable_exceptions:
                logger.warning("All %d attempts failed for %s", config.max_attempts, func.__name__)
                raise

        return wrapper

    return decorator
