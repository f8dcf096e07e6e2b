"""Bounded polling of a service-side property."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0


async def wait_for_state(
    timeout: float,
    read: Callable[[], Awaitable[T]],
    check: Callable[[T], bool],
    interval: float = POLL_INTERVAL,
) -> bool:
    """Poll `read()` until `check` accepts its value or the timeout passes.

    The wait is a coroutine: callers cancel it like any other task.

    Args:
        timeout: Seconds to keep polling
        read: Reads the current value (errors propagate)
        check: Returns True when the desired value is reached
        interval: Seconds between reads

    Returns:
        True if the value matched, False on timeout
    """
    elapsed = 0.0
    while True:
        value = await read()
        if check(value):
            logger.debug("State matched: %s / %.0fs elapsed", value, elapsed)
            return True
        if elapsed >= timeout:
            logger.debug("Timeout waiting for state: %s / %.0fs elapsed", value, elapsed)
            return False
        await asyncio.sleep(interval)
        elapsed += interval
        logger.debug("Still waiting for state: %s / %.0fs elapsed", value, elapsed)
