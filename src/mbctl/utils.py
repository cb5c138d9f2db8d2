"""Shared utilities for mbctl.

Polling helpers used by the lifecycle controller.
"""

from __future__ import annotations

__all__ = [
    "wait_for_condition",
]

import asyncio
import time
from collections.abc import Callable

# Default poll interval for condition waiting (seconds)
DEFAULT_POLL_INTERVAL_SECONDS = 0.1


async def wait_for_condition(
    condition_fn: Callable[[], bool],
    timeout_seconds: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> bool:
    """Wait for a condition to become true.

    Polls the condition function until it returns True or timeout is reached.
    The condition is checked once more at the deadline.

    Args:
        condition_fn: Function that returns True when condition is met.
        timeout_seconds: Maximum time to wait.
        poll_interval: Time between condition checks.

    Returns:
        True if condition was met within timeout, False otherwise.
    """
    deadline = time.monotonic() + timeout_seconds
    while True:
        if condition_fn():
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(poll_interval, remaining))
