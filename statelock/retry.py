"""
Bounded exponential backoff for acquiring a busy state lock.

The acquire loop is the only place an operation waits; it never blocks
indefinitely.
"""

import logging
import time
from typing import Callable

from .errors import LockBusyError, LockTimeoutError
from .lock.base import LockCoordinator
from .models import LockToken

logger = logging.getLogger(__name__)


def acquire_with_backoff(
    coordinator: LockCoordinator,
    key: str,
    holder_id: str,
    operation: str = "",
    max_attempts: int = 5,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
) -> LockToken:
    """
    Acquire `key`, retrying with exponential backoff while it is busy.

    Args:
        coordinator: Lock coordinator to acquire from
        key: Lock identifier (the state key)
        holder_id: Identity of the caller
        operation: Operation name recorded in the lock record
        max_attempts: Total attempts including the first
        initial_delay: Delay after the first busy attempt, in seconds
        max_delay: Upper bound for any single delay
        sleep: Sleep function (injectable for tests)

    Returns:
        LockToken for the acquired lock

    Raises:
        LockTimeoutError: If the lock is still busy after max_attempts
    """
    delay = initial_delay
    last_busy = None

    for attempt in range(1, max_attempts + 1):
        try:
            return coordinator.acquire(key, holder_id, operation)
        except LockBusyError as e:
            last_busy = e
            if attempt < max_attempts:
                logger.warning(
                    f"State lock '{key}' busy (attempt {attempt}/{max_attempts}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                sleep(delay)
                delay = min(delay * 2, max_delay)  # Exponential backoff

    logger.error(f"All {max_attempts} attempts to acquire '{key}' failed")
    raise LockTimeoutError(key, max_attempts, last_busy.record if last_busy else None) from last_busy
