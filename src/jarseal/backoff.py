"""Exponential backoff between signing attempts.

After the n-th failed attempt (0-based) the worker sleeps for
``min(2**n seconds, max_retry_delay)``. The exponent stops growing at 20,
so even an absurd attempt number waits at most 2**20 seconds before the
ceiling applies. A zero ceiling disables waiting entirely.

The wait is reached through a :class:`WaitStrategy` so that tests and
embedders can swap in a no-op or recording implementation.
"""

import logging
import threading
import time
from datetime import timedelta
from typing import Callable, Protocol

from .errors import InterruptedWaitError

logger = logging.getLogger("jarseal.backoff")

MAX_WAIT_EXPONENT_ATTEMPT = 20

Sleeper = Callable[[float], None]


class WaitStrategy(Protocol):
    """Called after a failed attempt that will be retried."""

    def __call__(self, attempt: int, max_retry_delay: timedelta) -> None: ...


def backoff_delay_millis(attempt: int, max_retry_delay: timedelta) -> int:
    """Compute the delay after a failed attempt, in whole milliseconds.

    Args:
        attempt: Number of failures so far, starting at 0.
        max_retry_delay: Upper bound for the delay.

    Returns:
        The delay, never negative.
    """
    exponent = min(attempt, MAX_WAIT_EXPONENT_ATTEMPT)
    delay = int(1000 * 2.0 ** exponent)
    ceiling = int(max_retry_delay.total_seconds() * 1000)
    return max(0, min(delay, ceiling))


def wait_after_failure(
    attempt: int, max_retry_delay: timedelta, sleeper: Sleeper = time.sleep
) -> None:
    """Sleep for the backoff delay of a failed attempt.

    Args:
        attempt: Number of failures so far, starting at 0.
        max_retry_delay: Upper bound for the delay.
        sleeper: Called with the delay in seconds. Raising
            :class:`InterruptedError` signals an interrupted wait.

    Raises:
        InterruptedWaitError: If the sleep was interrupted.
    """
    delay_millis = backoff_delay_millis(attempt, max_retry_delay)
    if delay_millis <= 0:
        return

    logger.info("Sleeping after failed attempt for %d seconds...", delay_millis // 1000)
    try:
        sleeper(delay_millis / 1000)
    except InterruptedError as exc:
        raise InterruptedWaitError("Thread interrupted while waiting after failure") from exc


def event_sleeper(event: threading.Event) -> Sleeper:
    """Build a sleeper that wakes up early when event is set.

    The event is left set, so any later wait on it is interrupted too.

    Args:
        event: Cancellation flag shared with the dispatcher.

    Returns:
        A sleeper that raises :class:`InterruptedError` on cancellation.
    """

    def sleep(seconds: float) -> None:
        if event.wait(seconds):
            raise InterruptedError("cancelled while sleeping")

    return sleep
