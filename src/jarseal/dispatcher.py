"""Fan archive processing out over a fixed-size thread pool.

Each archive is one unit of work. Completion order is unspecified. When a
unit fails, units that have not started yet are cancelled, units already
running are allowed to finish (an in-flight jarsigner process is never
killed), and the failure is raised once everything has settled. If several
units fail at about the same time, one of them is reported.
"""

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, Optional, TypeVar

from .errors import InterruptedWaitError

logger = logging.getLogger("jarseal.dispatcher")

T = TypeVar("T")

# How often the waiting thread checks the cancel event, in seconds.
POLL_INTERVAL = 0.1


def dispatch(
    func: Callable[[T], object],
    items: Iterable[T],
    thread_count: int,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    """Apply func to every item using up to thread_count worker threads.

    Args:
        func: Work for a single item.
        items: Items to process.
        thread_count: Size of the worker pool, at least 1.
        cancel_event: Setting this interrupts the wait. It is also set by
            this function when the waiting thread gets a KeyboardInterrupt,
            so workers sleeping on it wake up.

    Raises:
        InterruptedWaitError: If the wait was interrupted.
        Exception: The first failure raised by func.
    """
    cancel = cancel_event if cancel_event is not None else threading.Event()
    executor = ThreadPoolExecutor(
        max_workers=max(1, thread_count), thread_name_prefix="jarseal"
    )
    futures: list[Future] = []
    try:
        for item in items:
            futures.append(executor.submit(func, item))
        failure = _await_all(futures, cancel)
    except KeyboardInterrupt as exc:
        cancel.set()
        for future in futures:
            future.cancel()
        raise InterruptedWaitError(
            "Thread interrupted while waiting for jarsigner to complete"
        ) from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if failure is not None:
        raise failure


def _await_all(futures: list[Future], cancel: threading.Event) -> Optional[BaseException]:
    """Wait until every future is done or cancelled.

    Returns:
        The first failure observed, or None.

    Raises:
        InterruptedWaitError: If cancel was set while waiting.
    """
    pending = set(futures)
    failure: Optional[BaseException] = None

    while pending:
        if cancel.is_set():
            for future in pending:
                future.cancel()
            raise InterruptedWaitError(
                "Thread interrupted while waiting for jarsigner to complete"
            )

        done, pending = wait(pending, timeout=POLL_INTERVAL, return_when=FIRST_EXCEPTION)
        for future in done:
            if failure is None and not future.cancelled() and future.exception() is not None:
                failure = future.exception()
                cancelled = sum(1 for f in pending if f.cancel())
                logger.debug("Archive failed, cancelled %d pending archive(s)", cancelled)

        pending = {f for f in pending if not f.cancelled()}

    return failure
