"""Tests for the exponential backoff wait strategy."""

import logging
import threading
from datetime import timedelta

import pytest

from jarseal.backoff import (
    MAX_WAIT_EXPONENT_ATTEMPT,
    backoff_delay_millis,
    event_sleeper,
    wait_after_failure,
)
from jarseal.errors import InterruptedWaitError, JarsignerError


class RecordingSleeper:
    """Remembers the most recent sleep instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def last(self):
        return self.calls[-1] if self.calls else None


class TestBackoffDelay:
    """Delay computation."""

    @pytest.mark.parametrize("attempt", [0, 1, 5, 25])
    def test_zero_ceiling_means_no_delay(self, attempt):
        assert backoff_delay_millis(attempt, timedelta(0)) == 0

    def test_doubles_per_attempt(self):
        ceiling = timedelta(hours=1)
        assert [backoff_delay_millis(n, ceiling) for n in range(4)] == [1000, 2000, 4000, 8000]

    def test_ceiling_applies(self):
        assert backoff_delay_millis(3, timedelta(seconds=5)) == 5000

    def test_exponent_clamped(self):
        ceiling = timedelta(days=356)
        at_limit = backoff_delay_millis(MAX_WAIT_EXPONENT_ATTEMPT, ceiling)
        assert at_limit == 1_048_576 * 1000
        assert backoff_delay_millis(10_000, ceiling) == at_limit
        assert backoff_delay_millis(2**31 - 1, ceiling) == at_limit

    def test_negative_attempt_rounds_to_zero(self):
        assert backoff_delay_millis(-(2**31), timedelta(seconds=100)) == 0


class TestWaitAfterFailure:
    """Sleeping and interruption."""

    def test_default_wait_strategy(self, caplog):
        caplog.set_level(logging.INFO, logger="jarseal")
        sleeper = RecordingSleeper()

        wait_after_failure(0, timedelta(0), sleeper)
        wait_after_failure(1, timedelta(0), sleeper)
        assert sleeper.calls == []

        wait_after_failure(0, timedelta(seconds=1), sleeper)
        assert sleeper.last == 1.0
        assert "for 1 seconds" in caplog.text

        wait_after_failure(1, timedelta(seconds=1), sleeper)
        assert sleeper.last == 1.0
        wait_after_failure(3, timedelta(seconds=100), sleeper)
        assert sleeper.last == 8.0
        wait_after_failure(2**31 - 1, timedelta(seconds=100), sleeper)
        assert sleeper.last == 100.0

        calls = len(sleeper.calls)
        wait_after_failure(-(2**31), timedelta(seconds=100), sleeper)
        assert len(sleeper.calls) == calls

        wait_after_failure(10_000, timedelta(days=356), sleeper)
        assert sleeper.last == 1_048_576.0
        wait_after_failure(10_000, timedelta(days=1), sleeper)
        assert sleeper.last == timedelta(days=1).total_seconds()

    def test_interrupted_sleep(self):
        def interrupted(seconds: float) -> None:
            raise InterruptedError("Thread was interrupted while sleeping.")

        with pytest.raises(InterruptedWaitError) as excinfo:
            wait_after_failure(0, timedelta(seconds=10), interrupted)

        assert "interrupted while waiting after failure" in str(excinfo.value)
        assert isinstance(excinfo.value, JarsignerError)
        assert isinstance(excinfo.value.__cause__, InterruptedError)


class TestEventSleeper:
    """Cancellable sleeping on a threading.Event."""

    def test_sleeps_when_not_cancelled(self):
        sleep = event_sleeper(threading.Event())
        sleep(0.01)  # Returns normally

    def test_set_event_interrupts_and_stays_set(self):
        event = threading.Event()
        event.set()
        sleep = event_sleeper(event)

        with pytest.raises(InterruptedError):
            sleep(60)
        assert event.is_set()

        with pytest.raises(InterruptedWaitError):
            wait_after_failure(0, timedelta(seconds=60), sleep)

    def test_event_set_from_other_thread(self):
        event = threading.Event()
        timer = threading.Timer(0.05, event.set)
        timer.start()
        try:
            with pytest.raises(InterruptedError):
                event_sleeper(event)(30)
        finally:
            timer.cancel()
