"""
Concurrency helpers for the Semaphore Contention Simulator.

Small thread-safe building blocks shared by the gate, the resources and the
workers: an atomic integer counter, a count-down latch and a cooperative
interrupt token.
"""

import threading
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional


class AtomicCounter:
    """
    Integer counter with atomic read-modify-write operations.

    Every mutating call returns the new value, so callers can act on the
    value they produced instead of re-reading it later.
    """

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def increment_and_get(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def decrement_and_get(self) -> int:
        with self._lock:
            self._value -= 1
            return self._value

    def get(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"AtomicCounter({self.get()})"


class CountDownLatch:
    """
    One-shot latch released once `count_down` has been called `count` times.

    Used as the start barrier (count 1) and the finish counter (count N) of
    operation-bounded workloads.
    """

    def __init__(self, count: int):
        if count < 0:
            raise ValueError(f"Latch count cannot be negative: {count}")
        self._count = count
        self._condition = threading.Condition()

    def count_down(self) -> None:
        with self._condition:
            if self._count > 0:
                self._count -= 1
                if self._count == 0:
                    self._condition.notify_all()

    def await_(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the count reaches zero.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            True if the latch opened, False on timeout
        """
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout)

    @property
    def count(self) -> int:
        with self._condition:
            return self._count


class InterruptToken:
    """
    Cooperative interruption shared by a worker and the primitives it blocks in.

    `sleep_ms` returns early once the token fires, and any condition variable
    registered through `watching` is notified so its waiters re-check.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._conditions: List[threading.Condition] = []

    def interrupt(self) -> None:
        """Fire the token and wake every sleeper and registered waiter."""
        self._event.set()
        with self._lock:
            conditions = list(self._conditions)
        for condition in conditions:
            with condition:
                condition.notify_all()

    def is_interrupted(self) -> bool:
        return self._event.is_set()

    def sleep_ms(self, duration_ms: float) -> bool:
        """
        Sleep for `duration_ms` milliseconds unless interrupted.

        Returns:
            True if the full duration elapsed, False if interrupted
        """
        if duration_ms <= 0:
            return not self._event.is_set()
        return not self._event.wait(duration_ms / 1000.0)

    @contextmanager
    def watching(self, condition: threading.Condition) -> Iterator[None]:
        """Register `condition` to be notified if the token fires."""
        with self._lock:
            self._conditions.append(condition)
        try:
            yield
        finally:
            with self._lock:
                self._conditions.remove(condition)


def sleep_ms(duration_ms: float, interrupt: Optional[InterruptToken] = None) -> bool:
    """
    Sleep helper used at every suspension point.

    Returns:
        True if the sleep completed, False if `interrupt` fired
    """
    if interrupt is not None:
        return interrupt.sleep_ms(duration_ms)
    if duration_ms > 0:
        time.sleep(duration_ms / 1000.0)
    return True
