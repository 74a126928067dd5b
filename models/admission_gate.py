"""
Admission Gate model for the Semaphore Contention Simulator.

A counting semaphore that stands in for a distributed coordination service:
every acquire and release first pays a simulated network round-trip, then
changes the permit count under the gate's own lock.
"""

import threading
import time
from typing import Optional

import numpy as np

from utils.concurrency import InterruptToken, sleep_ms
from utils.random_source import gaussian_ms


class AdmissionGate:
    """
    Counting admission primitive with timeout-bounded waiting.

    Attributes:
        count: Permits currently available
        max_count: Capacity fixed at construction
        name: Opaque identifier (e.g. "sem_resource_0")

    Invariant:
        0 <= count <= max_count

    Any thread may release a permit; the gate does not track holders and does
    not detect over-release. Each instance owns its lock and condition, so
    gates on different resources never contend with each other.
    """

    def __init__(self, permits: int, name: str = ""):
        if permits < 0:
            raise ValueError(f"Gate {name!r}: permits cannot be negative ({permits})")
        self._count = permits
        self._max_count = permits
        self._name = name
        self._lock = threading.Lock()
        self._condition = threading.Condition(self._lock)

    def _simulate_network_latency(
        self,
        rng: Optional[np.random.Generator],
        mean_ms: float,
        std_dev_ms: float,
        interrupt: Optional[InterruptToken]
    ) -> bool:
        """Sleep for one Gaussian RTT draw. Returns False if interrupted."""
        if rng is None:
            return interrupt is None or not interrupt.is_interrupted()
        return sleep_ms(gaussian_ms(rng, mean_ms, std_dev_ms), interrupt)

    def acquire(
        self,
        rng: Optional[np.random.Generator] = None,
        latency_mean_ms: float = 0,
        latency_std_dev_ms: float = 0,
        timeout_ms: float = -1,
        interrupt: Optional[InterruptToken] = None
    ) -> bool:
        """
        P operation: take one permit.

        Args:
            rng: Random stream for the latency draw (None skips latency injection)
            latency_mean_ms: Mean simulated RTT
            latency_std_dev_ms: Std-dev of simulated RTT
            timeout_ms: <0 waits forever, 0 checks once, >0 bounds the wait.
                The budget starts after the simulated latency.
            interrupt: Token that aborts the attempt when fired

        Returns:
            True if a permit was taken, False on timeout or interruption.
            A False return never changes the count.
        """
        if not self._simulate_network_latency(rng, latency_mean_ms, latency_std_dev_ms, interrupt):
            return False

        if interrupt is None:
            with self._condition:
                return self._wait_for_permit(timeout_ms, None)

        with interrupt.watching(self._condition):
            with self._condition:
                return self._wait_for_permit(timeout_ms, interrupt)

    def _wait_for_permit(self, timeout_ms: float, interrupt: Optional[InterruptToken]) -> bool:
        """Mesa-style wait loop. Caller holds the lock."""
        deadline = None if timeout_ms < 0 else time.monotonic() + timeout_ms / 1000.0

        while self._count <= 0:
            if interrupt is not None and interrupt.is_interrupted():
                return False
            if deadline is None:
                self._condition.wait()
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._condition.wait(remaining)

        if interrupt is not None and interrupt.is_interrupted():
            # Hand the wake-up on; this waiter may have consumed a release signal.
            self._condition.notify()
            return False

        self._count -= 1
        return True

    def release(
        self,
        rng: Optional[np.random.Generator] = None,
        latency_mean_ms: float = 0,
        latency_std_dev_ms: float = 0,
        interrupt: Optional[InterruptToken] = None
    ) -> None:
        """
        V operation: return one permit and wake one waiter.

        The simulated latency is paid before the state change. An interrupted
        latency sleep is cut short but the permit is still returned.
        """
        self._simulate_network_latency(rng, latency_mean_ms, latency_std_dev_ms, interrupt)

        with self._condition:
            self._count += 1
            self._condition.notify()

    def get_value(self) -> int:
        """Snapshot of available permits (for monitoring)."""
        with self._lock:
            return self._count

    def get_max_value(self) -> int:
        return self._max_count

    def get_name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"AdmissionGate(name={self._name!r}, value={self.get_value()}, max={self._max_count})"
