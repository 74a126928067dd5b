"""
Shared Resource models for the Semaphore Contention Simulator.

SharedResource exposes two access paths with the same shape: one admitted
through an AdmissionGate, one that bypasses it. Both count live users and
record a conflict whenever a worker observes more users than the capacity.

AdmissionOnlyResource is the streamlined form used by operation-bounded
workloads: no latency injection, un-timed acquire, conflict reported as the
return value.
"""

import threading
import time
from enum import Enum
from typing import Optional

import numpy as np

from analysis.metrics import MetricsSink
from models.admission_gate import AdmissionGate
from models.config import SimulationConfig, DEFAULT_ACQUIRE_TIMEOUT_MS
from utils.concurrency import AtomicCounter, InterruptToken, sleep_ms
from utils.logger import SimulatorLogger
from utils.random_source import gaussian_ms


class AccessOutcome(Enum):
    """How a single access attempt ended."""
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"
    INTERRUPTED = "INTERRUPTED"


def _elapsed_ms(since: float) -> float:
    return (time.perf_counter() - since) * 1000.0


class _PeakTracker:
    """Highest user count any worker has observed."""

    def __init__(self):
        self._peak = 0
        self._lock = threading.Lock()

    def observe(self, users: int) -> None:
        with self._lock:
            if users > self._peak:
                self._peak = users

    @property
    def peak(self) -> int:
        with self._lock:
            return self._peak


class SharedResource:
    """
    A cloud resource that permits at most K simultaneous users.

    Attributes:
        resource_id: Resource identifier (e.g. "resource_0")
        gate: AdmissionGate of capacity K, named "sem_<resource_id>"
        acquire_timeout_ms: Budget for the gated acquire

    Invariant (gated path only):
        current_users <= K at every instant
    """

    def __init__(
        self,
        resource_id: str,
        max_concurrent_access: int,
        acquire_timeout_ms: int = DEFAULT_ACQUIRE_TIMEOUT_MS,
        logger: Optional[SimulatorLogger] = None
    ):
        self.resource_id = resource_id
        self.gate = AdmissionGate(max_concurrent_access, f"sem_{resource_id}")
        self.acquire_timeout_ms = acquire_timeout_ms
        self.logger = logger

        self._current_users = AtomicCounter()
        self._total_accesses = AtomicCounter()
        self._conflict_count = AtomicCounter()
        self._peak = _PeakTracker()

    def access_gated(
        self,
        worker_id: int,
        rng: np.random.Generator,
        config: SimulationConfig,
        metrics: MetricsSink,
        interrupt: Optional[InterruptToken] = None
    ) -> AccessOutcome:
        """
        Access the resource through the admission gate.

        Emits a Timeout record if the gate cannot be acquired within
        `acquire_timeout_ms`, otherwise an Access record. A permit that was
        taken is always released, including when the attempt is interrupted.

        Args:
            worker_id: Calling worker
            rng: Worker's random stream
            config: Latency and processing-time parameters
            metrics: Sink exposing record_access/record_conflict/record_timeout
            interrupt: Token that aborts the attempt

        Returns:
            AccessOutcome of the attempt
        """
        start = time.perf_counter()

        acquired = self.gate.acquire(
            rng,
            config.network_latency_mean_ms,
            config.network_latency_std_dev_ms,
            timeout_ms=self.acquire_timeout_ms,
            interrupt=interrupt
        )
        acquire_ms = _elapsed_ms(start)

        if not acquired:
            if interrupt is not None and interrupt.is_interrupted():
                return AccessOutcome.INTERRUPTED
            metrics.record_timeout(worker_id, self.resource_id)
            if self.logger:
                self.logger.log_timeout(worker_id, self.resource_id, acquire_ms)
            return AccessOutcome.TIMED_OUT

        try:
            users = self._enter()
            processing_ms = gaussian_ms(
                rng, config.processing_time_mean_ms, config.processing_time_std_dev_ms
            )
            completed = sleep_ms(processing_ms, interrupt)

            # Must not fire while the gate holds.
            self._check_capacity(worker_id, users, metrics)
        finally:
            self._current_users.decrement_and_get()
            self.gate.release(
                rng,
                config.network_latency_mean_ms,
                config.network_latency_std_dev_ms,
                interrupt=interrupt
            )

        if not completed:
            return AccessOutcome.INTERRUPTED

        metrics.record_access(worker_id, self.resource_id, acquire_ms, processing_ms, _elapsed_ms(start))
        return AccessOutcome.COMPLETED

    def access_ungated(
        self,
        worker_id: int,
        rng: np.random.Generator,
        config: SimulationConfig,
        metrics: MetricsSink,
        interrupt: Optional[InterruptToken] = None
    ) -> AccessOutcome:
        """
        Access the resource without consulting the gate (comparison baseline).

        Pays the same two simulated round-trips as the gated path so total
        times stay comparable. Never times out.
        """
        start = time.perf_counter()

        if not self._network_round_trip(rng, config, interrupt):
            return AccessOutcome.INTERRUPTED
        acquire_ms = _elapsed_ms(start)

        users = self._enter()
        try:
            processing_ms = gaussian_ms(
                rng, config.processing_time_mean_ms, config.processing_time_std_dev_ms
            )
            completed = sleep_ms(processing_ms, interrupt)

            self._check_capacity(worker_id, users, metrics)
        finally:
            self._current_users.decrement_and_get()

        if not completed or not self._network_round_trip(rng, config, interrupt):
            return AccessOutcome.INTERRUPTED

        metrics.record_access(worker_id, self.resource_id, acquire_ms, processing_ms, _elapsed_ms(start))
        return AccessOutcome.COMPLETED

    def access(
        self,
        worker_id: int,
        rng: np.random.Generator,
        config: SimulationConfig,
        metrics: MetricsSink,
        interrupt: Optional[InterruptToken] = None
    ) -> AccessOutcome:
        """Dispatch on config.enable_synchronization."""
        if config.enable_synchronization:
            return self.access_gated(worker_id, rng, config, metrics, interrupt)
        return self.access_ungated(worker_id, rng, config, metrics, interrupt)

    def _enter(self) -> int:
        """Register one more user; returns the count produced by this increment."""
        users = self._current_users.increment_and_get()
        self._total_accesses.increment_and_get()
        self._peak.observe(users)
        return users

    def _check_capacity(self, worker_id: int, users: int, metrics: MetricsSink) -> None:
        capacity = self.gate.get_max_value()
        if users > capacity:
            self._conflict_count.increment_and_get()
            metrics.record_conflict(worker_id, self.resource_id)
            if self.logger:
                self.logger.log_conflict(worker_id, self.resource_id, users, capacity)

    @staticmethod
    def _network_round_trip(
        rng: np.random.Generator,
        config: SimulationConfig,
        interrupt: Optional[InterruptToken]
    ) -> bool:
        latency = gaussian_ms(rng, config.network_latency_mean_ms, config.network_latency_std_dev_ms)
        return sleep_ms(latency, interrupt)

    @property
    def max_concurrent_access(self) -> int:
        return self.gate.get_max_value()

    @property
    def current_users(self) -> int:
        return self._current_users.get()

    @property
    def total_accesses(self) -> int:
        return self._total_accesses.get()

    @property
    def conflict_count(self) -> int:
        return self._conflict_count.get()

    @property
    def peak_users(self) -> int:
        return self._peak.peak

    def __repr__(self) -> str:
        return (
            f"SharedResource(id={self.resource_id!r}, users={self.current_users}, "
            f"accesses={self.total_accesses}, conflicts={self.conflict_count})"
        )


class AdmissionOnlyResource:
    """
    Streamlined shared resource (e.g. a cloud database) for operation-bounded runs.

    Attributes:
        max_concurrent_users: Capacity K
        gate: AdmissionGate of capacity K with no latency injection
    """

    def __init__(self, max_concurrent_users: int, name: str = "shared_database"):
        self.max_concurrent_users = max_concurrent_users
        self.gate = AdmissionGate(max_concurrent_users, f"sem_{name}")
        self.name = name

        self._current_users = AtomicCounter()
        self._total_accesses = AtomicCounter()
        self._peak = _PeakTracker()

    def access_gated(self, operation_ms: float, interrupt: Optional[InterruptToken] = None) -> bool:
        """
        Acquire (no timeout), work, release.

        Returns:
            True if no conflict was observed. An attempt interrupted before
            admission returns True without touching any counter.
        """
        if not self.gate.acquire(interrupt=interrupt):
            return True
        try:
            users = self._enter()
            sleep_ms(operation_ms, interrupt)
            return users <= self.max_concurrent_users
        finally:
            self._current_users.decrement_and_get()
            self.gate.release()

    def access_ungated(self, operation_ms: float, interrupt: Optional[InterruptToken] = None) -> bool:
        """
        Work without admission control.

        Returns:
            True if no conflict was observed
        """
        users = self._enter()
        try:
            sleep_ms(operation_ms, interrupt)
            return users <= self.max_concurrent_users
        finally:
            self._current_users.decrement_and_get()

    def _enter(self) -> int:
        users = self._current_users.increment_and_get()
        self._total_accesses.increment_and_get()
        self._peak.observe(users)
        return users

    @property
    def current_users(self) -> int:
        return self._current_users.get()

    @property
    def total_accesses(self) -> int:
        return self._total_accesses.get()

    @property
    def peak_users(self) -> int:
        return self._peak.peak
