"""
Client Worker models for the Semaphore Contention Simulator.

Two kinds of load generator, each running on its own thread:
- ClientWorker (time-bounded): loops over random resources until stopped
- DatabaseClient (operation-bounded): runs a fixed number of operations
"""

import threading
import time
from enum import Enum
from typing import List, Optional

from analysis.metrics import MetricsSink
from models.config import MIXED_DELAY_UPPER_MS, SimulationConfig, WorkloadConfig
from models.resource import AccessOutcome, AdmissionOnlyResource, SharedResource
from utils.concurrency import CountDownLatch, InterruptToken, sleep_ms
from utils.random_source import gaussian_ms, make_rng, pick_index, uniform_ms


class WorkerState(Enum):
    """Lifecycle of a worker thread."""
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


class ClientWorker:
    """
    A container that repeatedly accesses one of the shared resources.

    Attributes:
        worker_id: Container identifier
        resources: Shared resources to choose from
        enable_sync: Gated access when True
        config: Simulation parameters
        metrics: Event sink shared by all workers
        rng: This worker's random stream
        state: Lifecycle state
        outcomes: Count of access attempts by AccessOutcome
    """

    def __init__(
        self,
        worker_id: int,
        resources: List[SharedResource],
        enable_sync: bool,
        config: SimulationConfig,
        metrics: MetricsSink
    ):
        if not resources:
            raise ValueError(f"Container {worker_id}: needs at least one resource")
        self.worker_id = worker_id
        self.resources = resources
        self.enable_sync = enable_sync
        self.config = config
        self.metrics = metrics
        self.rng = make_rng(worker_id, config.seed)
        self.state = WorkerState.CREATED
        self.outcomes = {outcome: 0 for outcome in AccessOutcome}

        self._running = threading.Event()
        self._interrupt = InterruptToken()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Set the running flag and launch the worker thread."""
        self._running.set()
        self.state = WorkerState.RUNNING
        self._thread = threading.Thread(
            target=self.run, name=f"container-{self.worker_id}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Clear the running flag; the loop exits after its current iteration."""
        self._running.clear()

    def interrupt(self) -> None:
        """Stop and abort any in-flight sleep or gate wait."""
        self.stop()
        self._interrupt.interrupt()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the worker thread.

        Returns:
            True if the thread has finished
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def run(self) -> None:
        """Worker loop: pick a resource, access it, wait a Gaussian interval."""
        try:
            while self._running.is_set():
                resource = self.resources[pick_index(self.rng, len(self.resources))]

                if self.enable_sync:
                    outcome = resource.access_gated(
                        self.worker_id, self.rng, self.config, self.metrics, self._interrupt
                    )
                else:
                    outcome = resource.access_ungated(
                        self.worker_id, self.rng, self.config, self.metrics, self._interrupt
                    )
                self.outcomes[outcome] += 1

                if outcome == AccessOutcome.INTERRUPTED:
                    break

                wait_ms = gaussian_ms(
                    self.rng, self.config.request_rate_mean_ms, self.config.request_rate_std_dev_ms
                )
                if not sleep_ms(wait_ms, self._interrupt):
                    break
        finally:
            self._running.clear()
            self.state = WorkerState.STOPPED


class DatabaseClient:
    """
    A client issuing exactly `operations_per_client` operations.

    Waits on the start latch so all clients begin together and counts down
    the finish latch on exit, however the loop ends.

    Attributes:
        client_id: Client identifier
        resource: Streamlined resource shared by all clients
        config: Workload scenario
        use_sync: Gated access when True
        results: Shared WorkloadResults
    """

    def __init__(
        self,
        client_id: int,
        resource: AdmissionOnlyResource,
        config: WorkloadConfig,
        use_sync: bool,
        results,
        start_latch: CountDownLatch,
        finish_latch: CountDownLatch,
        interrupt: Optional[InterruptToken] = None
    ):
        self.client_id = client_id
        self.resource = resource
        self.config = config
        self.use_sync = use_sync
        self.results = results
        self.start_latch = start_latch
        self.finish_latch = finish_latch
        self.interrupt = interrupt
        self.rng = make_rng(client_id, config.seed)
        self.completed_operations = 0

    def get_operation_time(self) -> int:
        """Operation time 20-50 ms, fixed per client to mimic different query types."""
        return 20 + (self.client_id % 4) * 10

    def _interrupted(self) -> bool:
        return self.interrupt is not None and self.interrupt.is_interrupted()

    def _delay_between_operations(self) -> bool:
        delay = self.config.delay_between_operations_ms
        if delay > 0:
            return sleep_ms(delay, self.interrupt)
        if delay < 0:
            return sleep_ms(uniform_ms(self.rng, MIXED_DELAY_UPPER_MS), self.interrupt)
        return not self._interrupted()

    def run(self) -> None:
        try:
            self.start_latch.await_()

            for _ in range(self.config.operations_per_client):
                start = time.perf_counter()

                if self.use_sync:
                    no_conflict = self.resource.access_gated(self.get_operation_time(), self.interrupt)
                else:
                    no_conflict = self.resource.access_ungated(self.get_operation_time(), self.interrupt)

                if self._interrupted():
                    break

                self.results.record_operation((time.perf_counter() - start) * 1000.0, no_conflict)
                self.completed_operations += 1

                if not self._delay_between_operations():
                    break
        finally:
            self.finish_latch.count_down()
