"""
Metrics Tracking for the Semaphore Contention Simulator.

- MetricsCollector: the event sink of time-bounded simulations and its CSV report
- WorkloadResults: counters of one operation-bounded run
- save_results_to_csv / format_*: report writers
"""

import csv
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol

import numpy as np

from analysis.events import AccessRecord, ConflictRecord, EventLog, EventType, TimeoutRecord
from models.config import SimulationConfig, WorkloadConfig
from utils.concurrency import AtomicCounter
from utils.logger import SimulatorLogger


class MetricsSink(Protocol):
    """Interface the access protocols push events into. All methods must be thread-safe."""

    def record_access(self, worker_id: int, resource_id: str, acquire_ms: float,
                      processing_ms: float, total_ms: float) -> None: ...

    def record_conflict(self, worker_id: int, resource_id: str) -> None: ...

    def record_timeout(self, worker_id: int, resource_id: str) -> None: ...


@dataclass
class MetricsSummary:
    """
    Aggregates computed from the full event lists at report time.

    Invariant:
        total_requests == successful_requests + timeouts
    """
    total_requests: int
    successful_requests: int
    conflicts: int
    timeouts: int
    duration_seconds: int
    throughput_per_second: float
    avg_acquire_ms: float
    avg_processing_ms: float
    avg_total_ms: float
    p50_acquire_ms: float
    p95_acquire_ms: float
    p95_total_ms: float

    @property
    def conflict_rate(self) -> float:
        """Conflicts per successful request."""
        if self.successful_requests == 0:
            return 0.0
        return self.conflicts / self.successful_requests


class MetricsCollector:
    """
    Thread-safe metrics sink for time-bounded simulations.

    Records are append-only; averages are computed from the full lists when
    a summary is requested.
    """

    def __init__(self, logger: Optional[SimulatorLogger] = None):
        self.logger = logger
        self.event_log = EventLog()

        self._total_requests = AtomicCounter()
        self._successful_requests = AtomicCounter()
        self._conflict_count = AtomicCounter()
        self._timeout_count = AtomicCounter()

        self._start_time = time.monotonic()
        self._end_time: Optional[float] = None

    def record_access(self, worker_id: int, resource_id: str, acquire_ms: float,
                      processing_ms: float, total_ms: float) -> None:
        """Record a completed access."""
        self.event_log.add(AccessRecord(worker_id, resource_id, acquire_ms, processing_ms, total_ms))
        self._total_requests.increment_and_get()
        self._successful_requests.increment_and_get()

    def record_conflict(self, worker_id: int, resource_id: str) -> None:
        """Record a capacity violation."""
        self.event_log.add(ConflictRecord(worker_id, resource_id))
        self._conflict_count.increment_and_get()

    def record_timeout(self, worker_id: int, resource_id: str) -> None:
        """Record an acquisition timeout."""
        self.event_log.add(TimeoutRecord(worker_id, resource_id))
        self._total_requests.increment_and_get()
        self._timeout_count.increment_and_get()

    def finish(self) -> None:
        """Freeze the run's end time (otherwise reports measure up to 'now')."""
        self._end_time = time.monotonic()

    @property
    def access_records(self) -> List[AccessRecord]:
        return self.event_log.get_events_by_type(EventType.ACCESS)

    @property
    def conflict_records(self) -> List[ConflictRecord]:
        return self.event_log.get_events_by_type(EventType.CONFLICT)

    @property
    def timeout_records(self) -> List[TimeoutRecord]:
        return self.event_log.get_events_by_type(EventType.TIMEOUT)

    @property
    def total_requests(self) -> int:
        return self._total_requests.get()

    @property
    def successful_requests(self) -> int:
        return self._successful_requests.get()

    @property
    def conflicts(self) -> int:
        return self._conflict_count.get()

    @property
    def timeouts(self) -> int:
        return self._timeout_count.get()

    def duration_seconds(self) -> int:
        """Elapsed whole seconds since the collector was created."""
        end = self._end_time if self._end_time is not None else time.monotonic()
        return int(end - self._start_time)

    def summary(self) -> MetricsSummary:
        """Compute summary metrics from the recorded events."""
        accesses = self.access_records
        duration = self.duration_seconds()
        successful = self.successful_requests

        if accesses:
            acquire = np.array([a.acquire_ms for a in accesses], dtype=float)
            processing = np.array([a.processing_ms for a in accesses], dtype=float)
            total = np.array([a.total_ms for a in accesses], dtype=float)
            avg_acquire = float(acquire.mean())
            avg_processing = float(processing.mean())
            avg_total = float(total.mean())
            p50_acquire, p95_acquire = (float(v) for v in np.percentile(acquire, [50, 95]))
            p95_total = float(np.percentile(total, 95))
        else:
            avg_acquire = avg_processing = avg_total = 0.0
            p50_acquire = p95_acquire = p95_total = 0.0

        return MetricsSummary(
            total_requests=self.total_requests,
            successful_requests=successful,
            conflicts=self.conflicts,
            timeouts=self.timeouts,
            duration_seconds=duration,
            throughput_per_second=successful / max(1, duration),
            avg_acquire_ms=avg_acquire,
            avg_processing_ms=avg_processing,
            avg_total_ms=avg_total,
            p50_acquire_ms=p50_acquire,
            p95_acquire_ms=p95_acquire,
            p95_total_ms=p95_total
        )

    def save_to_file(self, filename: str, config: SimulationConfig) -> bool:
        """
        Save configuration, summary and per-event logs as a sectioned CSV.

        I/O failures are logged to stderr and reported through the return
        value; they never abort the run.

        Returns:
            True if the file was written
        """
        summary = self.summary()
        try:
            with open(filename, 'w', newline='', encoding='utf-8') as f:
                writer = csv.writer(f, lineterminator="\n")

                writer.writerow(["# Simulation Configuration"])
                writer.writerows(_config_rows(config))
                writer.writerow([])

                writer.writerow(["# Summary Metrics"])
                writer.writerows([
                    ["TotalRequests", summary.total_requests],
                    ["SuccessfulRequests", summary.successful_requests],
                    ["Conflicts", summary.conflicts],
                    ["Timeouts", summary.timeouts],
                    ["TotalDuration", summary.duration_seconds],
                    ["ThroughputPerSecond", summary.throughput_per_second],
                    ["AvgAcquireTimeMs", summary.avg_acquire_ms],
                    ["AvgProcessingTimeMs", summary.avg_processing_ms],
                    ["AvgTotalTimeMs", summary.avg_total_ms],
                ])
                writer.writerow([])

                writer.writerow(["# Access Logs"])
                writer.writerow(["ContainerId", "ResourceId", "AcquireTimeMs", "ProcessingTimeMs", "TotalTimeMs"])
                for a in self.access_records:
                    writer.writerow([
                        a.worker_id, a.resource_id,
                        f"{a.acquire_ms:.3f}", f"{a.processing_ms:g}", f"{a.total_ms:.3f}"
                    ])
                writer.writerow([])

                writer.writerow(["# Conflict Logs"])
                writer.writerow(["ContainerId", "ResourceId"])
                for c in self.conflict_records:
                    writer.writerow([c.worker_id, c.resource_id])
                writer.writerow([])

                writer.writerow(["# Timeout Logs"])
                writer.writerow(["ContainerId", "ResourceId"])
                for t in self.timeout_records:
                    writer.writerow([t.worker_id, t.resource_id])
        except OSError as e:
            _report_io_error(self.logger, f"Error saving metrics to file: {e}")
            return False

        return True

    def format_summary(self) -> str:
        """Format the console summary."""
        s = self.summary()
        lines = []
        lines.append("\n==== Simulation Summary ====")
        lines.append(f"Total requests: {s.total_requests}")
        lines.append(f"Successful requests: {s.successful_requests}")
        lines.append(f"Conflicts: {s.conflicts}")
        lines.append(f"Timeouts: {s.timeouts}")
        lines.append(f"Total duration: {s.duration_seconds} seconds")
        lines.append(f"Throughput: {s.throughput_per_second:.2f} requests/second")
        lines.append(f"Average acquire time: {s.avg_acquire_ms:.2f} ms "
                     f"(p50={s.p50_acquire_ms:.2f}, p95={s.p95_acquire_ms:.2f})")
        lines.append(f"Average processing time: {s.avg_processing_ms:.2f} ms")
        lines.append(f"Average total time: {s.avg_total_ms:.2f} ms (p95={s.p95_total_ms:.2f})")
        return "\n".join(lines)


def _config_rows(config: SimulationConfig) -> List[list]:
    return [
        ["NumContainers", config.num_containers],
        ["NumResources", config.num_resources],
        ["SimulationTime", config.simulation_time_seconds],
        ["MaxConcurrentAccess", config.max_concurrent_access],
        ["SynchronizationEnabled", str(config.enable_synchronization).lower()],
        ["NetworkLatencyMean", config.network_latency_mean_ms],
        ["NetworkLatencyStdDev", config.network_latency_std_dev_ms],
        ["ProcessingTimeMean", config.processing_time_mean_ms],
        ["ProcessingTimeStdDev", config.processing_time_std_dev_ms],
        ["RequestRateMean", config.request_rate_mean_ms],
        ["RequestRateStdDev", config.request_rate_std_dev_ms],
        ["AcquireTimeoutMs", config.acquire_timeout_ms],
    ]


def _report_io_error(logger: Optional[SimulatorLogger], message: str) -> None:
    if logger is None:
        logger = SimulatorLogger()
    logger.log(message, "error")


class WorkloadResults:
    """
    Results of one operation-bounded run (one mode of one scenario).

    Counters and the response-time list are safe to update from client threads.
    """

    def __init__(self):
        self._total_operations = AtomicCounter()
        self._conflict_count = AtomicCounter()
        self._response_times: List[float] = []
        self._lock = threading.Lock()
        self.total_duration_ms: float = 0.0

    def record_operation(self, response_ms: float, no_conflict: bool) -> None:
        """Record one finished operation."""
        self._total_operations.increment_and_get()
        with self._lock:
            self._response_times.append(response_ms)
        if not no_conflict:
            self._conflict_count.increment_and_get()

    @property
    def total_operations(self) -> int:
        return self._total_operations.get()

    @property
    def conflict_count(self) -> int:
        return self._conflict_count.get()

    @property
    def response_times(self) -> List[float]:
        with self._lock:
            return list(self._response_times)

    def get_average_response_time(self) -> float:
        times = self.response_times
        if not times:
            return 0.0
        return float(np.mean(times))

    def get_conflict_percentage(self) -> float:
        total = self.total_operations
        if total == 0:
            return 0.0
        return self.conflict_count * 100.0 / total

    def get_throughput(self) -> float:
        """Operations per second over the whole run."""
        if self.total_duration_ms <= 0:
            return 0.0
        return self.total_operations * 1000.0 / self.total_duration_ms


def save_results_to_csv(
    filename: str,
    with_sync: WorkloadResults,
    without_sync: WorkloadResults,
    logger: Optional[SimulatorLogger] = None
) -> bool:
    """
    Write the side-by-side comparison of an operation-bounded scenario.

    Returns:
        True if the file was written
    """
    rows = [
        ["Metric", "With Synchronization", "Without Synchronization"],
        ["Total Operations", with_sync.total_operations, without_sync.total_operations],
        ["Conflict Count", with_sync.conflict_count, without_sync.conflict_count],
        ["Conflict Percentage", with_sync.get_conflict_percentage(), without_sync.get_conflict_percentage()],
        ["Average Response Time (ms)", with_sync.get_average_response_time(),
         without_sync.get_average_response_time()],
        ["Total Duration (ms)", round(with_sync.total_duration_ms), round(without_sync.total_duration_ms)],
        ["Throughput (ops/sec)", with_sync.get_throughput(), without_sync.get_throughput()],
    ]
    try:
        with open(filename, 'w', newline='', encoding='utf-8') as f:
            csv.writer(f, lineterminator="\n").writerows(rows)
    except OSError as e:
        _report_io_error(logger, f"Error saving results: {e}")
        return False

    if logger:
        logger.log(f"  - Results saved to {filename}")
    return True


def format_workload_summary(
    config: WorkloadConfig,
    with_sync: WorkloadResults,
    without_sync: WorkloadResults
) -> str:
    """
    Format the console summary of an operation-bounded scenario.

    Args:
        config: Scenario that was run
        with_sync: Results of the gated run
        without_sync: Results of the ungated run

    Returns:
        Formatted report string
    """
    lines = [f"  - Results Summary ({config.test_name}):"]
    for label, results in (("With Synchronization", with_sync), ("Without Synchronization", without_sync)):
        lines.append(f"    * {label}:")
        lines.append(f"      - Operations: {results.total_operations}")
        lines.append(
            f"      - Conflicts: {results.conflict_count} "
            f"({results.get_conflict_percentage():.2f}%)"
        )
        lines.append(f"      - Average Response Time: {results.get_average_response_time():.2f}ms")
        lines.append(f"      - Throughput: {results.get_throughput():.2f} ops/sec")
    return "\n".join(lines)
