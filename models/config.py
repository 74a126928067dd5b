"""
Configuration models for the Semaphore Contention Simulator.

Two configurations drive the two workload families:
- SimulationConfig: time-bounded cloud simulation (containers loop until stopped)
- WorkloadConfig: operation-bounded workload (each client runs a fixed count)
"""

import os
from dataclasses import dataclass, replace
from typing import Optional


DEFAULT_ACQUIRE_TIMEOUT_MS = 1000

#: Upper bound of the uniform random delay used by mixed workloads.
MIXED_DELAY_UPPER_MS = 100


@dataclass
class SimulationConfig:
    """
    Parameters of a time-bounded simulation.

    Attributes:
        num_containers: Number of concurrent workers (containers)
        num_resources: Number of shared resources
        simulation_time_seconds: Wall-clock run length
        max_concurrent_access: Gate capacity K of every resource
        enable_synchronization: Gated access when True, ungated when False
        network_latency_mean_ms / network_latency_std_dev_ms: Simulated RTT
        processing_time_mean_ms / processing_time_std_dev_ms: In-resource work
        request_rate_mean_ms / request_rate_std_dev_ms: Inter-request wait
        enable_logging: Print progress to the console
        metrics_output_file: Path of the CSV report
        acquire_timeout_ms: Gate acquisition budget on the gated path
        seed: Run-level seed for worker random streams (None = non-deterministic)
        shutdown_grace_seconds: Time given to workers to finish after stop
    """
    num_containers: int = 20
    num_resources: int = 5
    simulation_time_seconds: float = 60
    max_concurrent_access: int = 3
    enable_synchronization: bool = False
    network_latency_mean_ms: int = 15
    network_latency_std_dev_ms: int = 5
    processing_time_mean_ms: int = 50
    processing_time_std_dev_ms: int = 20
    request_rate_mean_ms: int = 200
    request_rate_std_dev_ms: int = 100
    enable_logging: bool = True
    metrics_output_file: str = "sync_off_simulation_metrics.csv"
    acquire_timeout_ms: int = DEFAULT_ACQUIRE_TIMEOUT_MS
    seed: Optional[int] = None
    shutdown_grace_seconds: float = 1.0

    def __post_init__(self):
        """Validate configuration values."""
        if self.num_containers < 1:
            raise ValueError(f"num_containers must be >= 1 (got {self.num_containers})")
        if self.num_resources < 1:
            raise ValueError(f"num_resources must be >= 1 (got {self.num_resources})")
        if self.simulation_time_seconds < 0:
            raise ValueError("simulation_time_seconds cannot be negative")
        if self.max_concurrent_access < 0:
            raise ValueError("max_concurrent_access cannot be negative")
        for name in (
            'network_latency_mean_ms', 'network_latency_std_dev_ms',
            'processing_time_mean_ms', 'processing_time_std_dev_ms',
            'request_rate_mean_ms', 'request_rate_std_dev_ms'
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.seed is not None and self.seed < 0:
            raise ValueError("seed must be non-negative")
        if self.shutdown_grace_seconds < 0:
            raise ValueError("shutdown_grace_seconds cannot be negative")

    def with_synchronization(self, enabled: bool) -> "SimulationConfig":
        """
        Copy of this config running in the given mode.

        The output file name gets the matching sync_on_/sync_off_ prefix, so
        two legs of a comparison never write the same file.
        """
        directory, base = os.path.split(self.metrics_output_file)
        for prefix in ("sync_on_", "sync_off_"):
            if base.startswith(prefix):
                base = base[len(prefix):]
                break
        base = ("sync_on_" if enabled else "sync_off_") + base
        return replace(
            self,
            enable_synchronization=enabled,
            metrics_output_file=os.path.join(directory, base)
        )


@dataclass
class WorkloadConfig:
    """
    Parameters of an operation-bounded workload scenario.

    Attributes:
        test_name: Scenario label, used to name the results file
        num_clients: Number of concurrent clients
        operations_per_client: Exact number of accesses per client
        delay_between_operations_ms: >0 fixed delay, 0 burst, <0 uniform random up to 100 ms
        semaphore_permits: Gate capacity K
        seed: Run-level seed for the mixed-delay random streams
    """
    test_name: str
    num_clients: int
    operations_per_client: int
    delay_between_operations_ms: int
    semaphore_permits: int
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate configuration values."""
        if not self.test_name:
            raise ValueError("test_name cannot be empty")
        if self.num_clients < 1:
            raise ValueError(f"{self.test_name}: num_clients must be >= 1")
        if self.operations_per_client < 0:
            raise ValueError(f"{self.test_name}: operations_per_client cannot be negative")
        if self.semaphore_permits < 1:
            raise ValueError(f"{self.test_name}: semaphore_permits must be >= 1")

    @property
    def results_file(self) -> str:
        return f"{self.test_name}_results.csv"

    @property
    def is_burst(self) -> bool:
        return self.delay_between_operations_ms == 0

    @property
    def is_mixed(self) -> bool:
        return self.delay_between_operations_ms < 0
