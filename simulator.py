#!/usr/bin/env python3
"""
Semaphore Contention Simulator
Main entry point for the simulation system.

Containers compete for shared cloud resources that allow at most K
concurrent users. Every workload can be run with semaphore admission control
and without it, to compare throughput, latency and conflict rate.
"""

import argparse
import os
import sys
import threading
import time
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from models.client import ClientWorker, DatabaseClient
from models.config import SimulationConfig, WorkloadConfig
from models.resource import AdmissionOnlyResource, SharedResource
from utils.concurrency import CountDownLatch, InterruptToken
from utils.logger import SimulatorLogger
from utils.scenario_loader import (
    ScenarioLoadError,
    get_scenario_description,
    load_simulation_config,
    load_workloads,
)
from analysis.analyzer import compare_synchronization, generate_comparison_report
from analysis.metrics import (
    MetricsCollector,
    WorkloadResults,
    format_workload_summary,
    save_results_to_csv,
)


class CloudSimulation:
    """
    Time-bounded simulation controller.

    Builds the resources and containers, runs them for the configured
    duration, stops them and reports.
    """

    def __init__(self, config: SimulationConfig, logger: Optional[SimulatorLogger] = None):
        self.config = config
        self.logger = logger or SimulatorLogger(enabled=config.enable_logging)
        self.resources: List[SharedResource] = []
        self.containers: List[ClientWorker] = []
        self.metrics = MetricsCollector(self.logger)

    def setup(self) -> None:
        """Create resources and containers."""
        self.logger.log(
            f"Setting up simulation with {self.config.num_containers} containers "
            f"and {self.config.num_resources} resources..."
        )

        self.resources = [
            SharedResource(
                f"resource_{i}",
                self.config.max_concurrent_access,
                acquire_timeout_ms=self.config.acquire_timeout_ms,
                logger=self.logger
            )
            for i in range(self.config.num_resources)
        ]

        self.containers = [
            ClientWorker(i, self.resources, self.config.enable_synchronization, self.config, self.metrics)
            for i in range(self.config.num_containers)
        ]

    def run(self, save: bool = True) -> MetricsCollector:
        """
        Run for simulation_time_seconds, then stop all containers and report.

        Args:
            save: Write the CSV report to config.metrics_output_file

        Returns:
            MetricsCollector holding the run's events
        """
        if not self.containers:
            self.setup()

        mode = "with" if self.config.enable_synchronization else "without"
        self.logger.log(f"Starting simulation {mode} synchronization...")

        for container in self.containers:
            container.start()

        time.sleep(self.config.simulation_time_seconds)

        self._stop_containers()
        self.metrics.finish()

        self.print_results()
        if save:
            self.metrics.save_to_file(self.config.metrics_output_file, self.config)

        return self.metrics

    def _stop_containers(self) -> None:
        """Clear running flags, wait the grace period, then interrupt stragglers."""
        for container in self.containers:
            container.stop()

        deadline = time.monotonic() + self.config.shutdown_grace_seconds
        stragglers = [
            c for c in self.containers
            if not c.join(max(0.0, deadline - time.monotonic()))
        ]

        if stragglers:
            self.logger.log(f"Interrupting {len(stragglers)} containers still in flight", "debug")
            for container in stragglers:
                container.interrupt()
            for container in stragglers:
                container.join()

    def resource_statistics(self) -> List[Dict]:
        """Per-resource counters."""
        return [
            {
                'resource_id': r.resource_id,
                'total_accesses': r.total_accesses,
                'conflicts': r.conflict_count,
                'peak_users': r.peak_users,
                'permits_available': r.gate.get_value(),
            }
            for r in self.resources
        ]

    def print_results(self) -> None:
        """Print configuration, per-resource statistics and the metrics summary."""
        self.logger.log("\n==== Simulation Results ====")
        self.logger.log("Configuration:")
        self.logger.log(f"- Containers: {self.config.num_containers}")
        self.logger.log(f"- Resources: {self.config.num_resources}")
        self.logger.log(
            f"- Synchronization: {'Enabled' if self.config.enable_synchronization else 'Disabled'}"
        )
        self.logger.log(f"- Duration: {self.config.simulation_time_seconds} seconds")

        self.logger.log("\nResource Statistics:")
        for i, stats in enumerate(self.resource_statistics()):
            self.logger.log(f"- Resource {i} (ID: {stats['resource_id']}):")
            self.logger.log(f"  - Total accesses: {stats['total_accesses']}")
            self.logger.log(f"  - Conflicts: {stats['conflicts']}")
            self.logger.log(f"  - Peak concurrent users: {stats['peak_users']}")

        self.logger.log(self.metrics.format_summary())


def run_simulation(
    config: SimulationConfig,
    logger: Optional[SimulatorLogger] = None,
    save: bool = True
) -> MetricsCollector:
    """
    Build and run one time-bounded simulation.

    Args:
        config: Simulation parameters
        logger: Logger instance (created from config when omitted)
        save: Write the CSV report

    Returns:
        MetricsCollector with all recorded events
    """
    simulation = CloudSimulation(config, logger)
    simulation.setup()
    return simulation.run(save=save)


def run_workload(
    config: WorkloadConfig,
    use_sync: bool,
    results: WorkloadResults,
    interrupt: Optional[InterruptToken] = None
) -> WorkloadResults:
    """
    Run one operation-bounded workload in one mode.

    All clients are released together by a start latch; the total duration
    is measured until the last client counts down the finish latch.

    Args:
        config: Workload scenario
        use_sync: Gated access when True
        results: Results object to fill
        interrupt: Optional token that aborts all clients

    Returns:
        The filled results object
    """
    resource = AdmissionOnlyResource(config.semaphore_permits)
    start_latch = CountDownLatch(1)
    finish_latch = CountDownLatch(config.num_clients)

    threads = []
    for i in range(config.num_clients):
        client = DatabaseClient(i, resource, config, use_sync, results, start_latch, finish_latch, interrupt)
        thread = threading.Thread(target=client.run, name=f"client-{i}", daemon=True)
        threads.append(thread)
        thread.start()

    start = time.perf_counter()
    start_latch.count_down()
    finish_latch.await_()
    results.total_duration_ms = (time.perf_counter() - start) * 1000.0

    for thread in threads:
        thread.join()

    return results


def run_workload_scenario(
    config: WorkloadConfig,
    output_dir: str = ".",
    logger: Optional[SimulatorLogger] = None
) -> Tuple[WorkloadResults, WorkloadResults]:
    """
    Run a workload with and without synchronization and save the comparison.

    Args:
        config: Workload scenario
        output_dir: Directory for <test_name>_results.csv
        logger: Logger instance

    Returns:
        Tuple of (with_sync results, without_sync results)
    """
    logger = logger or SimulatorLogger()

    logger.log(
        f"\nRunning {config.test_name} ({config.num_clients} clients, "
        f"{config.operations_per_client} ops each, {_delay_label(config)})"
    )

    logger.log("  - Running with semaphore synchronization...")
    with_sync = run_workload(config, True, WorkloadResults())

    logger.log("  - Running without synchronization...")
    without_sync = run_workload(config, False, WorkloadResults())

    logger.log(format_workload_summary(config, with_sync, without_sync))
    save_results_to_csv(os.path.join(output_dir, config.results_file), with_sync, without_sync, logger)

    return with_sync, without_sync


def _delay_label(config: WorkloadConfig) -> str:
    if config.is_burst:
        return "burst"
    if config.is_mixed:
        return "mixed delays"
    return f"{config.delay_between_operations_ms}ms delay"


def _build_simulation_config(args: argparse.Namespace) -> SimulationConfig:
    """Start from defaults or --config, then apply command-line overrides."""
    config = load_simulation_config(args.config) if args.config else SimulationConfig()

    overrides = {
        'simulation_time_seconds': args.duration,
        'num_containers': args.containers,
        'num_resources': args.resources,
        'max_concurrent_access': args.permits,
        'seed': args.seed,
        'acquire_timeout_ms': args.timeout_ms,
    }
    values = {k: v for k, v in overrides.items() if v is not None}
    if args.sync:
        values['enable_synchronization'] = True
        values['metrics_output_file'] = config.with_synchronization(True).metrics_output_file
    if args.output:
        values['metrics_output_file'] = args.output
    if args.quiet:
        values['enable_logging'] = False

    config = replace(config, **values)

    if args.output_dir and not os.path.isabs(config.metrics_output_file):
        config = replace(
            config, metrics_output_file=os.path.join(args.output_dir, config.metrics_output_file)
        )
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Semaphore Contention Simulator'
    )
    parser.add_argument(
        '--mode',
        choices=['cloud', 'workload', 'compare'],
        default='cloud',
        help='cloud: one time-bounded run; workload: operation-bounded scenarios; '
             'compare: time-bounded run with and without synchronization (default: cloud)'
    )
    parser.add_argument('--config', type=str, help='Path to simulation config JSON file')
    parser.add_argument(
        '--scenarios',
        type=str,
        default=os.path.join(os.path.dirname(os.path.abspath(__file__)), 'scenarios', 'workloads.json'),
        help='Path to workload scenarios JSON file (workload mode)'
    )
    parser.add_argument(
        '--only',
        action='append',
        metavar='NAME',
        help='Run only the named workload scenario (repeatable)'
    )
    parser.add_argument('--sync', action='store_true', help='Enable semaphore synchronization (cloud mode)')
    parser.add_argument('--duration', type=float, help='Simulation time in seconds')
    parser.add_argument('--containers', type=int, help='Number of containers')
    parser.add_argument('--resources', type=int, help='Number of shared resources')
    parser.add_argument('--permits', type=int, help='Max concurrent access per resource')
    parser.add_argument('--timeout-ms', type=int, help='Gate acquisition timeout in ms')
    parser.add_argument('--seed', type=int, help='Run-level random seed')
    parser.add_argument('--output', type=str, help='Metrics CSV path (cloud mode)')
    parser.add_argument('--output-dir', type=str, default=None, help='Directory for CSV outputs')
    parser.add_argument('--verbose', action='store_true', help='Log every timeout and conflict')
    parser.add_argument('--quiet', action='store_true', help='Only log warnings and errors')
    parser.add_argument('--log-file', type=str, help='Also write the log to this file')

    args = parser.parse_args(argv)

    if args.output_dir:
        os.makedirs(args.output_dir, exist_ok=True)

    try:
        logger = SimulatorLogger(verbose=args.verbose, log_file=args.log_file, enabled=not args.quiet)
    except OSError as e:
        SimulatorLogger().log(f"Cannot open log file: {e}", "error")
        return 1

    try:
        if args.mode == 'workload':
            workloads = load_workloads(args.scenarios)
            if args.only:
                workloads = [w for w in workloads if w.test_name in args.only]
                missing = sorted(set(args.only) - {w.test_name for w in workloads})
                if missing:
                    raise ScenarioLoadError(f"Unknown workload(s): {', '.join(missing)}")

            logger.log_section("Cloud Database Synchronization Workload Simulation")
            description = get_scenario_description(args.scenarios)
            if description:
                logger.log(description)
            for workload in workloads:
                run_workload_scenario(workload, args.output_dir or ".", logger)
            logger.log("\nAll simulation tests completed. Results have been saved to CSV files.")

        else:
            config = _build_simulation_config(args)

            if args.mode == 'compare':
                results = compare_synchronization(
                    config,
                    run_simulation_func=lambda cfg: run_simulation(cfg, logger),
                    logger=logger
                )
                logger.log(generate_comparison_report(results, config))
            else:
                run_simulation(config, logger)

    except (ScenarioLoadError, ValueError) as e:
        logger.log(f"Failed to load scenario: {e}", "error")
        return 1
    finally:
        logger.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
