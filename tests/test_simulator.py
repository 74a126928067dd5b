"""
Simulation Runner Tests

End-to-end runs of the time-bounded simulation, the synchronization
comparison report and the command-line entry point, all with short
durations and small latencies.
"""

import csv
import json
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from analysis.analyzer import SyncComparisonResult, compare_synchronization, generate_comparison_report
from analysis.metrics import MetricsCollector
from models.config import SimulationConfig, WorkloadConfig
from simulator import CloudSimulation, main, run_simulation, run_workload_scenario
from utils.logger import SimulatorLogger


def _fast_config(tmp_path, **overrides):
    values = dict(
        num_containers=6,
        num_resources=1,
        simulation_time_seconds=0.5,
        max_concurrent_access=1,
        network_latency_mean_ms=1,
        network_latency_std_dev_ms=0,
        processing_time_mean_ms=10,
        processing_time_std_dev_ms=3,
        request_rate_mean_ms=2,
        request_rate_std_dev_ms=1,
        enable_logging=False,
        metrics_output_file=str(tmp_path / "metrics.csv"),
        seed=3,
    )
    values.update(overrides)
    return SimulationConfig(**values)


def test_gated_simulation_end_to_end(tmp_path):
    config = _fast_config(tmp_path, enable_synchronization=True)
    simulation = CloudSimulation(config)
    simulation.setup()
    metrics = simulation.run()

    assert metrics.conflicts == 0, "Gated run must be conflict free"
    assert metrics.successful_requests > 0
    assert metrics.total_requests == metrics.successful_requests + metrics.timeouts

    stats = simulation.resource_statistics()
    assert stats[0]['peak_users'] <= 1
    assert stats[0]['permits_available'] == 1, "All permits returned after shutdown"
    assert all(not c.is_running for c in simulation.containers)
    assert Path(config.metrics_output_file).exists()


def test_ungated_simulation_conflicts(tmp_path):
    config = _fast_config(tmp_path, enable_synchronization=False)
    metrics = run_simulation(config, SimulatorLogger(enabled=False))

    assert metrics.conflicts > 0, "Six containers on one slot should conflict"
    assert metrics.timeouts == 0


def test_shutdown_interrupts_slow_containers(tmp_path):
    config = _fast_config(
        tmp_path,
        processing_time_mean_ms=10000,
        processing_time_std_dev_ms=0,
        simulation_time_seconds=0.2,
        shutdown_grace_seconds=0.1,
    )
    simulation = CloudSimulation(config)
    metrics = simulation.run(save=False)

    assert all(not c.is_running for c in simulation.containers)
    assert all(c.join(0) for c in simulation.containers), "Every thread joined"
    assert metrics.successful_requests == 0
    assert simulation.resources[0].current_users == 0


def test_timeout_appears_in_report(tmp_path):
    """One slot held for long and a short budget produces timeout records."""
    config = _fast_config(
        tmp_path,
        enable_synchronization=True,
        num_containers=4,
        processing_time_mean_ms=300,
        processing_time_std_dev_ms=0,
        acquire_timeout_ms=20,
        simulation_time_seconds=0.8,
    )
    metrics = run_simulation(config, SimulatorLogger(enabled=False))

    assert metrics.timeouts > 0
    assert metrics.total_requests == metrics.successful_requests + metrics.timeouts
    with open(config.metrics_output_file, newline='', encoding='utf-8') as f:
        rows = [r for r in csv.reader(f) if r]
    timeout_section = rows[rows.index(["# Timeout Logs"]) + 2:]
    assert len(timeout_section) == metrics.timeouts


def test_compare_requires_runner():
    with pytest.raises(ValueError):
        compare_synchronization(SimulationConfig())


def test_compare_with_injected_runner():
    seen = []

    def fake_run(config):
        seen.append((config.enable_synchronization, config.metrics_output_file))
        metrics = MetricsCollector()
        metrics.record_access(0, "resource_0", 5.0, 10, 20.0)
        if not config.enable_synchronization:
            metrics.record_access(1, "resource_0", 1.0, 10, 12.0)
            metrics.record_conflict(1, "resource_0")
        else:
            metrics.record_timeout(1, "resource_0")
        metrics.finish()
        return metrics

    config = SimulationConfig(metrics_output_file="run.csv")
    results = compare_synchronization(config, run_simulation_func=fake_run)

    assert seen == [(True, "sync_on_run.csv"), (False, "sync_off_run.csv")]
    assert [r.mode for r in results] == ["with_sync", "without_sync"]
    assert results[0].conflicts == 0 and results[0].timeout_rate == pytest.approx(0.5)
    assert results[1].conflict_rate == pytest.approx(0.5)

    report = generate_comparison_report(results, config)
    assert "SYNCHRONIZATION COMPARISON REPORT" in report
    assert "Lowest Conflict Rate: WITH_SYNC" in report
    assert "Best Throughput: WITHOUT_SYNC" in report


def test_report_handles_identical_modes():
    same = [
        SyncComparisonResult(mode, 10, 10, 0, 0, 5.0, 1.0, 2.0, 3.0)
        for mode in ("with_sync", "without_sync")
    ]
    report = generate_comparison_report(same, SimulationConfig())
    assert "Both modes showed identical performance." in report


def test_run_workload_scenario_writes_csv(tmp_path):
    config = WorkloadConfig("tiny_test", 4, 2, 0, 2)
    with_sync, without_sync = run_workload_scenario(config, str(tmp_path), SimulatorLogger(enabled=False))

    assert with_sync.total_operations == without_sync.total_operations == 8
    assert with_sync.conflict_count == 0
    path = tmp_path / "tiny_test_results.csv"
    assert path.exists()
    with open(path, newline='', encoding='utf-8') as f:
        assert next(csv.reader(f)) == ["Metric", "With Synchronization", "Without Synchronization"]


def test_cli_workload_mode(tmp_path):
    scenarios = tmp_path / "workloads.json"
    scenarios.write_text(json.dumps({"workloads": [
        {"test_name": "cli_a", "num_clients": 3, "operations_per_client": 2,
         "delay_between_operations_ms": 0, "semaphore_permits": 1},
        {"test_name": "cli_b", "num_clients": 3, "operations_per_client": 2,
         "delay_between_operations_ms": 5, "semaphore_permits": 2},
    ]}), encoding='utf-8')
    out = tmp_path / "out"

    code = main([
        "--mode", "workload", "--scenarios", str(scenarios),
        "--only", "cli_b", "--output-dir", str(out), "--quiet"
    ])

    assert code == 0
    assert (out / "cli_b_results.csv").exists()
    assert not (out / "cli_a_results.csv").exists()


def test_cli_unknown_workload(tmp_path, capsys):
    code = main(["--mode", "workload", "--only", "no_such_test", "--output-dir", str(tmp_path)])
    assert code == 1
    assert "Unknown workload" in capsys.readouterr().err


def test_cli_bad_config_file(tmp_path, capsys):
    code = main(["--config", str(tmp_path / "absent.json")])
    assert code == 1
    assert "not found" in capsys.readouterr().err


def test_cli_cloud_mode_with_overrides(tmp_path):
    log_file = tmp_path / "run.log"
    code = main([
        "--sync", "--duration", "0.3", "--containers", "3", "--resources", "1",
        "--permits", "1", "--seed", "5", "--output-dir", str(tmp_path),
        "--log-file", str(log_file)
    ])

    assert code == 0
    assert (tmp_path / "sync_on_simulation_metrics.csv").exists()
    assert "Simulation Results" in log_file.read_text(encoding='utf-8')


def test_cli_mistyped_config_exits_cleanly(tmp_path, capsys):
    config_file = tmp_path / "cfg.json"
    config_file.write_text(json.dumps({"numContainers": 2.5}), encoding='utf-8')

    code = main(["--config", str(config_file), "--quiet"])

    assert code == 1, "A mistyped config is a load error, not a crash"
    assert "'num_containers' must be an integer" in capsys.readouterr().err


def test_cli_unwritable_log_file(tmp_path, capsys):
    code = main(["--log-file", str(tmp_path / "missing_dir" / "run.log"), "--duration", "0"])

    assert code == 1
    assert "Cannot open log file" in capsys.readouterr().err
