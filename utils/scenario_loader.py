"""
Scenario Loader for the Semaphore Contention Simulator.

Loads and validates JSON files describing a time-bounded simulation config
or a list of operation-bounded workload scenarios.
"""

import json
import re
from dataclasses import fields
from typing import Any, Dict, List, Optional

from models.config import SimulationConfig, WorkloadConfig


class ScenarioLoadError(Exception):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


def _read_json(file_path: str) -> Any:
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ScenarioLoadError(f"Invalid JSON in scenario file: {e}")


def _snake_case(key: str) -> str:
    """numContainers -> num_containers; snake_case keys pass through."""
    key = key.replace("StdDev", "_std_dev")
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower().replace("__", "_")


def _normalize_keys(data: Dict[str, Any], allowed: List[str], context: str) -> Dict[str, Any]:
    """
    Convert keys to snake_case and reject unknown ones.

    Accepts both the snake_case field names and the camelCase names used in
    the CSV/config tables (e.g. "networkLatencyMeanMs").
    """
    normalized = {}
    for key, value in data.items():
        name = _snake_case(key)
        if name not in allowed:
            raise ScenarioLoadError(f"{context}: unknown field '{key}'")
        normalized[name] = value
    return normalized


def load_simulation_config(file_path: str, base: Optional[SimulationConfig] = None) -> SimulationConfig:
    """
    Load a time-bounded simulation config from JSON.

    The file holds an object of overrides; omitted fields keep the values of
    `base` (or the defaults). A "description" key is ignored.

    Args:
        file_path: Path to config JSON file
        base: Config to start from

    Returns:
        SimulationConfig

    Raises:
        ScenarioLoadError: If file cannot be loaded or is invalid
    """
    data = _read_json(file_path)
    if not isinstance(data, dict):
        raise ScenarioLoadError("Simulation config must be a JSON object")

    data = {k: v for k, v in data.items() if k != 'description'}
    allowed = [f.name for f in fields(SimulationConfig)]
    overrides = _normalize_keys(data, allowed, "Simulation config")

    values = {f.name: getattr(base, f.name) for f in fields(SimulationConfig)} if base else {}
    _check_simulation_types(overrides)
    values.update(overrides)

    try:
        return SimulationConfig(**values)
    except (TypeError, ValueError) as e:
        raise ScenarioLoadError(f"Invalid simulation config: {e}")


_INT_FIELDS = (
    "num_containers", "num_resources", "max_concurrent_access",
    "network_latency_mean_ms", "network_latency_std_dev_ms",
    "processing_time_mean_ms", "processing_time_std_dev_ms",
    "request_rate_mean_ms", "request_rate_std_dev_ms", "acquire_timeout_ms",
)
_NUMBER_FIELDS = ("simulation_time_seconds", "shutdown_grace_seconds")
_BOOL_FIELDS = ("enable_synchronization", "enable_logging")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_simulation_types(values: Dict[str, Any]) -> None:
    """
    Reject JSON values of the wrong type before they reach SimulationConfig.

    Raises:
        ScenarioLoadError: On the first mistyped field
    """
    for name, value in values.items():
        if name in _INT_FIELDS and not _is_int(value):
            raise ScenarioLoadError(f"Simulation config: '{name}' must be an integer")
        if name in _NUMBER_FIELDS and not (_is_int(value) or isinstance(value, float)):
            raise ScenarioLoadError(f"Simulation config: '{name}' must be a number")
        if name in _BOOL_FIELDS and not isinstance(value, bool):
            raise ScenarioLoadError(f"Simulation config: '{name}' must be true or false")
        if name == "seed" and value is not None and not _is_int(value):
            raise ScenarioLoadError("Simulation config: 'seed' must be an integer or null")
        if name == "metrics_output_file" and not isinstance(value, str):
            raise ScenarioLoadError("Simulation config: 'metrics_output_file' must be a string")


def load_workloads(file_path: str) -> List[WorkloadConfig]:
    """
    Load operation-bounded workload scenarios from JSON.

    Expected format:
        {"description": "...", "workloads": [{"test_name": ..., "num_clients": ..., ...}]}

    Args:
        file_path: Path to scenario JSON file

    Returns:
        List of WorkloadConfig in file order

    Raises:
        ScenarioLoadError: If file cannot be loaded or is invalid
    """
    data = _read_json(file_path)

    if not isinstance(data, dict) or 'workloads' not in data:
        raise ScenarioLoadError("Scenario missing 'workloads' field")
    if not isinstance(data['workloads'], list) or not data['workloads']:
        raise ScenarioLoadError("'workloads' must be a non-empty list")

    workloads = [_load_workload(entry, i) for i, entry in enumerate(data['workloads'])]

    names = [w.test_name for w in workloads]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ScenarioLoadError(f"Duplicate workload names: {', '.join(duplicates)}")

    return workloads


def _load_workload(entry: Dict, index: int) -> WorkloadConfig:
    """
    Load a single workload scenario.

    Args:
        entry: Workload dictionary from scenario
        index: Position in the file (for error messages)

    Returns:
        WorkloadConfig
    """
    if not isinstance(entry, dict):
        raise ScenarioLoadError(f"Workload #{index}: must be an object")

    context = f"Workload #{index}"
    allowed = [f.name for f in fields(WorkloadConfig)]
    values = _normalize_keys(entry, allowed, context)

    required_fields = [
        'test_name', 'num_clients', 'operations_per_client',
        'delay_between_operations_ms', 'semaphore_permits'
    ]
    for field in required_fields:
        if field not in values:
            raise ScenarioLoadError(f"{context}: missing required field: {field}")

    for field in required_fields[1:]:
        if not isinstance(values[field], int) or isinstance(values[field], bool):
            raise ScenarioLoadError(f"{context}: '{field}' must be an integer")

    try:
        return WorkloadConfig(**values)
    except ValueError as e:
        raise ScenarioLoadError(f"{context}: {e}")


def get_scenario_description(file_path: str) -> str:
    """
    Get description from scenario file without full loading.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Description string, or empty string if not present
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return ''
    return data.get('description', '') if isinstance(data, dict) else ''
