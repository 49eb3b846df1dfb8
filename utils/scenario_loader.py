"""
Scenario Loader for the Deadlock Avoidance Simulator.

Loads and validates JSON scenario files, and generates random scenarios
from a seed.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Sequence

import numpy as np

from models.ledger import ResourceLedger
from models.process import Process
from models.resource import Resource


class ScenarioLoadError(Exception):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


@dataclass
class Scenario:
    """
    A loaded or generated starting state.

    Attributes:
        ledger: Resource ledger holding the processes and initial allocations
        scripts: Per-pid request scripts (scripted policy), may be empty
        seed: Seed recorded in the scenario file, if any
        description: Free-text description
    """
    ledger: ResourceLedger
    scripts: Dict[int, List[List[int]]] = field(default_factory=dict)
    seed: Optional[int] = None
    description: str = ""


def load_scenario(file_path: str) -> Scenario:
    """
    Load scenario from JSON file.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Scenario with an initialized ResourceLedger

    Raises:
        ScenarioLoadError: If file cannot be loaded or is invalid
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ScenarioLoadError(f"Invalid JSON in scenario file: {e}")

    return build_scenario(data)


def build_scenario(data: Dict[str, Any]) -> Scenario:
    """
    Build a scenario from already-parsed JSON data.

    Raises:
        ScenarioLoadError: If the data is invalid
    """
    if not isinstance(data, dict):
        raise ScenarioLoadError("Scenario must be a JSON object")

    # Validate required fields
    if 'processes' not in data:
        raise ScenarioLoadError("Scenario missing 'processes' field")
    if 'resources' not in data:
        raise ScenarioLoadError("Scenario missing 'resources' field")
    for key in ('resources', 'processes'):
        if not isinstance(data[key], list):
            raise ScenarioLoadError(f"Scenario '{key}' must be a list")

    resources = _load_resources(data['resources'])
    num_resources = len(resources)

    processes = []
    scripts = {}
    for proc_data in data['processes']:
        process, script = _load_process(proc_data, num_resources)
        processes.append(process)
        if script:
            scripts[process.pid] = script

    # Ledger construction checks duplicates and sum(allocation) <= total
    try:
        ledger = ResourceLedger(resources, processes)
    except ValueError as e:
        raise ScenarioLoadError(f"VALIDATION FAILED: {e}")

    seed = data.get('seed')
    if seed is not None and (not _is_int(seed) or seed < 0):
        raise ScenarioLoadError(f"Scenario 'seed' must be a non-negative integer, got {seed!r}")

    description = data.get('description', '')
    if not isinstance(description, str):
        raise ScenarioLoadError(f"Scenario 'description' must be a string, got {description!r}")

    return Scenario(
        ledger=ledger,
        scripts=scripts,
        seed=seed,
        description=description,
    )


def _is_int(value: Any) -> bool:
    """JSON integers only: floats and booleans are rejected."""
    return isinstance(value, int) and not isinstance(value, bool)


def _int_list(value: Any, width: int, label: str) -> List[int]:
    """
    Check a JSON resource vector.

    Raises:
        ScenarioLoadError: If value is not a list of `width` integers
    """
    if not isinstance(value, list):
        raise ScenarioLoadError(f"{label} must be a list of integers, got {value!r}")
    if len(value) != width:
        raise ScenarioLoadError(
            f"{label} length ({len(value)}) does not match resource count ({width})"
        )
    if not all(_is_int(x) for x in value):
        raise ScenarioLoadError(f"{label} must contain whole instances only, got {value!r}")
    return list(value)


def _load_resources(resource_data: List[Dict]) -> List[Resource]:
    """
    Load resource definitions from scenario data.

    Args:
        resource_data: List of resource dictionaries

    Returns:
        List of Resource objects sorted by type_id
    """
    resources = []

    for res in resource_data:
        if not isinstance(res, dict):
            raise ScenarioLoadError(f"Resource entry must be an object, got {res!r}")
        if 'type_id' not in res:
            raise ScenarioLoadError("Resource missing 'type_id' field")
        if 'total_instances' not in res:
            raise ScenarioLoadError(f"Resource {res['type_id']} missing 'total_instances'")
        for key in ('type_id', 'total_instances'):
            if not _is_int(res[key]):
                raise ScenarioLoadError(f"Resource '{key}' must be an integer, got {res[key]!r}")
        name = res.get('name', '')
        if not isinstance(name, str):
            raise ScenarioLoadError(f"Resource {res['type_id']}: 'name' must be a string")

        try:
            resource = Resource(
                type_id=res['type_id'],
                total_instances=res['total_instances'],
                name=name,
            )
        except ValueError as e:
            raise ScenarioLoadError(str(e))
        resources.append(resource)

    resources.sort(key=lambda r: r.type_id)
    if [r.type_id for r in resources] != list(range(len(resources))):
        raise ScenarioLoadError(
            f"Resource type_ids must be 0..{len(resources) - 1} without gaps, "
            f"got {[r.type_id for r in resources]}"
        )
    return resources


def _load_process(proc_data: Dict, num_resources: int):
    """
    Load a single process from scenario data.

    Args:
        proc_data: Process dictionary from scenario
        num_resources: Number of resource types in system

    Returns:
        Tuple of (Process object, request script)
    """
    if not isinstance(proc_data, dict):
        raise ScenarioLoadError(f"Process entry must be an object, got {proc_data!r}")

    # Validate required fields
    for required in ('pid', 'max_demand'):
        if required not in proc_data:
            raise ScenarioLoadError(f"Process missing required field: {required}")

    pid = proc_data['pid']
    if not _is_int(pid):
        raise ScenarioLoadError(f"Process 'pid' must be an integer, got {pid!r}")

    max_demand = _int_list(proc_data['max_demand'], num_resources, f"Process {pid}: max_demand")

    # Get initial allocation (defaults to all zeros)
    initial_allocation = _int_list(
        proc_data.get('initial_allocation', [0] * num_resources),
        num_resources,
        f"Process {pid}: initial_allocation",
    )

    try:
        process = Process.create(pid, max_demand, initial_allocation)
    except ValueError as e:
        raise ScenarioLoadError(str(e))

    requests = proc_data.get('requests', [])
    if not isinstance(requests, list):
        raise ScenarioLoadError(f"Process {pid}: 'requests' must be a list of vectors")

    script = []
    for request in requests:
        request = _int_list(request, num_resources, f"Process {pid}: scripted request")
        if any(x < 0 for x in request):
            raise ScenarioLoadError(f"Process {pid}: scripted request {request} is negative")
        script.append(request)

    return process, script


def generate_scenario(
    num_processes: int,
    total_resources: Sequence[int],
    rng: np.random.Generator
) -> Scenario:
    """
    Generate a random population.

    For each process i (pids 0..P-1) and class j:
      max[j] = 1 + randint(0, total[j] // 2), capped at total[j]
      allocation[j] = randint(0, min(max[j], remaining[j]))
    where remaining[j] shrinks as allocations are handed out.

    Args:
        num_processes: Number of processes (P)
        total_resources: Total instances per class (length R)
        rng: Seeded numpy generator

    Returns:
        Scenario with the generated ledger (no scripts)
    """
    totals = np.array(total_resources, dtype=int)
    resources = [Resource(type_id=j, total_instances=int(t)) for j, t in enumerate(totals)]
    remaining = totals.copy()

    processes = []
    for pid in range(num_processes):
        max_demand = np.minimum(1 + rng.integers(0, totals // 2 + 1), totals)
        ceiling = np.minimum(max_demand, remaining)
        allocation = rng.integers(0, ceiling + 1)
        remaining -= allocation
        processes.append(Process.create(pid, max_demand.tolist(), allocation.tolist()))

    return Scenario(ledger=ResourceLedger(resources, processes))


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
