"""
Resource Ledger for the Deadlock Avoidance Simulator.

Owns the system-wide Available vector and every process's allocation and
need vectors. All mutations go through the checked operations below.
"""

import numpy as np
from typing import List, Dict, Optional

from models.errors import InternalConsistencyViolation
from models.process import Process, ProcessState
from models.resource import Resource
from models.vector import (
    as_vector,
    assert_non_negative,
    format_vector,
    is_zero,
    less_equal,
)


class ResourceLedger:
    """
    Global resource bookkeeping for Banker's Algorithm.

    Matrices are built on access from the per-process vectors, so they
    always reflect the live state.

    Attributes:
        resources: Resource classes, ordered by type_id
        processes: All processes, ordered by pid (identity order)
        totals: [R] Total instances per class, fixed at initialization
        available: [R] Free instances per class (read-only copy)
        allocation_matrix: [P][R] Current resources held by each process
        max_demand_matrix: [P][R] Maximum resource need declared by each process
        need_matrix: [P][R] Remaining claim of each process
    """

    def __init__(self, resources: List[Resource], processes: List[Process]):
        """
        Build a ledger and derive the initial Available vector.

        Args:
            resources: Resource classes (type_ids must be 0..R-1)
            processes: Processes with their initial allocations

        Raises:
            ValueError: If the population is malformed or over-allocated
        """
        self.resources = sorted(resources, key=lambda r: r.type_id)
        if [r.type_id for r in self.resources] != list(range(len(self.resources))):
            raise ValueError(
                f"Resource type_ids must be 0..{len(self.resources) - 1}, "
                f"got {[r.type_id for r in self.resources]}"
            )

        self.processes = sorted(processes, key=lambda p: p.pid)
        self._by_pid: Dict[int, Process] = {}
        for process in self.processes:
            if process.pid in self._by_pid:
                raise ValueError(f"Duplicate process id: P{process.pid}")
            if process.state != ProcessState.READY:
                raise ValueError(
                    f"P{process.pid}: processes must start READY, got {process.state.value}"
                )
            if process.width != self.num_resources:
                raise ValueError(
                    f"P{process.pid}: vector width ({process.width}) "
                    f"does not match resource count ({self.num_resources})"
                )
            self._by_pid[process.pid] = process

        self._totals = as_vector(r.total_instances for r in self.resources)

        # Initial allocation comes out of the totals
        allocated = self.allocation_matrix.sum(axis=0) if self.processes else np.zeros_like(self._totals)
        if not less_equal(allocated, self._totals):
            raise ValueError(
                f"Initial allocations {format_vector(allocated)} "
                f"exceed total instances {format_vector(self._totals)}"
            )
        self._available = self._totals - allocated

    @property
    def num_processes(self) -> int:
        """Number of processes in the system."""
        return len(self.processes)

    @property
    def num_resources(self) -> int:
        """Number of resource classes in the system."""
        return len(self.resources)

    @property
    def totals(self) -> np.ndarray:
        """Total instances per class (copy)."""
        return self._totals.copy()

    @property
    def available(self) -> np.ndarray:
        """Free instances per class (copy; mutate only via ledger operations)."""
        return self._available.copy()

    @property
    def allocation_matrix(self) -> np.ndarray:
        """Get allocation matrix [P][R]."""
        return self._stack(lambda p: p.allocation)

    @property
    def max_demand_matrix(self) -> np.ndarray:
        """Get max demand matrix [P][R]."""
        return self._stack(lambda p: p.max_demand)

    @property
    def need_matrix(self) -> np.ndarray:
        """
        Get need matrix [P][R].
        Equal to Max - Allocation for every unfinished process, zero for
        finished ones.
        """
        return self._stack(lambda p: p.need)

    def _stack(self, pick) -> np.ndarray:
        if not self.processes:
            return np.zeros((0, self.num_resources), dtype=int)
        return np.vstack([pick(p) for p in self.processes]).astype(int)

    def get_process(self, pid: int) -> Process:
        """
        Look up a process by pid.

        Raises:
            KeyError: If no such process exists
        """
        return self._by_pid[pid]

    def active_processes(self) -> List[Process]:
        """Processes not yet FINISHED, in pid order."""
        return [p for p in self.processes if p.state != ProcessState.FINISHED]

    def all_finished(self) -> bool:
        """Check if every process reached FINISHED."""
        return all(p.is_finished() for p in self.processes)

    def tentatively_allocate(self, process: Process, request: np.ndarray) -> None:
        """
        Speculative commit: Available -= request, allocation += request,
        need -= request. Caller has already checked request <= need and
        request <= Available.
        """
        self._available -= request
        process.allocation += request
        process.need -= request
        assert_non_negative(self._available, "available")
        assert_non_negative(process.need, f"P{process.pid} need")

    def rollback_allocation(self, process: Process, request: np.ndarray) -> None:
        """Exact inverse of tentatively_allocate."""
        self._available += request
        process.allocation -= request
        process.need += request
        assert_non_negative(process.allocation, f"P{process.pid} allocation")

    def release(self, process: Process) -> np.ndarray:
        """
        Return the process's entire allocation to Available.

        Called only at the Finished transition. A process whose allocation
        and need are already zero leaves Available unchanged.

        Args:
            process: Process with zero remaining need

        Returns:
            Released amounts by resource class

        Raises:
            InternalConsistencyViolation: If the process still has need
        """
        if not is_zero(process.need):
            raise InternalConsistencyViolation(
                f"release called on P{process.pid} with non-zero need {format_vector(process.need)}"
            )
        released = process.allocation.copy()
        self._available += released
        process.allocation = np.zeros_like(process.allocation)
        process.need = np.zeros_like(process.need)
        return released

    def assert_consistency(self, context: str = "") -> None:
        """
        Verify every bookkeeping invariant.

        - allocation + need == max_demand for unfinished processes
        - sum(allocation) + available == totals
        - no negative component anywhere

        Args:
            context: Description of when this check is being run (for error messages)

        Raises:
            InternalConsistencyViolation: If any invariant is violated
        """
        assert_non_negative(self._available, f"available {context}")
        for process in self.processes:
            assert_non_negative(process.allocation, f"P{process.pid} allocation {context}")
            assert_non_negative(process.need, f"P{process.pid} need {context}")
            if process.is_finished():
                continue
            if not np.array_equal(process.allocation + process.need, process.max_demand):
                raise InternalConsistencyViolation(
                    f"P{process.pid} allocation + need != max_demand {context}\n"
                    f"  Allocation: {format_vector(process.allocation)}, "
                    f"Need: {format_vector(process.need)}, Max: {format_vector(process.max_demand)}"
                )

        allocated = self.allocation_matrix.sum(axis=0) if self.processes else np.zeros_like(self._totals)
        if not np.array_equal(allocated + self._available, self._totals):
            raise InternalConsistencyViolation(
                f"Resource conservation violated {context}\n"
                f"  Allocated: {format_vector(allocated)}, Available: {format_vector(self._available)}, "
                f"Total: {format_vector(self._totals)}"
            )

    def snapshot(self) -> Dict:
        """
        Copy of the bookkeeping state, used by tests and the trace to compare
        before/after a request.

        Returns:
            Dictionary of plain lists
        """
        return {
            'available': self._available.tolist(),
            'processes': {
                p.pid: {
                    'state': p.state.value,
                    'allocation': p.allocation.tolist(),
                    'need': p.need.tolist(),
                }
                for p in self.processes
            },
        }

    def display(self, safe_sequence: Optional[List[int]] = None) -> str:
        """
        Generate readable string representation of the ledger.

        Returns:
            Formatted table of every process's max/allocation/need/state
        """
        names = ",".join(r.name for r in self.resources)
        output = []
        output.append(f"Available ({names}): {format_vector(self._available)}")
        output.append(f"PID | State    | Max ({names}) | Alloc ({names}) | Need ({names})")
        output.append("-" * 64)
        for p in self.processes:
            output.append(
                f"P{p.pid:<2} | {p.state.value:<8} | {format_vector(p.max_demand):>9} | "
                f"{format_vector(p.allocation):>11} | {format_vector(p.need):>10}"
            )
        if safe_sequence is not None:
            output.append("Safe sequence: " + " -> ".join(f"P{pid}" for pid in safe_sequence))
        return "\n".join(output)
