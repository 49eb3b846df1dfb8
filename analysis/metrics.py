"""
Metrics Tracking for the Deadlock Avoidance Simulator.

Tracks performance metrics throughout simulation execution.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional
import statistics


@dataclass
class SimulationMetrics:
    """
    Accumulated metrics for a single simulation run.

    Tracks:
    1. Request outcomes: grants and denials by kind
    2. Resource Utilization %: Average (allocated/total) × 100 per turn (includes initial allocations)
    3. Process Waiting Time: Turns each process ended in BLOCKED
    4. System Throughput: Finished processes / total turns
    """
    total_turns: int = 0
    total_processes: int = 0
    completed_processes: int = 0
    idle_turns: int = 0
    wakeups: int = 0
    deadlocked: bool = False

    granted_count: int = 0
    denied_counts: Dict[str, int] = field(default_factory=dict)

    # Per-turn samples
    utilization_samples: List[float] = field(default_factory=list)
    resource_utilization_samples: Dict[int, List[float]] = field(default_factory=dict)

    # Per-process tracking
    process_waiting_times: Dict[int, int] = field(default_factory=dict)
    process_granted_counts: Dict[int, int] = field(default_factory=dict)
    process_denied_counts: Dict[int, int] = field(default_factory=dict)
    process_final_states: Dict[int, str] = field(default_factory=dict)

    def record_turn(
        self,
        turn: int,
        allocated: List[int],
        totals: List[int],
        blocked_pids: List[int]
    ) -> None:
        """
        Record metrics for a single turn.

        Args:
            turn: Current turn number
            allocated: Allocated instances per resource class
            totals: Total instances per resource class
            blocked_pids: Processes in BLOCKED at the end of the turn
        """
        self.total_turns = turn

        total_instances = sum(totals)
        if total_instances > 0:
            self.utilization_samples.append(sum(allocated) / total_instances * 100)

        for resource_id, (used, total) in enumerate(zip(allocated, totals)):
            samples = self.resource_utilization_samples.setdefault(resource_id, [])
            if total > 0:
                samples.append(used / total * 100)

        for pid in blocked_pids:
            self.process_waiting_times[pid] = self.process_waiting_times.get(pid, 0) + 1

    def record_allocation(self, process_id: int) -> None:
        """Record a granted request."""
        self.granted_count += 1
        self.process_granted_counts[process_id] = self.process_granted_counts.get(process_id, 0) + 1

    def record_denial(self, process_id: int, kind: str) -> None:
        """
        Record a denied request.

        Args:
            process_id: Process identifier
            kind: Denial kind (over_need / unavailable / unsafe)
        """
        self.denied_counts[kind] = self.denied_counts.get(kind, 0) + 1
        self.process_denied_counts[process_id] = self.process_denied_counts.get(process_id, 0) + 1

    def record_completion(self) -> None:
        """Record a process completion."""
        self.completed_processes += 1

    def record_process_final_state(self, process_id: int, state: str) -> None:
        """Record final state of a process."""
        self.process_final_states[process_id] = state

    @property
    def denied_total(self) -> int:
        return sum(self.denied_counts.values())

    def get_avg_utilization(self) -> float:
        """Calculate average resource utilization (overall, includes initial allocations)."""
        if not self.utilization_samples:
            return 0.0
        return statistics.mean(self.utilization_samples)

    def get_resource_utilization(self, resource_id: int) -> float:
        """Average utilization for one resource class."""
        samples = self.resource_utilization_samples.get(resource_id)
        if not samples:
            return 0.0
        return statistics.mean(samples)

    def get_avg_waiting_time(self) -> float:
        """
        Calculate average waiting time across all processes.

        Formula: Sum of blocked turns / Number of processes
        """
        if self.total_processes == 0:
            return 0.0
        return sum(self.process_waiting_times.values()) / self.total_processes

    def get_throughput(self) -> float:
        """Finished processes / total turns."""
        if self.total_turns == 0:
            return 0.0
        return self.completed_processes / self.total_turns


def format_metrics_report(
    metrics: SimulationMetrics,
    verbose: bool = False,
    policy: Optional[str] = None,
    stop_reason: Optional[str] = None
) -> str:
    """
    Format metrics for display at end of simulation.

    Args:
        metrics: SimulationMetrics instance with collected data
        verbose: If True, include per-process breakdown
        policy: Request policy used in simulation
        stop_reason: Reason simulation stopped

    Returns:
        Formatted metrics report string
    """
    lines = []
    lines.append("\n" + "="*60)
    lines.append("SIMULATION METRICS")
    lines.append("="*60)

    if policy:
        lines.append(f"Request Policy: {policy.upper()}")
    if stop_reason:
        lines.append(f"Stop Reason: {stop_reason}")
    if policy or stop_reason:
        lines.append("")

    lines.append(f"Total Turns: {metrics.total_turns} ({metrics.idle_turns} idle)")
    lines.append(f"Total Processes: {metrics.total_processes}")
    lines.append(f"Completed Processes: {metrics.completed_processes}")
    lines.append(f"Wake-ups from Blocked: {metrics.wakeups}")
    lines.append("")

    lines.append("KEY PERFORMANCE METRICS:")
    lines.append("-" * 60)
    lines.append(f"1. Requests: {metrics.granted_count} granted, {metrics.denied_total} denied")
    for kind in sorted(metrics.denied_counts):
        lines.append(f"   - {kind}: {metrics.denied_counts[kind]}")
    lines.append(f"2. Average Resource Utilization: {metrics.get_avg_utilization():.2f}%")
    lines.append(f"3. Average Waiting Time: {metrics.get_avg_waiting_time():.2f} turns/process")
    lines.append(f"4. System Throughput: {metrics.get_throughput():.4f} processes/turn")

    if verbose and metrics.resource_utilization_samples:
        lines.append("")
        lines.append("PER-RESOURCE UTILIZATION:")
        lines.append("-" * 60)
        for resource_id in sorted(metrics.resource_utilization_samples.keys()):
            lines.append(f"  R{resource_id}: {metrics.get_resource_utilization(resource_id):.2f}% average")

    if verbose and metrics.process_final_states:
        lines.append("")
        lines.append("PER-PROCESS SUMMARY:")
        lines.append("-" * 60)
        for pid in sorted(metrics.process_final_states.keys()):
            lines.append(
                f"  P{pid}: {metrics.process_final_states[pid]:9} | "
                f"wait={metrics.process_waiting_times.get(pid, 0):2} turns | "
                f"grant={metrics.process_granted_counts.get(pid, 0):2} "
                f"deny={metrics.process_denied_counts.get(pid, 0):2}"
            )

    lines.append("="*60)
    return "\n".join(lines)
