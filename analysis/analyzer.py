"""
Performance Analysis Library for the Deadlock Avoidance Simulator.

Called by simulator.py --analyze to run many seeds and compare request
policies. This is a library module, not a standalone CLI tool.
"""

from typing import List, Tuple
from dataclasses import dataclass
import statistics

from utils.logger import SimulatorLogger


@dataclass
class RunResult:
    """Results from a single simulation run."""
    policy: str
    run_number: int
    seed: int
    final_state: str
    stop_reason: str
    total_turns: int
    completed_processes: int
    total_processes: int
    avg_utilization: float
    avg_waiting_time: float
    throughput: float

    def is_successful(self) -> bool:
        """Check if run completed successfully (all processes finished)."""
        return self.final_state == "all_finished"

    def had_deadlock(self) -> bool:
        """Check if run ended in deadlock."""
        return self.final_state == "deadlocked"


@dataclass
class PolicyComparisonResult:
    """Aggregated results of many runs of one request policy."""
    policy_name: str
    deadlock_frequency: float  # Deadlocked runs / total runs
    avg_turns: float  # Average turns per run
    avg_resource_utilization: float  # Average % of resources in use
    avg_waiting_time: float  # Average turns processes spend in BLOCKED
    system_throughput: float  # Finished processes / turns
    total_runs: int
    finished_count: int = 0  # Runs where all processes finished
    deadlock_count: int = 0  # Runs that ended deadlocked
    timeout_count: int = 0  # Runs that hit max turns

    def display(self) -> str:
        """Format results for display."""
        result = f"\nRequest Policy: {self.policy_name.upper()}\n"
        result += f"  Runs: {self.total_runs} total\n"
        result += (
            f"    Final outcomes: Finished={self.finished_count}, "
            f"Deadlocked={self.deadlock_count}, Timeout={self.timeout_count}\n"
        )
        result += f"    Deadlock frequency: {self.deadlock_frequency:.2%}\n"
        result += f"  Average Turns: {self.avg_turns:.2f}\n"
        result += f"  Resource Utilization: {self.avg_resource_utilization:.2f}%\n"
        result += f"  Avg Waiting Time: {self.avg_waiting_time:.2f} turns\n"
        result += f"  System Throughput: {self.system_throughput:.4f} processes/turn"
        return result


def analyze_policy(
    config,
    policy_name: str,
    num_runs: int,
    run_simulation_func=None,
    verbose_runs: bool = False
) -> Tuple[PolicyComparisonResult, List[RunResult]]:
    """
    Run multiple simulations and collect metrics for a request policy.

    Run i uses seed config.seed + i, so the whole batch is reproducible.

    Args:
        config: SimulationConfig with a concrete seed
        policy_name: Request policy to test
        num_runs: Number of simulation runs
        run_simulation_func: Function to run simulation (injected from simulator.py)
        verbose_runs: Print every run's full trace instead of a one-line summary

    Returns:
        Tuple of (PolicyComparisonResult, List[RunResult])

    Raises:
        ValueError: If run_simulation_func is missing or config has no seed
    """
    if run_simulation_func is None:
        raise ValueError("run_simulation_func must be provided")
    if config.seed is None:
        raise ValueError("analysis needs a concrete seed")

    run_results: List[RunResult] = []
    print(f"\nRunning {num_runs} simulations for request policy: {policy_name.upper()}")

    for run_idx in range(num_runs):
        seed = config.seed + run_idx
        run_config = config.with_seed(seed)
        run_config.request_policy = policy_name
        logger = SimulatorLogger(verbose=verbose_runs and config.verbose, enabled=verbose_runs)

        result = run_simulation_func(run_config, logger=logger)
        metrics = result.metrics

        run_result = RunResult(
            policy=policy_name,
            run_number=run_idx + 1,
            seed=seed,
            final_state=result.state.value,
            stop_reason=result.stop_reason,
            total_turns=metrics.total_turns,
            completed_processes=metrics.completed_processes,
            total_processes=metrics.total_processes,
            avg_utilization=metrics.get_avg_utilization(),
            avg_waiting_time=metrics.get_avg_waiting_time(),
            throughput=metrics.get_throughput(),
        )
        run_results.append(run_result)

        if not verbose_runs:
            status = "[OK]" if run_result.is_successful() else "[FAIL]"
            deadlock_marker = " [DEADLOCK]" if run_result.had_deadlock() else ""
            print(f"    Run {run_idx + 1} (seed {seed}): {status} {run_result.stop_reason}{deadlock_marker}")

    finished_count = sum(1 for r in run_results if r.is_successful())
    deadlock_count = sum(1 for r in run_results if r.had_deadlock())
    timeout_count = sum(1 for r in run_results if r.final_state == "turn_limit")

    comparison = PolicyComparisonResult(
        policy_name=policy_name,
        deadlock_frequency=deadlock_count / len(run_results) if run_results else 0.0,
        avg_turns=statistics.mean(r.total_turns for r in run_results) if run_results else 0.0,
        avg_resource_utilization=statistics.mean(r.avg_utilization for r in run_results) if run_results else 0.0,
        avg_waiting_time=statistics.mean(r.avg_waiting_time for r in run_results) if run_results else 0.0,
        system_throughput=statistics.mean(r.throughput for r in run_results) if run_results else 0.0,
        total_runs=num_runs,
        finished_count=finished_count,
        deadlock_count=deadlock_count,
        timeout_count=timeout_count,
    )
    return comparison, run_results


def compare_policies(
    config,
    policy_names: List[str],
    num_runs: int,
    run_simulation_func=None
) -> List[Tuple[PolicyComparisonResult, List[RunResult]]]:
    """
    Analyze several request policies over the same seeds.

    Returns:
        One (PolicyComparisonResult, runs) entry per policy, in input order
    """
    results = [
        analyze_policy(config, name, num_runs, run_simulation_func)
        for name in policy_names
    ]
    print(format_comparison_table([comparison for comparison, _ in results]))
    return results


def format_comparison_table(comparisons: List[PolicyComparisonResult]) -> str:
    """Side-by-side table of policy results."""
    lines = []
    lines.append("\n" + "="*90)
    lines.append("REQUEST POLICY COMPARISON")
    lines.append("="*90)
    lines.append(
        f"{'Policy':<12} {'Runs':>5} {'Finished':>9} {'Deadlock':>9} {'Timeout':>8} "
        f"{'Turns':>8} {'Util%':>8} {'Wait':>8} {'Thru':>8}"
    )
    lines.append("-"*90)
    for c in comparisons:
        lines.append(
            f"{c.policy_name:<12} {c.total_runs:>5} {c.finished_count:>9} {c.deadlock_count:>9} "
            f"{c.timeout_count:>8} {c.avg_turns:>8.2f} {c.avg_resource_utilization:>8.2f} "
            f"{c.avg_waiting_time:>8.2f} {c.system_throughput:>8.4f}"
        )
    lines.append("="*90)
    return "\n".join(lines)
