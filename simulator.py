#!/usr/bin/env python3
"""
Deadlock Avoidance Simulator
Main entry point for the simulation system.

Simulates a Banker's Algorithm resource manager: processes compete for
reusable resource classes and every request is granted only if the system
stays in a safe state.
"""

import argparse
import sys
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from algorithms.request_policy import POLICY_NAMES, RequestPolicy, make_policy
from algorithms.safety import is_safe_state
from algorithms.scheduler import RunState, Scheduler
from analysis.analyzer import analyze_policy, compare_policies
from analysis.events import EventLog
from analysis.metrics import SimulationMetrics, format_metrics_report
from analysis.trace import Trace
from models.ledger import ResourceLedger
from models.queues import QueueManager
from models.vector import format_vector
from utils.config import ConfigError, INITIAL_STATE_MODES, SimulationConfig
from utils.logger import SimulatorLogger
from utils.scenario_loader import Scenario, ScenarioLoadError, generate_scenario, load_scenario


class UnsafeInitialStateError(RuntimeError):
    """Raised when the initial state is unsafe and the config rejects it."""
    pass


@dataclass
class SimulationResult:
    """Everything a finished run produced."""
    state: RunState
    turns: int
    seed: int
    ledger: ResourceLedger
    queues: QueueManager
    event_log: EventLog
    metrics: SimulationMetrics
    trace: Trace
    initial_safe: bool
    initial_sequence: Optional[List[int]]

    @property
    def stop_reason(self) -> str:
        if self.state == RunState.ALL_FINISHED:
            return f"All processes finished at turn {self.turns}"
        if self.state == RunState.DEADLOCKED:
            return f"Deadlock detected at turn {self.turns}"
        if self.state == RunState.TURN_LIMIT:
            return f"Maximum turns reached ({self.turns})"
        return f"Stopped at turn {self.turns}"


def run_simulation(
    config: SimulationConfig,
    policy: Optional[RequestPolicy] = None,
    logger: Optional[SimulatorLogger] = None,
    scenario: Optional[Scenario] = None
) -> SimulationResult:
    """
    Run one simulation to a terminal state.

    Order of work:
    1. Load the scenario file, or generate a population from the seed
    2. Check the initial state for safety (warn or reject per config)
    3. Put every process in the Ready queue (pid order)
    4. Run scheduler turns until ALL_FINISHED / DEADLOCKED (/ TURN_LIMIT)

    Args:
        config: Run configuration (validated here)
        policy: Request policy; built from config.request_policy when None
        logger: Logger; built from config.verbose / config.log_file when None
        scenario: Pre-built starting state; overrides config.scenario_path
            and generation

    Returns:
        SimulationResult with the final ledger, queues, log, metrics and trace

    Raises:
        ConfigError: If config is invalid
        ScenarioLoadError: If the scenario file is invalid
        UnsafeInitialStateError: If initial_state == 'reject' and the
            initial state is unsafe
    """
    config.validate()
    own_logger = logger is None
    if own_logger:
        logger = SimulatorLogger(verbose=config.verbose, log_file=config.log_file)

    try:
        if scenario is None and config.scenario_path:
            scenario = load_scenario(config.scenario_path)

        # An explicit config seed wins over the scenario's recorded seed
        seed = config.seed
        if seed is None and scenario is not None and scenario.seed is not None:
            seed = scenario.seed
        if seed is None:
            seed = config.resolved_seed()
        rng = np.random.default_rng(seed)

        if scenario is None:
            scenario = generate_scenario(config.num_processes, config.total_resources, rng)
        ledger = scenario.ledger

        if policy is None:
            policy = make_policy(config.request_policy, scripts=scenario.scripts, rng=rng)

        logger.log(f"\n{'='*60}")
        logger.log(f"SIMULATION START (request policy: {policy.name.upper()}, seed: {seed})")
        if scenario.description:
            logger.log(f"Scenario: {scenario.description}")
        logger.log(f"{'='*60}\n")

        # SANITY CHECK: the starting ledger must already be consistent
        ledger.assert_consistency("at initial state")
        initial_safe, initial_sequence = _check_initial_state(ledger, config, logger)
        _display_initial_state(ledger, logger, initial_sequence)

        scheduler = Scheduler(
            ledger,
            policy,
            logger=logger,
            check_invariants=config.check_invariants,
        )
        state = scheduler.run(max_turns=config.max_turns)

        result = SimulationResult(
            state=state,
            turns=scheduler.turn,
            seed=seed,
            ledger=ledger,
            queues=scheduler.queues,
            event_log=scheduler.event_log,
            metrics=scheduler.metrics,
            trace=scheduler.trace,
            initial_safe=initial_safe,
            initial_sequence=initial_sequence,
        )
        for process in ledger.processes:
            scheduler.metrics.record_process_final_state(process.pid, process.state.value)

        logger.log(f"\n{'='*60}")
        logger.log(f"SIMULATION COMPLETE: {result.stop_reason}")
        logger.log(f"{'='*60}")
        logger.log(ledger.display())
        return result
    finally:
        if own_logger:
            logger.close()


def _check_initial_state(ledger: ResourceLedger, config: SimulationConfig, logger: SimulatorLogger):
    """
    Run the safety check before the first turn.

    Returns:
        Tuple of (is_safe, safe_sequence)

    Raises:
        UnsafeInitialStateError: If unsafe and config.initial_state == 'reject'
    """
    safe, sequence = is_safe_state(ledger)
    if safe:
        logger.log("Initial state is safe.")
    elif config.initial_state == "reject":
        logger.log("Initial state is unsafe - rejected by configuration", "error")
        raise UnsafeInitialStateError(
            f"Initial state is unsafe (Available {format_vector(ledger.available)})"
        )
    else:
        logger.log(
            "Initial state is unsafe! Processes may block soon and the run may deadlock.",
            "warning",
        )
    return safe, sequence


def _display_initial_state(
    ledger: ResourceLedger,
    logger: SimulatorLogger,
    safe_sequence: Optional[List[int]] = None
) -> None:
    """Display initial system state, with the safety witness when there is one."""
    logger.log("Initial System State:")
    logger.log("\nResources:")
    for r in ledger.resources:
        logger.log(f"  {r.name} (R{r.type_id}): total={r.total_instances}")
    logger.log("")
    logger.log(ledger.display(safe_sequence))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Deadlock Avoidance Simulator (Banker's Algorithm)"
    )
    parser.add_argument(
        '--scenario',
        type=str,
        default=None,
        help='Path to scenario JSON file (default: generate a random population)'
    )
    parser.add_argument(
        '--processes',
        type=int,
        default=5,
        help='Number of processes to generate (default: 5)'
    )
    parser.add_argument(
        '--resources',
        type=int,
        default=None,
        help='Number of resource classes (default: number of --totals, or 3)'
    )
    parser.add_argument(
        '--totals',
        type=int,
        nargs='+',
        default=None,
        help='Total instances per resource class (default: 10 15 12)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed (default: fresh seed, printed for replay)'
    )
    parser.add_argument(
        '--policy',
        choices=list(POLICY_NAMES),
        default='random',
        help='Request synthesis policy (default: random)'
    )
    parser.add_argument(
        '--initial-state',
        choices=list(INITIAL_STATE_MODES),
        default='warn',
        help='What to do when the initial state is unsafe (default: warn)'
    )
    parser.add_argument(
        '--max-turns',
        type=int,
        default=None,
        help='Stop after this many turns (default: no limit)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging (full status table every turn)'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write the log to this file'
    )
    parser.add_argument(
        '--analyze',
        action='store_true',
        help='Run performance analysis mode'
    )
    parser.add_argument(
        '--compare-policies',
        action='store_true',
        help='Compare all request policies (requires --analyze)'
    )
    parser.add_argument(
        '--runs',
        type=int,
        default=10,
        help='Number of simulation runs for analysis (default: 10)'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the simulator."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Validate arguments
    if args.compare_policies and not args.analyze:
        parser.error('--compare-policies requires --analyze')
    if args.runs < 1:
        parser.error('--runs must be >= 1')

    try:
        config = SimulationConfig.from_args(args)
    except ConfigError as e:
        print(f"[ERROR] Invalid configuration: {e}")
        return 1

    try:
        if args.analyze:
            if config.seed is None:
                config = config.with_seed(config.resolved_seed())
            if args.compare_policies:
                results = compare_policies(config, ["random", "full_need"], args.runs, run_simulation)
                for comparison, _ in results:
                    print(comparison.display())
            else:
                comparison, _ = analyze_policy(config, config.request_policy, args.runs, run_simulation)
                print(comparison.display())
            return 0

        result = run_simulation(config)
        print(format_metrics_report(
            result.metrics,
            verbose=config.verbose,
            policy=config.request_policy,
            stop_reason=result.stop_reason,
        ))
        return 0
    except (ScenarioLoadError, UnsafeInitialStateError) as e:
        print(f"[ERROR] {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
