"""
Configuration for the Deadlock Avoidance Simulator.

Collects the recognised run parameters (process count, resource-class
count, totals per class, seed) plus run options, and validates them.
"""

import argparse
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from algorithms.request_policy import POLICY_NAMES


INITIAL_STATE_MODES = ("warn", "reject")


class ConfigError(ValueError):
    """Exception raised when the simulation configuration is invalid."""
    pass


@dataclass
class SimulationConfig:
    """
    Run parameters.

    Attributes:
        num_processes: Number of processes to generate (P)
        num_resources: Number of resource classes (R)
        total_resources: Total instances per class, length R
        seed: Random seed; None draws a fresh one (see resolved_seed)
        request_policy: 'random', 'full_need' or 'scripted'
        initial_state: 'warn' to continue from an unsafe initial state,
            'reject' to refuse it
        max_turns: Stop after this many turns (None = run to a verdict)
        check_invariants: Verify ledger and queue invariants every turn
        scenario_path: JSON scenario to load instead of generating one
        verbose: Enable verbose logging
        log_file: Mirror the log into this file
    """
    num_processes: int = 5
    num_resources: int = 3
    total_resources: Tuple[int, ...] = (10, 15, 12)
    seed: Optional[int] = None
    request_policy: str = "random"
    initial_state: str = "warn"
    max_turns: Optional[int] = None
    check_invariants: bool = True
    scenario_path: Optional[str] = None
    verbose: bool = False
    log_file: Optional[str] = None

    def __post_init__(self):
        self.total_resources = tuple(int(x) for x in self.total_resources)

    def validate(self) -> "SimulationConfig":
        """
        Check every option.

        Returns:
            self, for chaining

        Raises:
            ConfigError: If any option is out of range
        """
        if self.scenario_path is None:
            if self.num_processes < 1:
                raise ConfigError(f"num_processes must be >= 1, got {self.num_processes}")
            if self.num_resources < 1:
                raise ConfigError(f"num_resources must be >= 1, got {self.num_resources}")
            if len(self.total_resources) != self.num_resources:
                raise ConfigError(
                    f"total_resources has {len(self.total_resources)} entries, "
                    f"expected {self.num_resources}"
                )
            if any(t < 0 for t in self.total_resources):
                raise ConfigError(f"total_resources cannot be negative: {self.total_resources}")
        if self.seed is not None and self.seed < 0:
            raise ConfigError(f"seed must be non-negative, got {self.seed}")
        if self.request_policy not in POLICY_NAMES:
            raise ConfigError(
                f"Unknown request policy '{self.request_policy}' "
                f"(expected one of {', '.join(POLICY_NAMES)})"
            )
        if self.initial_state not in INITIAL_STATE_MODES:
            raise ConfigError(
                f"initial_state must be one of {', '.join(INITIAL_STATE_MODES)}, "
                f"got '{self.initial_state}'"
            )
        if self.max_turns is not None and self.max_turns < 1:
            raise ConfigError(f"max_turns must be >= 1, got {self.max_turns}")
        return self

    def resolved_seed(self) -> int:
        """The configured seed, or a fresh one drawn from OS entropy."""
        if self.seed is not None:
            return self.seed
        return int(np.random.SeedSequence().generate_state(1)[0])

    def with_seed(self, seed: int) -> "SimulationConfig":
        """Copy of this config with another seed."""
        return replace(self, seed=seed)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "SimulationConfig":
        """
        Build a config from the simulator's command-line arguments.

        Raises:
            ConfigError: If the resulting config is invalid
        """
        totals = tuple(args.totals) if args.totals else cls.total_resources
        num_resources = args.resources
        if num_resources is None:
            num_resources = len(totals)
        elif not args.totals and num_resources != len(totals):
            # Spread the default (10, 15, 12) pattern over the requested width
            totals = tuple(cls.total_resources[i % len(cls.total_resources)] for i in range(num_resources))

        return cls(
            num_processes=args.processes,
            num_resources=num_resources,
            total_resources=totals,
            seed=args.seed,
            request_policy=args.policy,
            initial_state=args.initial_state,
            max_turns=args.max_turns,
            scenario_path=args.scenario,
            verbose=args.verbose,
            log_file=args.log_file,
        ).validate()
