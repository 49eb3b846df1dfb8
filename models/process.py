"""
Process model for the Deadlock Avoidance Simulator.

Represents a simulated process with its declared maximum demand, current
allocation, remaining need and life-cycle state.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Sequence
from enum import Enum

from models.vector import as_vector, format_vector, is_integral, is_zero


class ProcessState(Enum):
    """Process states in the simulation."""
    READY = "READY"
    RUNNING = "RUNNING"
    BLOCKED = "BLOCKED"
    FINISHED = "FINISHED"


@dataclass(eq=False)
class Process:
    """
    Represents a process competing for resources.

    The vectors are owned by the ResourceLedger once the process is handed
    to it; only the ledger and the request processor change them.

    Attributes:
        pid: Process identifier (unique, stable)
        max_demand: Maximum resource demand declared by process [R]
        allocation: Current resource allocation [R]
        need: Units still claimable, max_demand - allocation [R]
        state: Current life-cycle state
    """
    pid: int
    max_demand: np.ndarray
    allocation: np.ndarray = None
    need: np.ndarray = field(init=False)
    state: ProcessState = ProcessState.READY

    def __post_init__(self):
        """Normalise vectors and derive need from max_demand - allocation."""
        for label, values in (("max_demand", self.max_demand), ("allocation", self.allocation)):
            if values is not None and not is_integral(values):
                raise ValueError(f"P{self.pid}: {label} must contain whole instances, got {values!r}")
        self.max_demand = as_vector(self.max_demand)
        if self.allocation is None:
            self.allocation = np.zeros_like(self.max_demand)
        else:
            self.allocation = as_vector(self.allocation)
        if self.allocation.shape != self.max_demand.shape:
            raise ValueError(
                f"P{self.pid}: allocation width ({self.allocation.shape[0]}) "
                f"does not match max_demand width ({self.max_demand.shape[0]})"
            )
        if np.any(self.max_demand < 0) or np.any(self.allocation < 0):
            raise ValueError(f"P{self.pid}: resource vectors cannot be negative")
        if np.any(self.allocation > self.max_demand):
            raise ValueError(
                f"P{self.pid}: allocation {format_vector(self.allocation)} "
                f"exceeds max_demand {format_vector(self.max_demand)}"
            )
        self.need = self.max_demand - self.allocation

    @classmethod
    def create(cls, pid: int, max_demand: Sequence[int], allocation: Sequence[int] = None) -> "Process":
        """Build a READY process from plain int sequences."""
        return cls(
            pid=pid,
            max_demand=max_demand,
            allocation=allocation,
        )

    @property
    def width(self) -> int:
        """Number of resource classes in this process's vectors."""
        return int(self.max_demand.shape[0])

    def is_finished(self) -> bool:
        """True once the process reached the FINISHED state."""
        return self.state == ProcessState.FINISHED

    def has_zero_need(self) -> bool:
        """
        Check if the process holds its whole declared maximum.
        A process with zero need is ready to finish.
        """
        return is_zero(self.need)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Process(pid={self.pid}, state={self.state.value}, "
            f"alloc={format_vector(self.allocation)}, need={format_vector(self.need)}, "
            f"max={format_vector(self.max_demand)})"
        )
