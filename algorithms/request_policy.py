"""
Request synthesis policies for the Deadlock Avoidance Simulator.

The scheduler asks a policy what the running process (or a blocked process
on retry) requests next. Randomness lives here, outside the allocation
and safety logic, so the core stays deterministic.
"""

import numpy as np
from collections import deque
from typing import Dict, List, Optional, Sequence

from models.process import Process
from models.vector import as_vector


class RequestPolicy:
    """Base class: decide the next request of a process."""

    name = "base"

    def running_request(self, process: Process, available: np.ndarray) -> np.ndarray:
        """Request made by the running process (must be <= need)."""
        raise NotImplementedError

    def retry_request(self, process: Process, available: np.ndarray) -> np.ndarray:
        """Request made by a blocked process during the retry pass."""
        raise NotImplementedError


class RandomRequestPolicy(RequestPolicy):
    """
    Uniform random requests.

    Running: each component drawn from [0, need].
    Retry: each component drawn from [0, min(need, available)].
    """

    name = "random"

    def __init__(self, seed: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def running_request(self, process: Process, available: np.ndarray) -> np.ndarray:
        return self.rng.integers(0, process.need + 1).astype(int)

    def retry_request(self, process: Process, available: np.ndarray) -> np.ndarray:
        ceiling = np.minimum(process.need, available)
        return self.rng.integers(0, ceiling + 1).astype(int)


class FullNeedPolicy(RequestPolicy):
    """Ask for the whole remaining need; on retry, as much as is free."""

    name = "full_need"

    def running_request(self, process: Process, available: np.ndarray) -> np.ndarray:
        return process.need.copy()

    def retry_request(self, process: Process, available: np.ndarray) -> np.ndarray:
        return np.minimum(process.need, available)


class ScriptedRequestPolicy(RequestPolicy):
    """
    Replays per-process request scripts.

    When a script runs out the process asks for its full need. A blocked
    process re-submits the request that blocked it.
    """

    name = "scripted"

    def __init__(self, scripts: Optional[Dict[int, Sequence[Sequence[int]]]] = None):
        self._scripts: Dict[int, deque] = {
            pid: deque(as_vector(r) for r in requests)
            for pid, requests in (scripts or {}).items()
        }
        self._pending: Dict[int, np.ndarray] = {}

    def running_request(self, process: Process, available: np.ndarray) -> np.ndarray:
        script = self._scripts.get(process.pid)
        if script:
            request = script.popleft()
        else:
            request = process.need.copy()
        self._pending[process.pid] = request
        return request.copy()

    def retry_request(self, process: Process, available: np.ndarray) -> np.ndarray:
        pending = self._pending.get(process.pid)
        if pending is None:
            return process.need.copy()
        return pending.copy()

    def remaining(self, pid: int) -> List[List[int]]:
        """Unplayed script entries for a process."""
        return [r.tolist() for r in self._scripts.get(pid, ())]


POLICY_NAMES = ("random", "full_need", "scripted")


def make_policy(
    name: str,
    seed: Optional[int] = None,
    scripts: Optional[Dict[int, Sequence[Sequence[int]]]] = None,
    rng: Optional[np.random.Generator] = None
) -> RequestPolicy:
    """
    Build a request policy by name.

    Args:
        name: One of 'random', 'full_need', 'scripted'
        seed: Seed for the random policy (ignored when rng is given)
        scripts: Per-pid request scripts for the scripted policy
        rng: Shared generator for the random policy

    Raises:
        ValueError: If the name is unknown
    """
    if name == "random":
        return RandomRequestPolicy(seed, rng=rng)
    if name == "full_need":
        return FullNeedPolicy()
    if name == "scripted":
        return ScriptedRequestPolicy(scripts)
    raise ValueError(f"Unknown request policy '{name}' (expected one of {', '.join(POLICY_NAMES)})")
