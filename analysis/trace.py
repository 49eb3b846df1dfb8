"""
Per-turn trace for the Deadlock Avoidance Simulator.

A TurnSnapshot records what an observer sees at the end of a turn:
Available, the process that ran, the three queues, the full
allocation/need/state table and every safety witness found that turn.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from models.ledger import ResourceLedger
from models.queues import QueueManager


@dataclass
class ProcessRow:
    """One line of the per-process table."""
    pid: int
    state: str
    max_demand: List[int]
    allocation: List[int]
    need: List[int]


@dataclass
class TurnSnapshot:
    """State observed at the end of one scheduler turn."""
    turn: int
    available: List[int]
    running_pid: Optional[int]
    ready: List[int]
    blocked: List[int]
    finished: List[int]
    processes: List[ProcessRow]
    safe_sequences: List[List[int]] = field(default_factory=list)

    def display(self) -> str:
        """Render the snapshot the way the status table is printed."""
        def pids(values):
            return " ".join(f"P{pid}" for pid in values) if values else "empty"

        output = []
        output.append(f"--- Turn {self.turn} status ---")
        output.append(f"Available: {tuple(self.available)}")
        output.append(f"Running: {'none' if self.running_pid is None else f'P{self.running_pid}'}")
        output.append(f"Ready queue: {pids(self.ready)}")
        output.append(f"Blocked queue: {pids(self.blocked)}")
        output.append(f"Finished queue: {pids(self.finished)}")
        for sequence in self.safe_sequences:
            output.append("Safe sequence: " + " -> ".join(f"P{pid}" for pid in sequence))
        output.append("PID | State    | Max | Alloc | Need")
        for row in self.processes:
            output.append(
                f"P{row.pid:<2} | {row.state:<8} | {tuple(row.max_demand)} | "
                f"{tuple(row.allocation)} | {tuple(row.need)}"
            )
        return "\n".join(output)


def capture_snapshot(
    turn: int,
    ledger: ResourceLedger,
    queues: QueueManager,
    running_pid: Optional[int],
    safe_sequences: Optional[List[List[int]]] = None
) -> TurnSnapshot:
    """
    Copy the observable state into plain lists.

    Args:
        turn: Turn number
        ledger: Resource ledger
        queues: Queue manager
        running_pid: Process dispatched this turn (the running slot is
            empty again once the turn ends)
        safe_sequences: Witnesses of successful safety checks this turn
    """
    return TurnSnapshot(
        turn=turn,
        available=ledger.available.tolist(),
        running_pid=running_pid,
        ready=queues.ready.pids(),
        blocked=queues.blocked.pids(),
        finished=queues.finished.pids(),
        processes=[
            ProcessRow(
                pid=p.pid,
                state=p.state.value,
                max_demand=p.max_demand.tolist(),
                allocation=p.allocation.tolist(),
                need=p.need.tolist(),
            )
            for p in ledger.processes
        ],
        safe_sequences=[list(s) for s in (safe_sequences or [])],
    )


@dataclass
class Trace:
    """Ordered list of turn snapshots."""
    snapshots: List[TurnSnapshot] = field(default_factory=list)

    def add(self, snapshot: TurnSnapshot) -> None:
        self.snapshots.append(snapshot)

    def last(self) -> Optional[TurnSnapshot]:
        return self.snapshots[-1] if self.snapshots else None

    def display(self) -> str:
        return "\n\n".join(s.display() for s in self.snapshots)
