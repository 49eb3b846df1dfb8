"""
Queue Manager for the Deadlock Avoidance Simulator.

Ready, Blocked and Finished queues plus the single running slot. Every
transition updates the process state together with its queue membership.
"""

from collections import deque
from typing import Iterable, List, Optional

from models.errors import InternalConsistencyViolation
from models.process import Process, ProcessState


class ProcessQueue:
    """FIFO of process references."""

    def __init__(self, name: str):
        self.name = name
        self._items = deque()

    def enqueue(self, process: Process) -> None:
        """Append to the tail."""
        self._items.append(process)

    def dequeue(self) -> Optional[Process]:
        """Remove and return the head, or None when empty."""
        if not self._items:
            return None
        return self._items.popleft()

    def is_empty(self) -> bool:
        return not self._items

    def drain(self) -> List[Process]:
        """Remove every process, returning them in queue order."""
        drained = list(self._items)
        self._items.clear()
        return drained

    def pids(self) -> List[int]:
        return [p.pid for p in self._items]

    def __contains__(self, process: Process) -> bool:
        return any(p is process for p in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def __repr__(self) -> str:
        return f"{self.name}[{' '.join(f'P{pid}' for pid in self.pids())}]"


class QueueManager:
    """
    Owns the three queues and the running slot.

    Attributes:
        ready: Processes waiting for the CPU, FIFO
        blocked: Processes whose last request was denied, FIFO
        finished: Completion log, in finishing order
        running: Process currently holding the CPU, or None
    """

    def __init__(self, processes: Iterable[Process] = ()):
        self.ready = ProcessQueue("Ready")
        self.blocked = ProcessQueue("Blocked")
        self.finished = ProcessQueue("Finished")
        self.running: Optional[Process] = None
        for process in processes:
            if process.is_finished():
                self.finished.enqueue(process)
            else:
                self.make_ready(process)

    def make_ready(self, process: Process) -> None:
        """Set READY and append to the Ready queue."""
        self._leave_running(process)
        process.state = ProcessState.READY
        self.ready.enqueue(process)

    def block(self, process: Process) -> None:
        """Set BLOCKED and append to the Blocked queue."""
        self._leave_running(process)
        process.state = ProcessState.BLOCKED
        self.blocked.enqueue(process)

    def finish(self, process: Process) -> None:
        """Set FINISHED and append to the completion log."""
        self._leave_running(process)
        process.state = ProcessState.FINISHED
        self.finished.enqueue(process)

    def dispatch(self) -> Optional[Process]:
        """
        Move the head of Ready into the running slot.

        Returns:
            The running process, or None if Ready is empty (idle step)

        Raises:
            InternalConsistencyViolation: If the running slot is occupied
        """
        if self.running is not None:
            raise InternalConsistencyViolation(
                f"dispatch with P{self.running.pid} still in the running slot"
            )
        process = self.ready.dequeue()
        if process is None:
            return None
        process.state = ProcessState.RUNNING
        self.running = process
        return process

    def drain_blocked(self) -> List[Process]:
        """Take every blocked process out for the retry pass, in queue order."""
        return self.blocked.drain()

    def _leave_running(self, process: Process) -> None:
        if self.running is process:
            self.running = None

    def running_pid(self) -> Optional[int]:
        return None if self.running is None else self.running.pid

    def assert_membership(self, processes: Iterable[Process]) -> None:
        """
        Verify every process sits in exactly one queue or the running slot,
        and that its state matches where it sits.

        Raises:
            InternalConsistencyViolation: On zero or multiple memberships
        """
        for process in processes:
            found = [q.name for q in (self.ready, self.blocked, self.finished) if process in q]
            if self.running is process:
                found.append("Running")
            if len(found) != 1:
                raise InternalConsistencyViolation(
                    f"P{process.pid} is in {len(found)} places: {found or 'none'}"
                )
            expected = {
                "Ready": ProcessState.READY,
                "Blocked": ProcessState.BLOCKED,
                "Finished": ProcessState.FINISHED,
                "Running": ProcessState.RUNNING,
            }[found[0]]
            if process.state != expected:
                raise InternalConsistencyViolation(
                    f"P{process.pid} sits in {found[0]} but its state is {process.state.value}"
                )
