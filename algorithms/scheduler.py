"""
Turn-based Scheduler Loop for the Deadlock Avoidance Simulator.

Each turn:
a. Retry every blocked process once (queue order)
b. Dispatch the head of the Ready queue into the running slot
c. A running process with zero need finishes immediately
d. Otherwise it makes one request; the request processor decides
e. Check for ALL_FINISHED or DEADLOCKED
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from algorithms.avoidance import RequestOutcome, RequestResult, handle_request
from algorithms.request_policy import RequestPolicy
from analysis.events import EventLog, EventType, SimulationEvent
from analysis.metrics import SimulationMetrics
from analysis.trace import Trace, capture_snapshot
from models.errors import InternalConsistencyViolation
from models.ledger import ResourceLedger
from models.process import Process
from models.queues import QueueManager
from models.vector import format_vector
from utils.logger import SimulatorLogger


class RunState(Enum):
    """Overall state of a simulation run."""
    PROGRESSING = "progressing"
    ALL_FINISHED = "all_finished"
    DEADLOCKED = "deadlocked"
    TURN_LIMIT = "turn_limit"

    @property
    def is_terminal(self) -> bool:
        return self != RunState.PROGRESSING


@dataclass
class TurnReport:
    """
    What happened during one turn.

    Attributes:
        turn: Turn number (starting at 1)
        dispatched_pid: Process that held the running slot, None on an idle turn
        woken: Processes moved from Blocked to Ready by the retry pass
        finished: Processes that finished this turn
        results: (pid, RequestResult) for every request decided this turn
        safe_sequences: Witnesses of the successful safety checks
        state: Run state after the terminal check
    """
    turn: int
    dispatched_pid: Optional[int] = None
    woken: List[int] = field(default_factory=list)
    finished: List[int] = field(default_factory=list)
    results: List[Tuple[int, RequestResult]] = field(default_factory=list)
    safe_sequences: List[List[int]] = field(default_factory=list)
    state: RunState = RunState.PROGRESSING

    @property
    def idle(self) -> bool:
        return self.dispatched_pid is None


class Scheduler:
    """
    Drives the ledger and the queues one turn at a time.

    The ledger is the single owner of resource state; the scheduler only
    reaches it through handle_request and ledger.release.
    """

    def __init__(
        self,
        ledger: ResourceLedger,
        policy: RequestPolicy,
        queues: Optional[QueueManager] = None,
        logger: Optional[SimulatorLogger] = None,
        event_log: Optional[EventLog] = None,
        metrics: Optional[SimulationMetrics] = None,
        check_invariants: bool = True
    ):
        self.ledger = ledger
        self.policy = policy
        self.queues = queues if queues is not None else QueueManager(ledger.processes)
        self.logger = logger if logger is not None else SimulatorLogger(enabled=False)
        self.event_log = event_log if event_log is not None else EventLog()
        self.metrics = metrics if metrics is not None else SimulationMetrics()
        self.metrics.total_processes = ledger.num_processes
        self.check_invariants = check_invariants
        self.trace = Trace()
        self.turn = 0
        self.state = RunState.PROGRESSING

    def run(self, max_turns: Optional[int] = None) -> RunState:
        """
        Run turns until a terminal state.

        Args:
            max_turns: Optional turn budget; reaching it ends the run with
                TURN_LIMIT

        Returns:
            Final RunState
        """
        while not self.state.is_terminal:
            if max_turns is not None and self.turn >= max_turns:
                self.state = RunState.TURN_LIMIT
                self.logger.log(f"\nTurn limit ({max_turns}) reached without a verdict", "warning")
                break
            self.run_turn()
        return self.state

    def run_turn(self) -> TurnReport:
        """
        Execute one scheduler turn.

        Raises:
            RuntimeError: If the run already reached a terminal state
        """
        if self.state.is_terminal:
            raise RuntimeError(f"Simulation already ended ({self.state.value})")

        self.turn += 1
        report = TurnReport(turn=self.turn)
        self.logger.log(f"\n=========== Turn {self.turn} ===========")

        # a. Blocked-retry pass
        self._retry_blocked(report)

        # b. Dispatch
        process = self.queues.dispatch()
        if process is None:
            self.logger.log_turn(self.turn, "Ready queue empty - CPU idle")
            self.metrics.idle_turns += 1
            self.event_log.add(SimulationEvent(
                turn=self.turn,
                event_type=EventType.IDLE,
                process_id=-1,
                message="Ready queue empty",
            ))
        else:
            report.dispatched_pid = process.pid
            self.logger.log_turn(self.turn, f"P{process.pid} is running")
            self.event_log.add(SimulationEvent(
                turn=self.turn,
                event_type=EventType.DISPATCH,
                process_id=process.pid,
            ))
            # c./d. Run it
            self._run_process(process, report)

        if self.check_invariants:
            self._check_invariants()

        # e. Terminal check
        report.state = self._terminal_state(report)
        self.state = report.state

        snapshot = capture_snapshot(
            self.turn, self.ledger, self.queues, report.dispatched_pid, report.safe_sequences
        )
        self.trace.add(snapshot)
        self.metrics.record_turn(
            self.turn,
            self.ledger.allocation_matrix.sum(axis=0).tolist(),
            self.ledger.totals.tolist(),
            self.queues.blocked.pids(),
        )
        self.logger.log(snapshot.display(), "debug")

        if report.state == RunState.DEADLOCKED:
            self.metrics.deadlocked = True
            blocked = self.queues.blocked.pids()
            self.logger.log_deadlock(self.turn, blocked)
            self.event_log.add(SimulationEvent(
                turn=self.turn,
                event_type=EventType.DEADLOCK,
                process_id=-1,
                message=f"Blocked with no progress: {blocked}",
            ))
        elif report.state == RunState.ALL_FINISHED:
            self.logger.log(f"\nAll processes finished at turn {self.turn}")

        return report

    def _retry_blocked(self, report: TurnReport) -> None:
        """Give every blocked process one retry, in queue order."""
        if self.queues.blocked.is_empty():
            return

        self.logger.log_turn(self.turn, "Retrying blocked processes...")
        # Drained processes sit in no queue until the request is decided
        for process in self.queues.drain_blocked():
            request = self.policy.retry_request(process, self.ledger.available)
            result = self._submit(process, request, report)

            if result.granted:
                self.queues.make_ready(process)
                report.woken.append(process.pid)
                self.metrics.wakeups += 1
                self.logger.log_turn(self.turn, f"P{process.pid} woken, moved to Ready queue")
                self.event_log.add(SimulationEvent(
                    turn=self.turn,
                    event_type=EventType.WAKEUP,
                    process_id=process.pid,
                    message="Blocked -> Ready",
                ))
            elif result.outcome == RequestOutcome.DENIED_OVER_NEED:
                # No state change on over-need: put it back where it was
                self.queues.block(process)
            else:
                self.logger.log_turn(self.turn, f"P{process.pid} still blocked")

    def _run_process(self, process: Process, report: TurnReport) -> None:
        """Steps c and d for the running process."""
        if process.has_zero_need():
            self.logger.log_turn(self.turn, f"P{process.pid} already holds its maximum demand")
            self._finish(process, report)
            return

        request = self.policy.running_request(process, self.ledger.available)
        result = self._submit(process, request, report)

        if result.granted:
            if process.has_zero_need():
                self._finish(process, report)
            else:
                self.queues.make_ready(process)
        elif result.outcome == RequestOutcome.DENIED_OVER_NEED:
            self.logger.log_turn(
                self.turn,
                f"P{process.pid} request rejected by contract check, returned to Ready queue",
                "warning",
            )
            self.queues.make_ready(process)
        # Unavailable / unsafe: handle_request already moved it to Blocked

    def _submit(self, process: Process, request, report: TurnReport) -> RequestResult:
        """Send a request through the request processor and record the outcome."""
        result = handle_request(process, request, self.ledger, self.queues)
        report.results.append((process.pid, result))
        self.logger.log_request(self.turn, process.pid, result.request, result.granted, result.reason)

        if result.granted:
            report.safe_sequences.append(result.safe_sequence)
            self.metrics.record_allocation(process.pid)
            event_type = EventType.ALLOCATION
        else:
            self.metrics.record_denial(process.pid, result.outcome.value.replace("denied_", ""))
            event_type = EventType.DENIAL

        self.event_log.add(SimulationEvent(
            turn=self.turn,
            event_type=event_type,
            process_id=process.pid,
            request=result.request.tolist(),
            reason=result.outcome.value if not result.granted else result.reason,
        ))
        return result

    def _finish(self, process: Process, report: TurnReport) -> None:
        """Finished transition: log entry, then release everything it holds."""
        self.queues.finish(process)
        released = self.ledger.release(process)
        report.finished.append(process.pid)
        self.metrics.record_completion()
        self.metrics.record_process_final_state(process.pid, process.state.value)
        message = f"released {format_vector(released)}, Available now {format_vector(self.ledger.available)}"
        self.logger.log_turn(self.turn, f"P{process.pid} - FINISHED ({message})")
        self.event_log.add(SimulationEvent(
            turn=self.turn,
            event_type=EventType.FINISH,
            process_id=process.pid,
            message=message,
        ))

    def _check_invariants(self) -> None:
        """
        Raises:
            InternalConsistencyViolation: If the ledger or the queues are corrupt
        """
        self.ledger.assert_consistency(f"at end of turn {self.turn}")
        if self.queues.running is not None:
            raise InternalConsistencyViolation(
                f"P{self.queues.running.pid} left in the running slot at end of turn {self.turn}"
            )
        self.queues.assert_membership(self.ledger.processes)

    def _terminal_state(self, report: TurnReport) -> RunState:
        """
        ALL_FINISHED when every process is in the Finished log.
        DEADLOCKED when Ready is empty, Blocked is not, nobody woke up and
        nobody ran this turn.
        """
        if len(self.queues.finished) == self.ledger.num_processes:
            return RunState.ALL_FINISHED
        if (
            self.queues.ready.is_empty()
            and not self.queues.blocked.is_empty()
            and not report.woken
            and report.idle
        ):
            return RunState.DEADLOCKED
        return RunState.PROGRESSING
