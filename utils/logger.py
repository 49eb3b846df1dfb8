"""
Logger utility for the Deadlock Avoidance Simulator.

Provides turn-by-turn logging with verbosity levels.
"""

from typing import List, Optional, Sequence
from datetime import datetime


class SimulatorLogger:
    """
    Logger for simulation events and decisions.

    Format: "Turn X: PY requests (a,b,c) - GRANTED/DENIED (reason)"
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None, enabled: bool = True):
        """
        Initialize logger.

        Args:
            verbose: Enable verbose (debug) output
            log_file: Optional file path for logging
            enabled: Print to the console; False keeps only the log file
        """
        self.verbose = verbose
        self.log_file = log_file
        self.enabled = enabled
        self.file_handle = None
        self.lines: List[str] = []

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Simulation Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)
        self.lines.append(formatted)

        # Console output
        if self.enabled:
            print(formatted)

        # File output
        if self.file_handle:
            self.file_handle.write(formatted + "\n")
            self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level prefix."""
        if level == "error":
            return f"[ERROR] {message}"
        elif level == "warning":
            return f"[WARNING] {message}"
        elif level == "debug":
            return f"[DEBUG] {message}"
        else:
            return message

    def log_turn(self, turn: int, message: str, level: str = "info") -> None:
        """Log a message tagged with the scheduler turn."""
        self.log(f"Turn {turn}: {message}", level)

    def log_request(
        self,
        turn: int,
        pid: int,
        request: Sequence[int],
        granted: bool,
        reason: str
    ) -> None:
        """
        Log a resource request.

        Args:
            turn: Current scheduler turn
            pid: Process ID
            request: Requested vector
            granted: Whether request was granted
            reason: Reason for decision
        """
        status = "GRANTED" if granted else "DENIED"
        req = "(" + ",".join(str(int(x)) for x in request) + ")"
        self.log_turn(turn, f"P{pid} requests {req} - {status} ({reason})")

    def log_deadlock(self, turn: int, blocked_pids: List[int]) -> None:
        """
        Log a deadlock verdict.

        Args:
            turn: Current scheduler turn
            blocked_pids: PIDs left in the Blocked queue
        """
        pids_str = ", ".join(f"P{pid}" for pid in blocked_pids)
        self.log_turn(turn, f"DEADLOCK - all remaining processes blocked: [{pids_str}]", "warning")

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
