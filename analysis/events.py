"""
Event Model for the Deadlock Avoidance Simulator.

Defines event types for tracking simulation actions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class EventType(Enum):
    """Types of events in the simulation."""
    ALLOCATION = "allocation"
    DENIAL = "denial"
    WAKEUP = "wakeup"
    DISPATCH = "dispatch"
    FINISH = "finish"
    IDLE = "idle"
    DEADLOCK = "deadlock"


@dataclass
class SimulationEvent:
    """
    Represents a single event in the simulation.

    Attributes:
        turn: Scheduler turn when event occurred
        event_type: Type of event
        process_id: PID involved in event (-1 for system-wide events)
        request: Requested vector (if applicable)
        message: Human-readable description
        reason: Decision reason / denial kind (if applicable)
    """
    turn: int
    event_type: EventType
    process_id: int
    request: Optional[List[int]] = None
    message: str = ""
    reason: str = ""

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"Turn {self.turn}: P{self.process_id}"
        req = "(" + ",".join(str(x) for x in self.request) + ")" if self.request is not None else ""

        if self.event_type == EventType.ALLOCATION:
            return f"{base} requests {req} - GRANTED ({self.reason})"
        elif self.event_type == EventType.DENIAL:
            return f"{base} requests {req} - DENIED ({self.reason})"
        elif self.event_type == EventType.WAKEUP:
            return f"{base} - WOKEN ({self.message})"
        elif self.event_type == EventType.DISPATCH:
            return f"{base} - RUNNING"
        elif self.event_type == EventType.FINISH:
            return f"{base} - FINISHED ({self.message})"
        elif self.event_type == EventType.IDLE:
            return f"Turn {self.turn}: IDLE ({self.message})"
        elif self.event_type == EventType.DEADLOCK:
            return f"Turn {self.turn}: DEADLOCK ({self.message})"
        else:
            return f"{base} - {self.event_type.value}: {self.message}"


@dataclass
class EventLog:
    """Collection of simulation events."""
    events: List[SimulationEvent] = field(default_factory=list)

    def add(self, event: SimulationEvent) -> None:
        """Add an event to the log."""
        self.events.append(event)

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_turn(self, turn: int) -> list:
        """Get all events from a specific turn."""
        return [e for e in self.events if e.turn == turn]

    def get_events_for_process(self, pid: int) -> list:
        """Get all events involving one process."""
        return [e for e in self.events if e.process_id == pid]

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.events)
