"""
Resource model for the Deadlock Avoidance Simulator.

Represents one resource class with a fixed number of reusable instances.
"""

from dataclasses import dataclass
from numbers import Integral


@dataclass(frozen=True)
class Resource:
    """
    Represents a resource class in the simulation.
    
    Attributes:
        type_id: Resource class index (position in every resource vector)
        total_instances: Total number of instances in the system (fixed)
        name: Display name, defaults to A, B, C, ...
        
    Invariant:
        total_instances >= 0
    """
    type_id: int
    total_instances: int
    name: str = ""

    def __post_init__(self):
        """Validate and fill in the display name."""
        for label, value in (("type_id", self.type_id), ("total_instances", self.total_instances)):
            if isinstance(value, bool) or not isinstance(value, Integral):
                raise ValueError(f"Resource {label} must be an integer, got {value!r}")
        if self.type_id < 0:
            raise ValueError(f"Resource type_id cannot be negative: {self.type_id}")
        if self.total_instances < 0:
            raise ValueError(f"Resource {self.type_id}: total_instances cannot be negative")
        if not self.name:
            # frozen dataclass: assign through object.__setattr__
            object.__setattr__(self, "name", default_resource_name(self.type_id))


def default_resource_name(type_id: int) -> str:
    """A, B, ..., Z, then R26, R27, ..."""
    if type_id < 26:
        return chr(ord("A") + type_id)
    return f"R{type_id}"
