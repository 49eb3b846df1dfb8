"""
Resource vector helpers for the Deadlock Avoidance Simulator.

A resource vector is a fixed-width numpy int array with one slot per
resource class. All comparisons are componentwise.
"""

import numpy as np
from typing import Iterable

from models.errors import InternalConsistencyViolation


def as_vector(values: Iterable[int]) -> np.ndarray:
    """Copy any int sequence into a fresh 1-D int vector."""
    return np.array(list(values), dtype=int)


def is_integral(values) -> bool:
    """True if values converts to an integer array without truncation."""
    try:
        array = np.asarray(list(values))
    except (TypeError, ValueError):
        return False
    return array.size == 0 or np.issubdtype(array.dtype, np.integer)


def less_equal(a: np.ndarray, b: np.ndarray) -> bool:
    """
    Componentwise a <= b.

    Args:
        a: Left vector
        b: Right vector of the same width

    Returns:
        True if every component of a is <= the matching component of b
    """
    return bool(np.all(a <= b))


def is_zero(vector: np.ndarray) -> bool:
    """True if every component is zero."""
    return not np.any(vector)


def is_valid_request(vector: np.ndarray, width: int) -> bool:
    """A request must have the right width and no negative component."""
    return vector.ndim == 1 and vector.shape[0] == width and bool(np.all(vector >= 0))


def assert_non_negative(vector: np.ndarray, label: str) -> None:
    """
    Raise if any component of vector is negative.

    Raises:
        InternalConsistencyViolation: If a negative component is found
    """
    if np.any(vector < 0):
        raise InternalConsistencyViolation(
            f"Negative resource component in {label}: {vector.tolist()}"
        )


def format_vector(vector: np.ndarray) -> str:
    """Format as (a,b,c) for log lines."""
    return "(" + ",".join(str(int(x)) for x in vector) + ")"
