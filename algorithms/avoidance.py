"""
Request Processor (Banker's resource-request algorithm) for the Simulator.

Decides every resource request: validate, speculatively commit, run the
safety check, then keep the commit or roll it back exactly.
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

from algorithms.safety import is_safe_state
from models.ledger import ResourceLedger
from models.process import Process
from models.queues import QueueManager
from models.vector import as_vector, format_vector, is_integral, is_valid_request, less_equal


class RequestOutcome(Enum):
    """Possible answers to a resource request."""
    GRANTED = "granted"
    DENIED_OVER_NEED = "denied_over_need"
    DENIED_UNAVAILABLE = "denied_unavailable"
    DENIED_UNSAFE = "denied_unsafe"


@dataclass
class RequestResult:
    """
    Answer to a single request.

    Attributes:
        outcome: Decision taken
        request: The requested vector
        reason: Human-readable explanation
        safe_sequence: Safety witness when the check succeeded
    """
    outcome: RequestOutcome
    request: np.ndarray
    reason: str
    safe_sequence: Optional[List[int]] = None

    @property
    def granted(self) -> bool:
        return self.outcome == RequestOutcome.GRANTED


def handle_request(
    process: Process,
    request: Union[np.ndarray, Sequence[int]],
    ledger: ResourceLedger,
    queues: QueueManager
) -> RequestResult:
    """
    Handle resource request using Banker's Algorithm.

    Steps:
    1. Validate: request <= need (otherwise DENIED_OVER_NEED, nothing changes)
    2. Check: request <= available (if not, process enters BLOCKED)
    3. Tentatively allocate resources
    4. Run safety algorithm on new state
    5. If safe: keep the allocation
       If unsafe: rollback exactly, process enters BLOCKED

    The call is atomic for the caller: the ledger is either fully
    committed or back to its pre-call values when it returns.

    Args:
        process: Process making the request
        request: Requested amount per resource class
        ledger: Resource ledger
        queues: Queue manager (receives the process on BLOCKED)

    Returns:
        RequestResult describing the decision
    """
    # Fractional or non-numeric components make the request malformed
    if not is_integral(request):
        raw = np.asarray(request, dtype=object)
        return RequestResult(
            RequestOutcome.DENIED_OVER_NEED,
            raw,
            f"Request {raw.tolist()} is not a vector of whole instances",
        )
    request = as_vector(request)

    # Step 1: Validate request against the remaining claim
    if not is_valid_request(request, ledger.num_resources) or not less_equal(request, process.need):
        return RequestResult(
            RequestOutcome.DENIED_OVER_NEED,
            request,
            f"Request {format_vector(request)} exceeds need {format_vector(process.need)}",
        )

    # Step 2: Check if resources are available
    available = ledger.available
    if not less_equal(request, available):
        queues.block(process)
        return RequestResult(
            RequestOutcome.DENIED_UNAVAILABLE,
            request,
            f"Insufficient resources (requested: {format_vector(request)}, "
            f"available: {format_vector(available)}) - Process enters BLOCKED",
        )

    # Step 3: Tentatively allocate resources
    ledger.tentatively_allocate(process, request)

    # Step 4: Run safety algorithm on the new Available
    is_safe, safe_seq = is_safe_state(ledger, ledger.available)

    # Step 5: Decide whether to commit or rollback
    if is_safe:
        seq_str = " -> ".join(f"P{pid}" for pid in safe_seq)
        return RequestResult(
            RequestOutcome.GRANTED,
            request,
            f"Safe state maintained, sequence: {seq_str}",
            safe_sequence=safe_seq,
        )

    # UNSAFE: reverse step 3 exactly
    ledger.rollback_allocation(process, request)
    queues.block(process)
    return RequestResult(
        RequestOutcome.DENIED_UNSAFE,
        request,
        "Unsafe state detected - allocation rolled back, Process enters BLOCKED",
    )
