"""
Banker's safety algorithm for the Deadlock Avoidance Simulator.
"""

import numpy as np
from typing import List, Optional, Tuple

from models.ledger import ResourceLedger


def is_safe_state(
    ledger: ResourceLedger,
    candidate_available: Optional[np.ndarray] = None
) -> Tuple[bool, Optional[List[int]]]:
    """
    Check if a (possibly hypothetical) state is safe using Banker's Algorithm.
    
    Algorithm:
    1. Initialize Work = candidate Available, Finish = False for every
       unfinished process
    2. Scan in pid order for the first process i with Finish[i] == False
       and Need[i] <= Work
    3. If found: Finish[i] = True, Work += Allocation[i], append its pid to
       the sequence, restart the scan from the top
    4. A pass that finds nobody means UNSAFE; all marked means SAFE
    
    Time Complexity: O(P²×R)
    
    Args:
        ledger: Resource ledger (read only)
        candidate_available: Available vector to test; defaults to the
            ledger's live Available
        
    Returns:
        Tuple of (is_safe, safe_sequence if exists else None)
        
    References:
        Silberschatz, A., Galvin, P. B., & Gagne, G. (2018).
        Operating System Concepts (10th ed.). Chapter 7.5: Deadlock Avoidance.
    """
    # Work = copy of Available
    if candidate_available is None:
        work = ledger.available
    else:
        work = np.array(candidate_available, dtype=int)

    # Only consider processes that are not FINISHED; copies of their vectors
    active = ledger.active_processes()
    pids = [p.pid for p in active]
    need = np.array([p.need for p in active], dtype=int).reshape(len(active), ledger.num_resources)
    allocation = np.array([p.allocation for p in active], dtype=int).reshape(len(active), ledger.num_resources)
    finish = np.zeros(len(active), dtype=bool)
    safe_sequence = []

    # One process joins the sequence per pass, so len(active) passes suffice
    for _ in range(len(active)):
        made_progress = False

        for i in range(len(active)):
            if finish[i]:
                continue

            if np.all(need[i] <= work):
                # Process can finish: add its allocation back to work
                work += allocation[i]
                finish[i] = True
                safe_sequence.append(pids[i])
                made_progress = True
                break  # Restart search from beginning for determinism

        if not made_progress:
            break

    if np.all(finish):
        return True, safe_sequence
    return False, None
