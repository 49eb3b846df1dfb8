"""
Error types shared by the models of the Deadlock Avoidance Simulator.
"""


class InternalConsistencyViolation(AssertionError):
    """
    Raised when bookkeeping invariants are broken.

    Never raised under correct protocol use. The simulation must stop
    rather than continue with a ledger it can no longer trust.
    """
    pass
