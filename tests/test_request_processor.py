"""
Request Processor Tests

Validates the Banker's request algorithm: over-need rejection, blocking on
unavailable resources, speculative commit and exact rollback.
"""

import sys
from pathlib import Path

import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.avoidance import RequestOutcome, handle_request
from models.ledger import ResourceLedger
from models.process import Process, ProcessState
from models.queues import QueueManager
from models.resource import Resource


def _setup(resources, processes):
    ledger = ResourceLedger(resources, processes)
    queues = QueueManager(ledger.processes)
    return ledger, queues


def _textbook():
    resources = [
        Resource(type_id=0, total_instances=10),
        Resource(type_id=1, total_instances=5),
        Resource(type_id=2, total_instances=7),
    ]
    processes = [
        Process.create(0, [7, 5, 3], [0, 1, 0]),
        Process.create(1, [3, 2, 2], [2, 0, 0]),
        Process.create(2, [9, 0, 2], [3, 0, 2]),
        Process.create(3, [2, 2, 2], [2, 1, 1]),
        Process.create(4, [4, 3, 3], [0, 0, 2]),
    ]
    return _setup(resources, processes)


def test_scenario_a_sole_process_full_request():
    """One class of 10, one process asking for all of it at once."""
    print("\n" + "="*60)
    print("TEST 1: Sole Process Requests Everything")
    print("="*60)

    p1 = Process.create(1, [10])
    ledger, queues = _setup([Resource(type_id=0, total_instances=10)], [p1])

    result = handle_request(p1, [10], ledger, queues)
    print(f"  {result.outcome.value}: {result.reason}")

    assert result.granted
    assert result.safe_sequence == [1]
    assert ledger.available.tolist() == [0]
    assert p1.allocation.tolist() == [10]
    assert p1.need.tolist() == [0]
    ledger.assert_consistency("after full grant")


def test_scenario_d_over_need_has_no_side_effects():
    """Request above need is refused and nothing changes, not even the queues."""
    print("\n" + "="*60)
    print("TEST 2: Request Exceeds Need")
    print("="*60)

    p1 = Process.create(1, [1, 0, 0])
    ledger, queues = _setup(
        [Resource(type_id=i, total_instances=5) for i in range(3)], [p1]
    )
    before = ledger.snapshot()

    result = handle_request(p1, [2, 0, 0], ledger, queues)
    print(f"  {result.outcome.value}: {result.reason}")

    assert result.outcome == RequestOutcome.DENIED_OVER_NEED
    assert ledger.snapshot() == before
    assert p1.state == ProcessState.READY
    assert queues.ready.pids() == [1]
    assert queues.blocked.is_empty()


def test_malformed_requests_rejected_like_over_need():
    p1 = Process.create(1, [3, 3])
    ledger, queues = _setup([Resource(type_id=0, total_instances=5), Resource(type_id=1, total_instances=5)], [p1])
    before = ledger.snapshot()

    assert handle_request(p1, [1], ledger, queues).outcome == RequestOutcome.DENIED_OVER_NEED
    assert handle_request(p1, [-1, 1], ledger, queues).outcome == RequestOutcome.DENIED_OVER_NEED
    assert ledger.snapshot() == before
    assert queues.blocked.is_empty()


def test_fractional_request_not_truncated():
    """Half an instance is refused outright, never rounded down to a zero request."""
    p1 = Process.create(1, [3])
    ledger, queues = _setup([Resource(type_id=0, total_instances=5)], [p1])
    before = ledger.snapshot()

    result = handle_request(p1, [0.5], ledger, queues)
    assert result.outcome == RequestOutcome.DENIED_OVER_NEED
    assert "whole instances" in result.reason
    assert handle_request(p1, [2.7], ledger, queues).outcome == RequestOutcome.DENIED_OVER_NEED
    assert handle_request(p1, ["1"], ledger, queues).outcome == RequestOutcome.DENIED_OVER_NEED
    assert ledger.snapshot() == before
    assert p1.state == ProcessState.READY
    assert queues.blocked.is_empty()


def test_textbook_safe_request_granted():
    """P1 asks for (1,0,2): still safe, granted with witness P1 P3 P0 P2 P4."""
    ledger, queues = _textbook()
    p1 = ledger.get_process(1)

    result = handle_request(p1, np.array([1, 0, 2]), ledger, queues)

    assert result.outcome == RequestOutcome.GRANTED
    assert result.safe_sequence == [1, 3, 0, 2, 4]
    assert ledger.available.tolist() == [2, 3, 0]
    assert p1.allocation.tolist() == [3, 0, 2]
    assert p1.need.tolist() == [0, 2, 0]
    ledger.assert_consistency("after textbook grant")


def test_unavailable_request_blocks_without_mutation():
    """After P1's grant, P4's (3,3,0) exceeds Available (2,3,0)."""
    print("\n" + "="*60)
    print("TEST 3: Insufficient Resources")
    print("="*60)

    ledger, queues = _textbook()
    handle_request(ledger.get_process(1), [1, 0, 2], ledger, queues)
    p4 = ledger.get_process(4)
    queues.ready.drain()
    queues.make_ready(p4)
    assert queues.dispatch() is p4
    before = ledger.snapshot()

    result = handle_request(p4, [3, 3, 0], ledger, queues)
    print(f"  {result.outcome.value}: {result.reason}")

    assert result.outcome == RequestOutcome.DENIED_UNAVAILABLE
    after = ledger.snapshot()
    assert after['available'] == before['available']
    assert after['processes'][4]['allocation'] == before['processes'][4]['allocation']
    assert after['processes'][4]['need'] == before['processes'][4]['need']
    assert p4.state == ProcessState.BLOCKED
    assert queues.blocked.pids() == [4]
    assert queues.running is None


def test_unsafe_request_rolled_back_exactly():
    """After P1's grant, P0's (0,2,0) fits Available but leaves no safe order."""
    print("\n" + "="*60)
    print("TEST 4: Unsafe Request Rollback")
    print("="*60)

    ledger, queues = _textbook()
    handle_request(ledger.get_process(1), [1, 0, 2], ledger, queues)
    p0 = ledger.get_process(0)
    before = ledger.snapshot()

    result = handle_request(p0, [0, 2, 0], ledger, queues)
    print(f"  {result.outcome.value}: {result.reason}")

    assert result.outcome == RequestOutcome.DENIED_UNSAFE
    assert result.safe_sequence is None
    after = ledger.snapshot()
    assert after['available'] == before['available']
    assert after['processes'][0]['allocation'] == before['processes'][0]['allocation']
    assert after['processes'][0]['need'] == before['processes'][0]['need']
    assert p0.state == ProcessState.BLOCKED
    assert 0 in queues.blocked.pids()
    ledger.assert_consistency("after rollback")
    print("  ✓ Available, allocation and need restored exactly")


def test_zero_request_in_unsafe_state_is_denied():
    """An empty request still runs the safety check on the current state."""
    p1 = Process.create(1, [4], [2])
    p2 = Process.create(2, [4], [2])
    ledger, queues = _setup([Resource(type_id=0, total_instances=4)], [p1, p2])
    queues.ready.drain()

    result = handle_request(p1, [0], ledger, queues)
    assert result.outcome == RequestOutcome.DENIED_UNSAFE
    assert queues.blocked.pids() == [1]


def test_zero_request_in_safe_state_is_granted():
    p1 = Process.create(1, [7], [5])
    p2 = Process.create(2, [5], [5])
    ledger, queues = _setup([Resource(type_id=0, total_instances=10)], [p1, p2])

    result = handle_request(p1, [0], ledger, queues)
    assert result.granted
    assert result.safe_sequence == [2, 1]
    assert ledger.available.tolist() == [0]


def test_scenario_c_every_request_blocks():
    """Nothing is free: any request from either process ends in Blocked."""
    p1 = Process.create(1, [4], [2])
    p2 = Process.create(2, [4], [2])
    ledger, queues = _setup([Resource(type_id=0, total_instances=4)], [p1, p2])

    for process, request in ((p1, [2]), (p2, [1])):
        queues.dispatch()
        result = handle_request(process, request, ledger, queues)
        assert result.outcome == RequestOutcome.DENIED_UNAVAILABLE
        assert process.state == ProcessState.BLOCKED

    assert queues.blocked.pids() == [1, 2]
    assert queues.ready.is_empty()
    assert ledger.available.tolist() == [0]
    queues.assert_membership(ledger.processes)


def main():
    """Run all request processor tests."""
    test_scenario_a_sole_process_full_request()
    test_scenario_d_over_need_has_no_side_effects()
    test_malformed_requests_rejected_like_over_need()
    test_fractional_request_not_truncated()
    test_textbook_safe_request_granted()
    test_unavailable_request_blocks_without_mutation()
    test_unsafe_request_rolled_back_exactly()
    test_zero_request_in_unsafe_state_is_denied()
    test_zero_request_in_safe_state_is_granted()
    test_scenario_c_every_request_blocks()
    print("\n✅ Request Processor Tests PASSED")
    return 0


if __name__ == '__main__':
    sys.exit(main())
