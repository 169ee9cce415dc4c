"""Tests for priority donation in the wait-queue engine.

Priority inversion is one of the most famous bugs in computing history.
In 1997, NASA's Mars Pathfinder rover kept rebooting because a
low-priority task held a shared resource, a high-priority task blocked
waiting for it, and a medium-priority task -- which didn't need the
resource at all -- kept running instead.

The fix is **donation**: a thread blocked on a queue lends its priority
to the queue's owner.  These tests check that the lent priority shows
up in the owner's effective priority, flows through chains of owners,
and disappears again as soon as ownership moves on.
"""

import pytest

from py_sched.config import PolicyBounds
from py_sched.sched import (
    DonationEngine,
    InternalInvariantViolation,
    MaxPriorityFifo,
    WaitQueue,
    WeightedLottery,
)

# Named constants to satisfy PLR2004
PRIORITY_LOW = 1
PRIORITY_OWNER = 2
PRIORITY_MEDIUM = 5
PRIORITY_HIGH = 10
PRIORITY_C = 3
CHAIN_LENGTH = 5000
WIDE_BOUNDS = PolicyBounds(minimum=0, maximum=20, default=1)


def _engine() -> DonationEngine:
    """Create a strict-priority engine with a 0-20 range."""
    return DonationEngine(policy=MaxPriorityFifo(bounds=WIDE_BOUNDS))


def _with_priority(engine: DonationEngine, tid: int, priority: int) -> int:
    engine.set_base_priority(tid, priority)
    return tid


class TestDirectDonation:
    """Verify donation from waiters straight to the owner."""

    def test_owner_without_waiters_runs_at_base(self) -> None:
        """An owner nobody waits for keeps its base priority."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_OWNER)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        assert engine.effective_priority(owner) == PRIORITY_OWNER

    def test_highest_waiter_is_donated(self) -> None:
        """Waiters at 5, 10 and 3 lift a priority-2 owner to 10."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_OWNER)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        for tid, prio in ((2, PRIORITY_MEDIUM), (3, PRIORITY_HIGH), (4, PRIORITY_C)):
            engine.wait_for_access(queue, _with_priority(engine, tid, prio))
        assert engine.effective_priority(owner) == PRIORITY_HIGH

    def test_lower_waiter_does_not_lower_owner(self) -> None:
        """Donation only ever raises; a weaker waiter changes nothing."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_HIGH)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        engine.wait_for_access(queue, _with_priority(engine, 2, PRIORITY_LOW))
        assert engine.effective_priority(owner) == PRIORITY_HIGH

    def test_non_transfer_queue_never_donates(self) -> None:
        """With transfer_priority=False the owner is not boosted."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_OWNER)
        queue = engine.create_queue(transfer_priority=False)
        engine.acquire(queue, owner)
        engine.wait_for_access(queue, _with_priority(engine, 2, PRIORITY_HIGH))
        assert engine.effective_priority(owner) == PRIORITY_OWNER

    def test_waiter_does_not_receive_from_owner(self) -> None:
        """Donation is one-way: the waiter is not lifted by a stronger owner."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_HIGH)
        waiter = _with_priority(engine, 2, PRIORITY_LOW)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        engine.wait_for_access(queue, waiter)
        assert engine.effective_priority(waiter) == PRIORITY_LOW

    def test_base_priority_unchanged_by_reads(self) -> None:
        """Reading the effective priority never rewrites the base."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_OWNER)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        engine.wait_for_access(queue, _with_priority(engine, 2, PRIORITY_HIGH))
        engine.effective_priority(owner)
        engine.effective_priority(owner)
        record = engine.thread(owner)
        assert record is not None
        assert record.base_priority == PRIORITY_OWNER

    def test_base_change_of_waiter_is_seen_lazily(self) -> None:
        """Raising a waiter's base after it queued still reaches the owner."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_OWNER)
        waiter = _with_priority(engine, 2, PRIORITY_LOW)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        engine.wait_for_access(queue, waiter)
        engine.set_base_priority(waiter, PRIORITY_HIGH)
        assert engine.effective_priority(owner) == PRIORITY_HIGH


class TestDonationRelease:
    """Verify the boost disappears when ownership moves on."""

    def test_release_restores_base(self) -> None:
        """After next_thread promotes a waiter, the old owner is back at base."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_OWNER)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        for tid, prio in ((2, PRIORITY_MEDIUM), (3, PRIORITY_HIGH), (4, PRIORITY_C)):
            engine.wait_for_access(queue, _with_priority(engine, tid, prio))
        assert engine.effective_priority(owner) == PRIORITY_HIGH

        engine.next_thread(queue)
        assert engine.effective_priority(owner) == PRIORITY_OWNER

    def test_release_keeps_boost_from_other_queue(self) -> None:
        """Owning two queues and releasing one keeps the other's donation."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_LOW)
        first = engine.create_queue(transfer_priority=True)
        second = engine.create_queue(transfer_priority=True)
        engine.acquire(first, owner)
        engine.acquire(second, owner)
        engine.wait_for_access(first, _with_priority(engine, 2, PRIORITY_HIGH))
        engine.wait_for_access(second, _with_priority(engine, 3, PRIORITY_MEDIUM))
        assert engine.effective_priority(owner) == PRIORITY_HIGH

        engine.next_thread(first)
        assert engine.effective_priority(owner) == PRIORITY_MEDIUM

    def test_release_on_empty_queue_drops_ownership(self) -> None:
        """next_thread with nobody waiting frees the queue and returns None."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_LOW)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        assert engine.next_thread(queue) is None
        assert queue.owner is None
        record = engine.thread(owner)
        assert record is not None
        assert queue.qid not in record.owned

    def test_new_owner_inherits_remaining_waiters(self) -> None:
        """The promoted thread is boosted by those still waiting."""
        engine = _engine()
        owner = _with_priority(engine, 1, PRIORITY_OWNER)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, owner)
        first = _with_priority(engine, 2, PRIORITY_LOW)
        strong = _with_priority(engine, 3, PRIORITY_HIGH)
        engine.wait_for_access(queue, first)
        engine.wait_for_access(queue, strong)

        promoted = engine.next_thread(queue)
        assert promoted is not None
        assert promoted.tid == strong
        # first (priority 1) still waits but cannot lift a priority-10 owner
        assert engine.effective_priority(strong) == PRIORITY_HIGH
        assert engine.donors(strong) == [first]


class TestTransitiveDonation:
    """Verify donation flows through chains of owners."""

    def test_chain_of_two_queues(self) -> None:
        """A waits on B's queue, B waits on C's: C runs at A's priority."""
        engine = _engine()
        a = _with_priority(engine, 1, PRIORITY_HIGH)
        b = _with_priority(engine, 2, PRIORITY_MEDIUM)
        c = _with_priority(engine, 3, PRIORITY_LOW)
        held_by_b = engine.create_queue(transfer_priority=True)
        held_by_c = engine.create_queue(transfer_priority=True)
        engine.acquire(held_by_b, b)
        engine.acquire(held_by_c, c)

        engine.wait_for_access(held_by_c, b)
        assert engine.effective_priority(c) == PRIORITY_MEDIUM

        engine.wait_for_access(held_by_b, a)
        assert engine.effective_priority(b) == PRIORITY_HIGH
        assert engine.effective_priority(c) == PRIORITY_HIGH

    def test_chain_breaks_at_plain_queue(self) -> None:
        """A non-donating link in the chain stops propagation."""
        engine = _engine()
        a = _with_priority(engine, 1, PRIORITY_HIGH)
        b = _with_priority(engine, 2, PRIORITY_MEDIUM)
        c = _with_priority(engine, 3, PRIORITY_LOW)
        held_by_b = engine.create_queue(transfer_priority=True)
        plain_by_c = engine.create_queue(transfer_priority=False)
        engine.acquire(held_by_b, b)
        engine.acquire(plain_by_c, c)
        engine.wait_for_access(plain_by_c, b)
        engine.wait_for_access(held_by_b, a)

        assert engine.effective_priority(b) == PRIORITY_HIGH
        assert engine.effective_priority(c) == PRIORITY_LOW

    def test_releasing_middle_link_unwinds_chain(self) -> None:
        """Once B is promoted off C's queue, C loses the transitive boost."""
        engine = _engine()
        a = _with_priority(engine, 1, PRIORITY_HIGH)
        b = _with_priority(engine, 2, PRIORITY_MEDIUM)
        c = _with_priority(engine, 3, PRIORITY_LOW)
        held_by_b = engine.create_queue(transfer_priority=True)
        held_by_c = engine.create_queue(transfer_priority=True)
        engine.acquire(held_by_b, b)
        engine.acquire(held_by_c, c)
        engine.wait_for_access(held_by_c, b)
        engine.wait_for_access(held_by_b, a)

        engine.next_thread(held_by_c)
        assert engine.effective_priority(c) == PRIORITY_LOW
        assert engine.effective_priority(b) == PRIORITY_HIGH

    def test_cycle_is_detected(self) -> None:
        """Two owners waiting on each other's queues is a broken invariant."""
        engine = _engine()
        a = _with_priority(engine, 1, PRIORITY_LOW)
        b = _with_priority(engine, 2, PRIORITY_LOW)
        held_by_a = engine.create_queue(transfer_priority=True)
        held_by_b = engine.create_queue(transfer_priority=True)
        engine.acquire(held_by_a, a)
        engine.acquire(held_by_b, b)
        engine.wait_for_access(held_by_b, a)
        engine.wait_for_access(held_by_a, b)

        with pytest.raises(InternalInvariantViolation, match="cycle"):
            engine.effective_priority(a)

    def test_cycle_leaves_queue_untouched_on_next_thread(self) -> None:
        """next_thread fails before mutating anything when it finds a cycle."""
        engine = _engine()
        a = _with_priority(engine, 1, PRIORITY_LOW)
        b = _with_priority(engine, 2, PRIORITY_LOW)
        held_by_a = engine.create_queue(transfer_priority=True)
        held_by_b = engine.create_queue(transfer_priority=True)
        engine.acquire(held_by_a, a)
        engine.acquire(held_by_b, b)
        engine.wait_for_access(held_by_b, a)
        engine.wait_for_access(held_by_a, b)

        with pytest.raises(InternalInvariantViolation):
            engine.next_thread(held_by_a)
        assert held_by_a.owner == a
        assert held_by_a.waiting == [b]


class TestLongChains:
    """Verify donation through chains far longer than the call stack allows."""

    def _chain(self, engine: DonationEngine) -> list[WaitQueue]:
        """Thread i owns queue i and waits on queue i-1; thread 0 waits on nothing."""
        queues = []
        for tid in range(CHAIN_LENGTH):
            queue = engine.create_queue(transfer_priority=True)
            engine.acquire(queue, tid)
            queues.append(queue)
        for tid in range(1, CHAIN_LENGTH):
            engine.wait_for_access(queues[tid - 1], tid)
        return queues

    def test_tail_priority_reaches_head(self) -> None:
        """The last thread's priority is donated all the way to thread 0."""
        engine = _engine()
        self._chain(engine)
        engine.set_base_priority(CHAIN_LENGTH - 1, PRIORITY_HIGH)
        assert engine.effective_priority(0) == PRIORITY_HIGH

    def test_next_thread_through_long_chain(self) -> None:
        """Releasing the head hands its queue to the next link, boost intact."""
        engine = _engine()
        queues = self._chain(engine)
        engine.set_base_priority(CHAIN_LENGTH - 1, PRIORITY_HIGH)
        winner = engine.next_thread(queues[0])
        assert winner is not None
        assert winner.tid == 1
        assert engine.effective_priority(0) == engine.policy.bounds.default
        assert engine.effective_priority(1) == PRIORITY_HIGH

    def test_tickets_sum_along_long_chain(self) -> None:
        """Under the lottery every link adds its ticket to the head."""
        engine = DonationEngine(policy=WeightedLottery())
        self._chain(engine)
        assert engine.effective_priority(0) == CHAIN_LENGTH

    def test_cycle_closing_long_chain_is_detected(self) -> None:
        """A cycle is still reported however many threads it spans."""
        engine = _engine()
        queues = self._chain(engine)
        engine.wait_for_access(queues[CHAIN_LENGTH - 1], 0)
        with pytest.raises(InternalInvariantViolation, match="cycle"):
            engine.effective_priority(0)


class TestTicketDonation:
    """Verify lottery donation adds tickets instead of taking the max."""

    def test_tickets_sum(self) -> None:
        """Owner with 2 tickets and waiters with 5 and 10 holds 17."""
        engine = DonationEngine(policy=WeightedLottery())
        engine.set_base_priority(1, PRIORITY_OWNER)
        engine.set_base_priority(2, PRIORITY_MEDIUM)
        engine.set_base_priority(3, PRIORITY_HIGH)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, 1)
        engine.wait_for_access(queue, 2)
        engine.wait_for_access(queue, 3)
        expected = PRIORITY_OWNER + PRIORITY_MEDIUM + PRIORITY_HIGH
        assert engine.effective_priority(1) == expected

    def test_transitive_tickets_sum(self) -> None:
        """Tickets donated to a waiter are passed on to its owner."""
        engine = DonationEngine(policy=WeightedLottery())
        engine.set_base_priority(1, PRIORITY_LOW)
        engine.set_base_priority(2, PRIORITY_OWNER)
        engine.set_base_priority(3, PRIORITY_MEDIUM)
        held_by_1 = engine.create_queue(transfer_priority=True)
        held_by_2 = engine.create_queue(transfer_priority=True)
        engine.acquire(held_by_1, 1)
        engine.acquire(held_by_2, 2)
        engine.wait_for_access(held_by_1, 2)
        engine.wait_for_access(held_by_2, 3)
        expected = PRIORITY_LOW + PRIORITY_OWNER + PRIORITY_MEDIUM
        assert engine.effective_priority(1) == expected

    def test_tickets_restored_after_release(self) -> None:
        """The old owner is back to its own tickets after next_thread."""
        engine = DonationEngine(policy=WeightedLottery())
        engine.set_base_priority(1, PRIORITY_OWNER)
        engine.set_base_priority(2, PRIORITY_MEDIUM)
        queue = engine.create_queue(transfer_priority=True)
        engine.acquire(queue, 1)
        engine.wait_for_access(queue, 2)
        engine.next_thread(queue)
        assert engine.effective_priority(1) == PRIORITY_OWNER
