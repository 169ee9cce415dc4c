"""Donation engine — wait queues, ownership and effective priority.

Priority inversion happens when a high-priority thread blocks on a
resource held by a low-priority thread, while a medium-priority thread
(which doesn't need the resource) keeps running instead.  The holder
never gets the CPU, never releases, and the high-priority thread
starves.

The fix is **donation**: a thread blocked on a queue lends its
urgency to the queue's owner.  The engine never stores the boosted
value.  It *derives* it whenever asked:

    effective(T) = combine(base(T), [effective(W) for every W waiting
                                     on a donating queue owned by T])

Because a waiter's effective value already includes whatever was
donated to *it*, donation is transitive for free: A waits on a lock
held by B, B waits on a lock held by C, and C runs with A's urgency.

When ownership moves on (``next_thread``), the old owner simply stops
owning the queue.  Its effective value falls back to its base (or to
whatever its other queues still donate) on the next read; there is no
saved "old priority" to restore and nothing that can go stale.

The engine is not thread-safe by itself.  The ``Scheduler`` facade
serialises every call.
"""

from __future__ import annotations

import random
from itertools import count
from typing import TYPE_CHECKING

from py_sched.logging import LogLevel
from py_sched.sched.errors import (
    InternalInvariantViolation,
    InvalidStateError,
    UnknownQueueError,
)
from py_sched.sched.policy import Candidate
from py_sched.sched.records import ThreadRecord, WaitQueue

if TYPE_CHECKING:
    from collections.abc import Iterator

    from py_sched.logging import Logger
    from py_sched.sched.policy import DequeuePolicy

_SOURCE = "sched"


class DonationEngine:
    """Track wait queues and derive effective priorities.

    Threads and queues live in two id-keyed tables.  Queues refer to
    threads by tid and threads refer to queues by qid, so the donation
    graph can be walked (and edited mid-walk) without object cycles.
    """

    def __init__(
        self,
        *,
        policy: DequeuePolicy,
        rng: random.Random | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create an engine with no threads and no queues.

        Args:
            policy: Selection and donation-combine strategy.
            rng: Random source for the lottery; None seeds from OS entropy.
            logger: Optional log buffer for scheduling events.

        """
        self._policy = policy
        self._rng = rng if rng is not None else random.Random()  # noqa: S311
        self._logger = logger
        self._threads: dict[int, ThreadRecord] = {}
        self._queues: dict[int, WaitQueue] = {}
        self._qids = count(start=1)
        # Logical clock for enqueue timestamps; strictly increasing.
        self._clock = count(start=1)

    @property
    def policy(self) -> DequeuePolicy:
        """Return the active dequeue policy."""
        return self._policy

    @property
    def threads(self) -> list[ThreadRecord]:
        """Return every registered thread record."""
        return list(self._threads.values())

    @property
    def queues(self) -> list[WaitQueue]:
        """Return every queue created by this engine."""
        return list(self._queues.values())

    # -- Threads ----------------------------------------------------------

    def thread(self, tid: int) -> ThreadRecord | None:
        """Return the record for *tid*, or None if it is not registered."""
        return self._threads.get(tid)

    def register(self, tid: int) -> ThreadRecord:
        """Return the record for *tid*, creating it on first use."""
        record = self._threads.get(tid)
        if record is None:
            record = ThreadRecord(tid=tid, base_priority=self._policy.bounds.default)
            self._threads[tid] = record
            self._log(LogLevel.DEBUG, f"registered with base {record.base_priority}", tid)
        return record

    def unregister(self, tid: int) -> bool:
        """Forget *tid* (the thread has terminated).

        The thread leaves the queue it is waiting on, and every queue it
        owns is left without an owner.

        Returns:
            True if the thread was registered.

        """
        record = self._threads.pop(tid, None)
        if record is None:
            return False
        if record.waiting_on is not None:
            self._queues[record.waiting_on].waiting.remove(tid)
        for qid in record.owned:
            self._queues[qid].owner = None
        self._log(LogLevel.INFO, "unregistered", tid)
        return True

    def set_base_priority(self, tid: int, value: int) -> bool:
        """Clamp *value* into the policy bounds and store it as the base.

        Returns:
            True if the stored base value changed.

        """
        record = self.register(tid)
        bounds = self._policy.bounds
        clamped = bounds.clamp(value)
        if clamped != value:
            self._log(
                LogLevel.DEBUG,
                f"priority {value} clamped to {clamped} "
                f"(range {bounds.minimum}..{bounds.maximum})",
                tid,
            )
        if clamped == record.base_priority:
            return False
        old = record.base_priority
        record.base_priority = clamped
        self._log(LogLevel.INFO, f"base priority {old} -> {clamped}", tid)
        return True

    # -- Queues -----------------------------------------------------------

    def create_queue(self, *, transfer_priority: bool, name: str | None = None) -> WaitQueue:
        """Create a queue for a newly created resource.

        Args:
            transfer_priority: Whether waiters donate to the owner.
            name: Diagnostic label; defaults to ``q<qid>``.

        """
        qid = next(self._qids)
        queue = WaitQueue(qid=qid, transfer_priority=transfer_priority, name=name or f"q{qid}")
        self._queues[qid] = queue
        return queue

    def queue(self, qid: int) -> WaitQueue:
        """Return the queue with id *qid*.

        Raises:
            UnknownQueueError: If no such queue exists.

        """
        queue = self._queues.get(qid)
        if queue is None:
            msg = f"No queue with id {qid}"
            raise UnknownQueueError(msg)
        return queue

    def wait_for_access(self, queue: WaitQueue, tid: int) -> None:
        """Block *tid* on *queue*.

        Donation to the owner is not computed here; it is picked up the
        next time anyone reads the owner's effective priority.

        Raises:
            InvalidStateError: If the thread is already waiting on a
                queue, or would wait on a donating queue it owns.

        """
        queue = self._own(queue)
        record = self.register(tid)
        if record.waiting_on is not None:
            msg = (
                f"Thread {tid} is already waiting on "
                f"{self._queues[record.waiting_on].name!r}"
            )
            self._log(LogLevel.ERROR, msg, tid)
            raise InvalidStateError(msg)
        if queue.transfer_priority and queue.owner == tid:
            msg = f"Thread {tid} owns {queue.name!r} and cannot wait on it"
            self._log(LogLevel.ERROR, msg, tid)
            raise InvalidStateError(msg)

        record.waiting_on = queue.qid
        record.enqueued_at = next(self._clock)
        queue.waiting.append(tid)
        self._log(LogLevel.DEBUG, f"waits on {queue.name!r} (owner {queue.owner})", tid)

    def acquire(self, queue: WaitQueue, tid: int) -> None:
        """Hand *queue* directly to *tid* (no contention).

        Raises:
            InvalidStateError: If *tid* is waiting on this very queue;
                waiters are promoted through ``next_thread`` only.

        """
        queue = self._own(queue)
        record = self.register(tid)
        if record.waiting_on == queue.qid:
            msg = f"Thread {tid} is waiting on {queue.name!r}; use next_thread to promote it"
            self._log(LogLevel.ERROR, msg, tid)
            raise InvalidStateError(msg)
        if queue.owner is not None and queue.owner != tid:
            self._disown(queue)
        self._grant(queue, record)

    def next_thread(self, queue: WaitQueue) -> ThreadRecord | None:
        """Pass *queue* from its owner to the policy's choice of waiter.

        The previous owner always loses the queue, even when nobody is
        waiting, so its effective priority stops counting these waiters.

        Returns:
            The new owner's record, or None if no waiter was eligible.

        """
        queue = self._own(queue)
        # Everything that can fail happens before the first mutation.
        candidates = self._candidates(queue)
        if queue.owner is not None:
            self._disown(queue)

        winner = self._policy.select(candidates, self._rng)
        if winner is None:
            self._log(LogLevel.DEBUG, f"{queue.name!r} is free with no successor")
            return None

        record = self._threads[winner]
        queue.waiting.remove(winner)
        record.waiting_on = None
        record.enqueued_at = None
        self._grant(queue, record)
        return record

    def pick_next_thread(self, queue: WaitQueue) -> ThreadRecord | None:
        """Return who ``next_thread`` would choose, without changing the queue.

        The lottery policy still consumes one draw from the random
        source, so a peek followed by ``next_thread`` may disagree.
        """
        queue = self._own(queue)
        winner = self._policy.select(self._candidates(queue), self._rng)
        return None if winner is None else self._threads[winner]

    # -- Donation ---------------------------------------------------------

    def effective_priority(self, tid: int) -> int:
        """Return *tid*'s base value combined with everything donated to it.

        Raises:
            InvalidStateError: If *tid* is not registered.
            InternalInvariantViolation: If the donation graph has a cycle.

        """
        record = self._threads.get(tid)
        if record is None:
            msg = f"Thread {tid} is not registered"
            raise InvalidStateError(msg)
        return self._effective(record)

    def donors(self, tid: int) -> list[int]:
        """Return the tids donating directly to *tid*."""
        record = self._threads.get(tid)
        if record is None:
            return []
        return list(self._donor_tids(record))

    def describe(self, queue: WaitQueue) -> str:
        """Return a one-line dump of *queue* with effective values."""
        queue = self._own(queue)
        owner = "none"
        if queue.owner is not None:
            owner = f"{queue.owner} (eff {self.effective_priority(queue.owner)})"
        waiters = ", ".join(
            f"{tid}:{self.effective_priority(tid)}" for tid in queue.waiting
        )
        donate = "donating" if queue.transfer_priority else "plain"
        return f"{queue.name} [{donate}] owner={owner} waiting=[{waiters}]"

    def _effective(self, record: ThreadRecord) -> int:
        # Post-order walk with an explicit stack: each frame holds a thread,
        # its direct donors, and the effective values collected so far.
        # Chains can be as long as the number of live threads.
        visiting = {record.tid}
        stack: list[tuple[ThreadRecord, list[int], list[int]]] = [
            (record, list(self._donor_tids(record)), []),
        ]
        while True:
            current, donors, values = stack[-1]
            if len(values) < len(donors):
                donor = self._threads[donors[len(values)]]
                if donor.tid in visiting:
                    msg = f"Donation cycle through thread {donor.tid}"
                    self._log(LogLevel.ERROR, msg, donor.tid)
                    raise InternalInvariantViolation(msg)
                visiting.add(donor.tid)
                stack.append((donor, list(self._donor_tids(donor)), []))
                continue
            stack.pop()
            # Each thread waits on at most one queue, so a thread can only be
            # reached twice through a genuine cycle, never through a diamond.
            visiting.discard(current.tid)
            value = self._policy.combine(current.base_priority, values)
            if not stack:
                return value
            stack[-1][2].append(value)

    def _donor_tids(self, record: ThreadRecord) -> Iterator[int]:
        for qid in sorted(record.owned):
            queue = self._queues[qid]
            if queue.transfer_priority:
                yield from queue.waiting

    def _candidates(self, queue: WaitQueue) -> list[Candidate]:
        candidates = []
        for tid in queue.waiting:
            record = self._threads[tid]
            enqueued_at = record.enqueued_at if record.enqueued_at is not None else 0
            candidates.append(Candidate(tid, self._effective(record), enqueued_at))
        return candidates

    # -- Ownership --------------------------------------------------------

    def _grant(self, queue: WaitQueue, record: ThreadRecord) -> None:
        queue.owner = record.tid
        record.owned.add(queue.qid)
        self._log(LogLevel.INFO, f"owns {queue.name!r}", record.tid)

    def _disown(self, queue: WaitQueue) -> None:
        previous = queue.owner
        queue.owner = None
        if previous is None:
            return
        record = self._threads.get(previous)
        if record is not None:
            record.owned.discard(queue.qid)
        self._log(LogLevel.INFO, f"releases {queue.name!r}", previous)

    def _own(self, queue: WaitQueue) -> WaitQueue:
        if self._queues.get(queue.qid) is not queue:
            msg = f"Queue {queue.name!r} does not belong to this scheduler"
            raise UnknownQueueError(msg)
        return queue

    def _log(self, level: LogLevel, message: str, tid: int | None = None) -> None:
        if self._logger is not None:
            self._logger.log(level, message, source=_SOURCE, tid=tid)
