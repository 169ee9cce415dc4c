"""Scheduler facade — the only entry point for lock and join code.

Resource implementations (locks, semaphores, joins) talk to the
scheduler through nine calls::

    create_queue(transfer_priority)   when the resource is created
    wait_for_access(queue, tid)       when a thread must block
    acquire(queue, tid)               when a free resource is taken
    next_thread(queue)                when the holder lets go
    set_priority / get_priority / get_effective_priority
    increase_priority / decrease_priority

The facade adds three things on top of the ``DonationEngine``:

- **Mutual exclusion.**  A real kernel disables interrupts around each
  of these calls so that only one context edits scheduler state at a
  time.  Here every call takes the same re-entrant lock.  No call ever
  blocks on anything else: a thread that has to wait is *recorded* as
  waiting, and the caller performs the actual yield afterwards.
- **Lazy registration.**  The first time a tid is mentioned, it gets a
  record with the policy's default priority.
- **Configuration.**  The policy, its bounds and the random seed come
  from a ``SchedulerConfig``.
"""

from __future__ import annotations

import random
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from py_sched.config import PolicyBounds, SchedulerConfig
from py_sched.logging import DEFAULT_CAPACITY, Logger
from py_sched.sched.engine import DonationEngine
from py_sched.sched.policy import DequeuePolicy, policy_for
from py_sched.sched.records import ThreadRecord, ThreadState, WaitQueue

if TYPE_CHECKING:
    from collections.abc import Iterator


class Scheduler:
    """Priority-donating scheduler for wait-queue guarded resources.

    Exactly one dequeue policy is active per scheduler, chosen at
    construction time.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        *,
        policy: DequeuePolicy | None = None,
        rng: random.Random | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create a scheduler.

        Args:
            config: Policy name, seed and bounds; defaults to strict priority.
            policy: An explicit policy object, overriding ``config.policy``.
            rng: An explicit random source, overriding ``config.seed``.
            logger: Log buffer to write to; if None, a ring buffer of
                ``DEFAULT_CAPACITY`` entries is created.

        """
        self._config = config if config is not None else SchedulerConfig()
        if policy is None:
            policy = policy_for(self._config.policy, bounds=self._config.bounds)
        if rng is None:
            # Random(None) seeds itself from os.urandom.
            rng = random.Random(self._config.seed)  # noqa: S311
        self._logger = logger if logger is not None else Logger(capacity=DEFAULT_CAPACITY)
        self._engine = DonationEngine(policy=policy, rng=rng, logger=self._logger)
        self._lock = threading.RLock()

    @property
    def config(self) -> SchedulerConfig:
        """Return the configuration this scheduler was built from."""
        return self._config

    @property
    def policy(self) -> DequeuePolicy:
        """Return the active dequeue policy."""
        return self._engine.policy

    @property
    def bounds(self) -> PolicyBounds:
        """Return the active policy's priority bounds."""
        return self._engine.policy.bounds

    @property
    def logger(self) -> Logger:
        """Return the scheduler's log buffer."""
        return self._logger

    @property
    def thread_count(self) -> int:
        """Return the number of registered threads."""
        with self._lock:
            return len(self._engine.threads)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Hold the scheduler lock across several calls.

        Resource implementations use this to make a check-then-act
        sequence (is the lock free? then acquire, else wait) atomic.
        """
        with self._lock:
            yield

    # -- Threads ----------------------------------------------------------

    def register_thread(self, tid: int) -> ThreadRecord:
        """Return *tid*'s record, creating it with the default priority."""
        with self._lock:
            return self._engine.register(tid)

    def unregister_thread(self, tid: int) -> bool:
        """Discard *tid*'s record when the thread terminates.

        Returns:
            True if the thread was registered.

        """
        with self._lock:
            return self._engine.unregister(tid)

    def thread_state(self, tid: int) -> ThreadState:
        """Return *tid*'s lifecycle state (UNREGISTERED if never seen)."""
        with self._lock:
            record = self._engine.thread(tid)
            return ThreadState.UNREGISTERED if record is None else record.state

    def set_priority(self, tid: int, value: int) -> None:
        """Set *tid*'s base priority, clamped into the policy bounds."""
        with self._lock:
            self._engine.set_base_priority(tid, value)

    def get_priority(self, tid: int) -> int:
        """Return *tid*'s base priority."""
        with self._lock:
            return self._engine.register(tid).base_priority

    def get_effective_priority(self, tid: int) -> int:
        """Return *tid*'s priority including donations."""
        with self._lock:
            self._engine.register(tid)
            return self._engine.effective_priority(tid)

    def increase_priority(self, tid: int) -> bool:
        """Raise *tid*'s base priority by one.

        Returns:
            False (and change nothing) if already at the maximum.

        """
        with self._lock:
            current = self._engine.register(tid).base_priority
            if current >= self.bounds.maximum:
                return False
            return self._engine.set_base_priority(tid, current + 1)

    def decrease_priority(self, tid: int) -> bool:
        """Lower *tid*'s base priority by one.

        Returns:
            False (and change nothing) if already at the minimum.

        """
        with self._lock:
            current = self._engine.register(tid).base_priority
            if current <= self.bounds.minimum:
                return False
            return self._engine.set_base_priority(tid, current - 1)

    def donors(self, tid: int) -> list[int]:
        """Return the tids donating directly to *tid*."""
        with self._lock:
            return self._engine.donors(tid)

    # -- Queues -----------------------------------------------------------

    def create_queue(self, *, transfer_priority: bool, name: str | None = None) -> WaitQueue:
        """Create the wait queue for a new resource.

        Args:
            transfer_priority: Whether waiters donate to the owner.
            name: Diagnostic label.

        """
        with self._lock:
            return self._engine.create_queue(transfer_priority=transfer_priority, name=name)

    def queue(self, qid: int) -> WaitQueue:
        """Return the queue with id *qid*."""
        with self._lock:
            return self._engine.queue(qid)

    def wait_for_access(self, queue: WaitQueue, tid: int) -> None:
        """Record that *tid* is blocked on *queue*.

        The caller is responsible for actually suspending the thread
        once this returns.
        """
        with self._lock:
            self._engine.wait_for_access(queue, tid)

    def acquire(self, queue: WaitQueue, tid: int) -> None:
        """Give *queue* to *tid* directly (the resource was free)."""
        with self._lock:
            self._engine.acquire(queue, tid)

    def next_thread(self, queue: WaitQueue) -> int | None:
        """Hand *queue* to the next waiter and return its tid.

        Returns:
            The new owner's tid, or None if nobody was waiting.

        """
        with self._lock:
            record = self._engine.next_thread(queue)
            return None if record is None else record.tid

    def pick_next_thread(self, queue: WaitQueue) -> int | None:
        """Return the tid ``next_thread`` would choose, leaving the queue as is."""
        with self._lock:
            record = self._engine.pick_next_thread(queue)
            return None if record is None else record.tid

    def describe(self, queue: WaitQueue) -> str:
        """Return a one-line dump of *queue* for debugging."""
        with self._lock:
            return self._engine.describe(queue)

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"Scheduler({self.policy!r}, threads={self.thread_count})"
