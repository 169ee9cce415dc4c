"""Synchronization primitives built on scheduler wait queues.

Each primitive owns one wait queue and lets the scheduler pick who is
woken next, so the choice always respects priority (or tickets) and
donation:

    **Lock**: only one thread holds it at a time.  Its queue donates,
    so a low-priority holder is boosted by whoever is stuck behind it.

    **Semaphore**: up to *N* concurrent holders.  Nobody "owns" a
    semaphore, so its queue does not donate.

    **Condition**: threads sleep until another thread wakes them.
    Always paired with a Lock, which is released on sleep.

    **JoinPoint**: threads wait for another thread to finish.  The
    target owns the queue, so joiners donate to it and a low-priority
    thread being joined by a high-priority one finishes sooner.

None of these ever block.  A call that cannot proceed records the
thread as waiting and returns False; the caller then yields, and is
resumed when a later ``release``/``v``/``wake``/``finish`` returns
its tid.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from py_sched.logging import LogLevel
from py_sched.sched.errors import InvalidStateError

if TYPE_CHECKING:
    from py_sched.sched.records import WaitQueue
    from py_sched.sched.scheduler import Scheduler

_SOURCE = "sync"


def state_error(scheduler: Scheduler, msg: str, tid: int) -> InvalidStateError:
    """Record *msg* at ERROR in the scheduler log and return the error to raise."""
    scheduler.logger.log(LogLevel.ERROR, msg, source=_SOURCE, tid=tid)
    return InvalidStateError(msg)


class Lock:
    """Mutual exclusion lock with priority donation.

    When the holder releases, ownership passes straight to the waiter
    the scheduler selects, and ``release`` returns that waiter's tid so
    the caller can make it runnable.
    """

    def __init__(self, scheduler: Scheduler, *, name: str) -> None:
        """Create an unlocked lock with the given name."""
        self._scheduler = scheduler
        self._name = name
        self._queue = scheduler.create_queue(transfer_priority=True, name=f"lock:{name}")
        self._holder: int | None = None

    @property
    def name(self) -> str:
        """Return the lock name."""
        return self._name

    @property
    def queue(self) -> WaitQueue:
        """Return the lock's wait queue."""
        return self._queue

    @property
    def holder(self) -> int | None:
        """Return the tid of the current holder, or None."""
        return self._holder

    @property
    def is_locked(self) -> bool:
        """Return whether the lock is currently held."""
        return self._holder is not None

    def is_held_by(self, tid: int) -> bool:
        """Return True if *tid* holds the lock."""
        return self._holder == tid

    def acquire(self, tid: int) -> bool:
        """Take the lock, or queue behind the holder.

        Returns:
            True if acquired, False if the caller is now waiting.

        Raises:
            InvalidStateError: If *tid* already holds the lock.

        """
        with self._scheduler.atomic():
            if self._holder == tid:
                msg = f"Thread {tid} already holds lock '{self._name}'"
                raise state_error(self._scheduler, msg, tid)
            if self._holder is None:
                self._scheduler.acquire(self._queue, tid)
                self._holder = tid
                return True
            self._scheduler.wait_for_access(self._queue, tid)
            return False

    def release(self, tid: int) -> int | None:
        """Release the lock and hand it to the next waiter.

        Returns:
            The tid of the new holder, or None if nobody was waiting.

        Raises:
            InvalidStateError: If *tid* does not hold the lock.

        """
        with self._scheduler.atomic():
            if self._holder != tid:
                msg = f"Thread {tid} is not the holder of lock '{self._name}'"
                raise state_error(self._scheduler, msg, tid)
            self._holder = self._scheduler.next_thread(self._queue)
            return self._holder

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        state = f"held by {self._holder}" if self._holder is not None else "free"
        return f"Lock('{self._name}', {state})"


class Semaphore:
    """Counting semaphore whose waiters are woken in scheduler order."""

    def __init__(self, scheduler: Scheduler, *, name: str, count: int) -> None:
        """Create a semaphore with the given initial count.

        Raises:
            ValueError: If count is negative.

        """
        if count < 0:
            msg = f"Semaphore count must be non-negative, got {count}"
            raise ValueError(msg)
        self._scheduler = scheduler
        self._name = name
        self._count = count
        self._queue = scheduler.create_queue(transfer_priority=False, name=f"sem:{name}")

    @property
    def name(self) -> str:
        """Return the semaphore name."""
        return self._name

    @property
    def count(self) -> int:
        """Return the current available count."""
        return self._count

    @property
    def queue(self) -> WaitQueue:
        """Return the semaphore's wait queue."""
        return self._queue

    def p(self, tid: int) -> bool:
        """Decrement, or wait if the count is zero.

        Returns:
            True if the caller may proceed, False if it is now waiting.

        """
        with self._scheduler.atomic():
            if self._count > 0:
                self._count -= 1
                return True
            self._scheduler.wait_for_access(self._queue, tid)
            return False

    def v(self) -> int | None:
        """Wake one waiter, or increment the count if nobody waits.

        Returns:
            The tid of the woken thread, or None.

        """
        with self._scheduler.atomic():
            woken = self._scheduler.next_thread(self._queue)
            if woken is None:
                self._count += 1
            return woken

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"Semaphore('{self._name}', count={self._count})"


class Condition:
    """Condition variable bound to a Lock.

    ``sleep`` releases the lock and queues the caller; ``wake`` picks one
    sleeper.  A woken thread must re-acquire the lock itself before it
    continues, exactly as with a Mesa-style monitor.
    """

    def __init__(self, scheduler: Scheduler, *, lock: Lock, name: str) -> None:
        """Create a condition variable associated with *lock*."""
        self._scheduler = scheduler
        self._lock = lock
        self._name = name
        self._queue = scheduler.create_queue(transfer_priority=False, name=f"cond:{name}")

    @property
    def name(self) -> str:
        """Return the condition name."""
        return self._name

    @property
    def lock(self) -> Lock:
        """Return the associated lock."""
        return self._lock

    @property
    def sleeper_count(self) -> int:
        """Return the number of sleeping threads."""
        return self._queue.size

    def sleep(self, tid: int) -> int | None:
        """Release the lock and sleep until woken.

        Returns:
            The tid that now holds the lock (or None if it became free).

        Raises:
            InvalidStateError: If *tid* does not hold the lock.

        """
        with self._scheduler.atomic():
            if not self._lock.is_held_by(tid):
                msg = f"Thread {tid} must hold lock '{self._lock.name}' to sleep on '{self._name}'"
                raise state_error(self._scheduler, msg, tid)
            successor = self._lock.release(tid)
            self._scheduler.wait_for_access(self._queue, tid)
            return successor

    def wake(self) -> int | None:
        """Wake one sleeper, chosen by the scheduler.

        Returns:
            The tid of the woken thread, or None if nobody slept.

        """
        with self._scheduler.atomic():
            return self._scheduler.next_thread(self._queue)

    def wake_all(self) -> list[int]:
        """Wake every sleeper, in scheduler order."""
        woken: list[int] = []
        with self._scheduler.atomic():
            while True:
                tid = self._scheduler.next_thread(self._queue)
                if tid is None:
                    return woken
                woken.append(tid)

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        n = self._queue.size
        word = "sleeper" if n == 1 else "sleepers"
        return f"Condition('{self._name}', {n} {word})"


class JoinPoint:
    """Wait for a thread to finish, donating to it meanwhile."""

    def __init__(self, scheduler: Scheduler, *, target: int) -> None:
        """Create the join point for *target*; the target owns its queue."""
        self._scheduler = scheduler
        self._target = target
        self._finished = False
        self._queue = scheduler.create_queue(transfer_priority=True, name=f"join:{target}")
        scheduler.acquire(self._queue, target)

    @property
    def target(self) -> int:
        """Return the tid being joined."""
        return self._target

    @property
    def finished(self) -> bool:
        """Return whether the target has finished."""
        return self._finished

    def join(self, tid: int) -> bool:
        """Wait for the target to finish.

        Returns:
            True if the caller is now waiting, False if the target had
            already finished (the caller continues immediately).

        Raises:
            InvalidStateError: If a thread tries to join itself.

        """
        with self._scheduler.atomic():
            if tid == self._target:
                msg = f"Thread {tid} cannot join itself"
                raise state_error(self._scheduler, msg, tid)
            if self._finished:
                return False
            self._scheduler.wait_for_access(self._queue, tid)
            return True

    def finish(self) -> list[int]:
        """Mark the target finished and wake every joiner.

        Returns:
            Tids of the woken joiners, in scheduler order.

        """
        woken: list[int] = []
        with self._scheduler.atomic():
            self._finished = True
            while True:
                tid = self._scheduler.next_thread(self._queue)
                if tid is None:
                    return woken
                woken.append(tid)

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        state = "finished" if self._finished else f"{self._queue.size} joiners"
        return f"JoinPoint(target={self._target}, {state})"
