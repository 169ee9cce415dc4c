"""Thread records and wait queues — the scheduler's bookkeeping.

Two kinds of record make up the donation graph:

    **ThreadRecord**: per-thread scheduling state.  Holds the base
    priority (or ticket count), the ids of the queues the thread owns,
    the id of the one queue it waits on, and the logical time it
    joined that queue.

    **WaitQueue**: one per guarded resource (lock, semaphore, join).
    Holds the current owner and the waiting threads in arrival order.

Records point at each other by integer id only, never by object
reference.  The engine keeps the id → record tables (an arena), so
walking the graph can never trip over a stale back-pointer.

Effective priority is deliberately *not* a field here.  It depends on
the whole donation graph and is always derived by the engine.

Thread lifecycle::

    (unregistered) → IDLE ⇄ WAITING
                       ↓  ↑
                      OWNING
"""

from dataclasses import dataclass, field
from enum import StrEnum


class ThreadState(StrEnum):
    """Where a thread stands with respect to the wait queues.

    - UNREGISTERED: the scheduler has never seen the thread (or it exited).
    - IDLE: registered, neither waiting nor owning anything.
    - WAITING: blocked on exactly one queue.
    - OWNING: holds one or more queues and is not waiting.
    """

    UNREGISTERED = "unregistered"
    IDLE = "idle"
    WAITING = "waiting"
    OWNING = "owning"


@dataclass
class ThreadRecord:
    """Scheduling state for one logical thread.

    Callers treat records as read-only views; only the engine mutates
    them.

    Attributes:
        tid: Stable thread identity.
        base_priority: The value last set through ``set_priority``.
        owned: Ids of queues this thread currently owns.
        waiting_on: Id of the queue this thread is blocked on, if any.
        enqueued_at: Logical clock value at enqueue (tie-break only).

    """

    tid: int
    base_priority: int
    owned: set[int] = field(default_factory=set)
    waiting_on: int | None = None
    enqueued_at: int | None = None

    @property
    def state(self) -> ThreadState:
        """Return the thread's current lifecycle state."""
        if self.waiting_on is not None:
            return ThreadState.WAITING
        if self.owned:
            return ThreadState.OWNING
        return ThreadState.IDLE


@dataclass
class WaitQueue:
    """A wait queue guarding one resource.

    Attributes:
        qid: Stable queue identity within its scheduler.
        transfer_priority: Whether waiters donate to the owner.
        name: Diagnostic label (e.g. ``"lock:console"``).
        owner: Tid of the current owner, if any.
        waiting: Tids of blocked threads, oldest first.

    """

    qid: int
    transfer_priority: bool
    name: str = ""
    owner: int | None = None
    waiting: list[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        """Return the number of waiting threads."""
        return len(self.waiting)

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        label = self.name or f"q{self.qid}"
        donate = "donating" if self.transfer_priority else "plain"
        return f"WaitQueue({label!r}, {donate}, owner={self.owner}, waiting={self.waiting})"
