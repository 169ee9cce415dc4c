"""Exceptions raised by the scheduling core.

Only precondition violations and broken invariants are errors.  An
empty queue, a lottery with no tickets, or an out-of-range priority
are ordinary outcomes and are reported through return values (or
clamped) instead.
"""

from py_sched.errors import SchedulerError


class InvalidStateError(SchedulerError):
    """Raised when an operation's precondition on thread state does not hold.

    Example: a thread calling ``wait_for_access`` while it is already
    blocked on another queue.
    """


class InternalInvariantViolation(SchedulerError):
    """Raised when the donation graph is found to contain a cycle."""


class UnknownQueueError(SchedulerError):
    """Raised when a queue handle does not belong to this scheduler."""
