"""Dequeue policies — who gets the resource next.

The engine owns the wait queues and the donation graph; the policy
owns two small decisions:

- **combine**: how donated values fold into a thread's base value.
- **select**: which waiting thread wins, given everyone's effective value.

Two policies ship:

- **MaxPriorityFifo**: strict priority.  The highest effective priority
  wins; among equals, the thread that has waited longest wins, which
  gives round-robin behaviour between equal-priority threads.  Donation
  takes the *maximum*: a holder runs as urgently as its most urgent
  waiter.
- **WeightedLottery**: every thread holds tickets; a random ticket is
  drawn and its holder wins.  A thread with twice the tickets wins
  twice as often.  Donation *adds*: each extra waiter makes finishing
  the critical section more urgent.

Design: Strategy pattern
    The engine is the *context*; DequeuePolicy is the *strategy*.  The
    per-policy bounds travel with the policy object, so the engine
    never needs to know which variant it is running.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple, Protocol

from py_sched.config import (
    LOTTERY_BOUNDS,
    POLICY_LOTTERY,
    POLICY_NAMES,
    POLICY_PRIORITY,
    PRIORITY_BOUNDS,
    PolicyBounds,
)
from py_sched.errors import ConfigError

if TYPE_CHECKING:
    import random
    from collections.abc import Iterable, Sequence


class Candidate(NamedTuple):
    """A waiting thread as seen by a policy at selection time."""

    tid: int
    effective: int
    enqueued_at: int


class DequeuePolicy(Protocol):
    """Interface that every dequeue policy must satisfy."""

    name: str

    @property
    def bounds(self) -> PolicyBounds:
        """Return the allowed range and default for base values."""
        ...  # pragma: no cover

    def combine(self, base: int, donations: Iterable[int]) -> int:
        """Fold donated effective values into *base*."""
        ...  # pragma: no cover

    def select(self, candidates: Sequence[Candidate], rng: random.Random) -> int | None:
        """Return the tid of the winner, or None if nobody is eligible."""
        ...  # pragma: no cover


class MaxPriorityFifo:
    """Strict priority with a longest-waiting tie-break.

    Higher values are more important.  The scan keeps the first
    candidate seen among equals only if it also has the smaller
    enqueue time, so insertion order never matters, only arrival time.
    """

    name = POLICY_PRIORITY

    def __init__(self, *, bounds: PolicyBounds = PRIORITY_BOUNDS) -> None:
        """Create a strict-priority policy with the given bounds."""
        self._bounds = bounds

    @property
    def bounds(self) -> PolicyBounds:
        """Return the priority range (stock: 0-7, default 1)."""
        return self._bounds

    def combine(self, base: int, donations: Iterable[int]) -> int:
        """Return the larger of *base* and every donation."""
        return max(base, max(donations, default=base))

    def select(self, candidates: Sequence[Candidate], rng: random.Random) -> int | None:  # noqa: ARG002
        """Return the highest-priority, longest-waiting candidate."""
        if not candidates:
            return None
        best = candidates[0]
        for cand in candidates[1:]:
            if cand.effective > best.effective or (
                cand.effective == best.effective and cand.enqueued_at < best.enqueued_at
            ):
                best = cand
        return best.tid

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"MaxPriorityFifo({self._bounds.minimum}..{self._bounds.maximum})"


class WeightedLottery:
    """Ticket-weighted random selection.

    Lay every candidate's tickets end to end on a number line starting
    at 1, so candidate *i* owns the half-open interval
    ``[lo_i, lo_i + tickets_i)``.  Draw one number ``r`` in
    ``[1, total]`` and hand the resource to whoever owns ``r``.

    Only the running lower bound is tracked, never individual tickets,
    so a thread holding a billion tickets costs the same as one holding
    a single ticket.  The walk order is the queue's arrival order, which
    makes the winner exactly reproducible for a seeded random source.
    """

    name = POLICY_LOTTERY

    def __init__(self, *, bounds: PolicyBounds = LOTTERY_BOUNDS) -> None:
        """Create a lottery policy with the given ticket bounds.

        Raises:
            ConfigError: If the bounds would allow fewer than one ticket.

        """
        if bounds.minimum < 1:
            msg = f"Lottery ticket minimum must be >= 1, got {bounds.minimum}"
            raise ConfigError(msg)
        self._bounds = bounds

    @property
    def bounds(self) -> PolicyBounds:
        """Return the ticket range (stock: 1 to 2**31 - 1, default 1)."""
        return self._bounds

    def combine(self, base: int, donations: Iterable[int]) -> int:
        """Return *base* plus the sum of every donation."""
        return base + sum(donations)

    @staticmethod
    def total_tickets(candidates: Sequence[Candidate]) -> int:
        """Return the number of tickets in the draw."""
        return sum(c.effective for c in candidates)

    def select(self, candidates: Sequence[Candidate], rng: random.Random) -> int | None:
        """Draw a ticket and return the tid that holds it.

        Returns None for an empty draw (no candidates, or zero tickets
        in total).
        """
        total = self.total_tickets(candidates)
        if total <= 0:
            return None
        winner = rng.randint(1, total)
        lo = 1
        for cand in candidates:
            hi = lo + cand.effective
            if lo <= winner < hi:
                return cand.tid
            lo = hi
        return None  # pragma: no cover

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"WeightedLottery({self._bounds.minimum}..{self._bounds.maximum})"


def policy_for(name: str, *, bounds: PolicyBounds | None = None) -> DequeuePolicy:
    """Build the policy registered under *name*.

    Args:
        name: ``"priority"`` or ``"lottery"``.
        bounds: Custom bounds; None uses the policy's stock bounds.

    Raises:
        ConfigError: If *name* is not a known policy.

    """
    if name == POLICY_PRIORITY:
        return MaxPriorityFifo(bounds=bounds or PRIORITY_BOUNDS)
    if name == POLICY_LOTTERY:
        return WeightedLottery(bounds=bounds or LOTTERY_BOUNDS)
    msg = f"Unknown policy {name!r} (expected one of {', '.join(POLICY_NAMES)})"
    raise ConfigError(msg)
