"""Communicator — a rendezvous that hands one word from speaker to listener.

Any number of threads may be waiting to *speak* and any number may be
waiting to *listen*, but never both at once: whichever side arrives
second is paired off straight away with a thread waiting on the other
side.

The communicator is a small monitor built from the other primitives:
one Lock and two Conditions (one per side).  Picking *which* waiting
partner to pair with is just ``Condition.wake``, so the choice follows
the scheduler's policy: the highest-priority listener hears the word
first, or the luckiest ticket holder under the lottery.

Like everything in this package it never blocks.  ``speak`` and
``listen`` return a ``Pairing`` when a match is made, naming the
parked thread the caller must resume; None means the caller itself
is now waiting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from py_sched.sched.records import ThreadState
from py_sched.sync.primitives import Condition, Lock, state_error

if TYPE_CHECKING:
    from py_sched.sched.scheduler import Scheduler


class Pairing(NamedTuple):
    """A speaker and a listener matched by a communicator."""

    speaker: int
    listener: int
    word: int


class Communicator:
    """Pair speakers with listeners and pass each listener one word."""

    def __init__(self, scheduler: Scheduler, *, name: str) -> None:
        """Create a communicator with no one waiting."""
        self._scheduler = scheduler
        self._name = name
        self._lock = Lock(scheduler, name=f"comm:{name}")
        self._speakers = Condition(scheduler, lock=self._lock, name=f"{name}:speakers")
        self._listeners = Condition(scheduler, lock=self._lock, name=f"{name}:listeners")
        self._words: dict[int, int] = {}

    @property
    def name(self) -> str:
        """Return the communicator name."""
        return self._name

    @property
    def waiting_speakers(self) -> int:
        """Return how many speakers are waiting for a listener."""
        return self._speakers.sleeper_count

    @property
    def waiting_listeners(self) -> int:
        """Return how many listeners are waiting for a speaker."""
        return self._listeners.sleeper_count

    def speak(self, tid: int, word: int) -> Pairing | None:
        """Offer *word* to a listener.

        Returns:
            The pairing if a listener was waiting (resume
            ``pairing.listener`` with ``pairing.word``), or None if the
            speaker is now waiting.

        Raises:
            InvalidStateError: If *tid* is already waiting somewhere.

        """
        with self._scheduler.atomic():
            self._check_not_waiting(tid)
            self._lock.acquire(tid)
            listener = self._listeners.wake()
            if listener is None:
                self._words[tid] = word
                self._speakers.sleep(tid)
                return None
            self._lock.release(tid)
            return Pairing(speaker=tid, listener=listener, word=word)

    def listen(self, tid: int) -> Pairing | None:
        """Take a word from a waiting speaker.

        Returns:
            The pairing if a speaker was waiting (its word is
            ``pairing.word``; resume ``pairing.speaker``), or None if
            the listener is now waiting.

        Raises:
            InvalidStateError: If *tid* is already waiting somewhere.

        """
        with self._scheduler.atomic():
            self._check_not_waiting(tid)
            self._lock.acquire(tid)
            speaker = self._speakers.wake()
            if speaker is None:
                self._listeners.sleep(tid)
                return None
            self._lock.release(tid)
            return Pairing(speaker=speaker, listener=tid, word=self._words.pop(speaker))

    def _check_not_waiting(self, tid: int) -> None:
        if self._scheduler.thread_state(tid) is ThreadState.WAITING:
            msg = f"Thread {tid} is already waiting and cannot use communicator '{self._name}'"
            raise state_error(self._scheduler, msg, tid)

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return (
            f"Communicator('{self._name}', speakers={self.waiting_speakers}, "
            f"listeners={self.waiting_listeners})"
        )
