"""Synchronization subsystem — locks, semaphores, conditions, joins, communicators.

Re-exports public symbols so callers can write::

    from py_sched.sync import Lock, Semaphore
"""

from py_sched.sync.communicator import Communicator, Pairing
from py_sched.sync.primitives import Condition, JoinPoint, Lock, Semaphore

__all__ = [
    "Communicator",
    "Condition",
    "JoinPoint",
    "Lock",
    "Pairing",
    "Semaphore",
]
