"""Scheduling core — thread records, wait queues, donation, policies.

Re-exports public symbols so callers can write::

    from py_sched.sched import Scheduler, WeightedLottery
"""

from py_sched.sched.engine import DonationEngine
from py_sched.sched.errors import (
    InternalInvariantViolation,
    InvalidStateError,
    SchedulerError,
    UnknownQueueError,
)
from py_sched.sched.policy import (
    Candidate,
    DequeuePolicy,
    MaxPriorityFifo,
    WeightedLottery,
    policy_for,
)
from py_sched.sched.records import ThreadRecord, ThreadState, WaitQueue
from py_sched.sched.scheduler import Scheduler

__all__ = [
    "Candidate",
    "DequeuePolicy",
    "DonationEngine",
    "InternalInvariantViolation",
    "InvalidStateError",
    "MaxPriorityFifo",
    "Scheduler",
    "SchedulerError",
    "ThreadRecord",
    "ThreadState",
    "UnknownQueueError",
    "WaitQueue",
    "WeightedLottery",
    "policy_for",
]
