"""py-sched — the scheduling core of a teaching kernel.

Wait queues, priority donation and lottery scheduling.  The public API::

    from py_sched import Scheduler, SchedulerConfig, Lock
"""

from py_sched.config import (
    LOTTERY_BOUNDS,
    PRIORITY_BOUNDS,
    PolicyBounds,
    SchedulerConfig,
)
from py_sched.errors import ConfigError, SchedulerError
from py_sched.logging import LogEntry, Logger, LogLevel
from py_sched.sched import (
    InternalInvariantViolation,
    InvalidStateError,
    MaxPriorityFifo,
    Scheduler,
    ThreadRecord,
    ThreadState,
    UnknownQueueError,
    WaitQueue,
    WeightedLottery,
)
from py_sched.sync import Communicator, Condition, JoinPoint, Lock, Semaphore

__all__ = [
    "LOTTERY_BOUNDS",
    "PRIORITY_BOUNDS",
    "Communicator",
    "Condition",
    "ConfigError",
    "InternalInvariantViolation",
    "InvalidStateError",
    "JoinPoint",
    "Lock",
    "LogEntry",
    "LogLevel",
    "Logger",
    "MaxPriorityFifo",
    "PolicyBounds",
    "Scheduler",
    "SchedulerConfig",
    "SchedulerError",
    "Semaphore",
    "ThreadRecord",
    "ThreadState",
    "UnknownQueueError",
    "WaitQueue",
    "WeightedLottery",
]
