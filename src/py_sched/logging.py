"""Scheduler log buffer — an audit trail of scheduling decisions.

Every interesting thing the scheduler does (a thread blocking on a
queue, ownership moving to a new thread, a priority being clamped)
is recorded as a structured entry.  Reading the log back is how the
self-test scenarios show priority donation happening.

Real kernels keep a ring buffer for this (``dmesg`` on Linux), and so
do we when given a capacity: the oldest entries fall off the front.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source, tid).
- **Logger** — an append-only log with filtering, tailing and clearing,
  optionally capped at a fixed number of entries.

Design choices:
    - **IntEnum for levels** so they compare naturally with ``<``.
    - **Frozen dataclass for entries** — log records should be immutable.
    - **Filter returns a list, not a generator** — callers usually
      want to iterate multiple times.
"""

from collections import deque
from dataclasses import dataclass
from enum import IntEnum

DEFAULT_CAPACITY = 1024


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that generated the event (e.g. "sched").
        tid: The thread the event is about, if any.

    """

    level: LogLevel
    message: str
    source: str
    tid: int | None = None

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message`` (with the tid when known)."""
        who = f" (tid {self.tid})" if self.tid is not None else ""
        return f"[{self.level.name}] {self.source}{who}: {self.message}"


class Logger:
    """Append-only log buffer with filtering.

    ``min_level`` drops anything below it at write time, so a noisy
    lottery run can be kept at INFO without paying for every DEBUG
    enqueue record.  ``capacity`` turns the buffer into a ring: once
    full, each new entry evicts the oldest one.
    """

    def __init__(
        self,
        *,
        min_level: LogLevel = LogLevel.DEBUG,
        capacity: int | None = None,
    ) -> None:
        """Create an empty logger.

        Args:
            min_level: Entries below this level are dropped.
            capacity: Maximum number of entries kept; None means unbounded.

        Raises:
            ValueError: If capacity is not positive.

        """
        if capacity is not None and capacity < 1:
            msg = f"Log capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._min_level = min_level

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        return list(self._entries)

    @property
    def min_level(self) -> LogLevel:
        """Return the lowest level that is recorded."""
        return self._min_level

    @property
    def capacity(self) -> int | None:
        """Return the maximum number of entries kept, or None if unbounded."""
        return self._entries.maxlen

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        tid: int | None = None,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.
            tid: Thread the event concerns, if any.

        """
        if level < self._min_level:
            return
        self._entries.append(LogEntry(level=level, message=message, source=source, tid=tid))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        tid: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            tid: If set, only return entries about this thread.

        Returns:
            A filtered list of log entries.

        """
        result = list(self._entries)
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        if tid is not None:
            result = [e for e in result if e.tid == tid]
        return result

    def tail(self, count: int) -> list[str]:
        """Return the last *count* entries formatted as strings."""
        if count <= 0:
            return []
        return [str(e) for e in list(self._entries)[-count:]]

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()

    def __len__(self) -> int:
        """Return the number of recorded entries."""
        return len(self._entries)
