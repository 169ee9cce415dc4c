"""Root of the py-sched exception hierarchy.

Everything the package raises on purpose derives from
``SchedulerError``, so callers can catch one class.  Configuration
problems are also ``ValueError``s, because they are bad values.
"""


class SchedulerError(Exception):
    """Base class for scheduler failures."""


class ConfigError(SchedulerError, ValueError):
    """Raised when scheduler configuration is malformed."""
