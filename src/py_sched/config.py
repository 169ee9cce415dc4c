"""Scheduler configuration — policy bounds and start-up settings.

The two scheduling variants disagree about what a "priority" is:

- The **priority** policy uses a small closed range (0-7, default 1)
  and a larger number simply means "more important".
- The **lottery** policy treats the value as a ticket count (1 up to
  the largest 32-bit signed int, default 1).  Zero tickets would mean
  a thread can never win, so the floor is 1.

Instead of baking these into class constants, the bounds are plain
data (``PolicyBounds``) attached to whichever policy is chosen.

``SchedulerConfig`` bundles the start-up choices (which policy, which
random seed, optional custom bounds).  Like a process environment it
can be read from ``KEY=VALUE`` string pairs::

    PY_SCHED_POLICY=lottery
    PY_SCHED_SEED=42
    PY_SCHED_MAX=100
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from py_sched.errors import ConfigError

POLICY_PRIORITY = "priority"
POLICY_LOTTERY = "lottery"
POLICY_NAMES = (POLICY_PRIORITY, POLICY_LOTTERY)

ENV_POLICY = "PY_SCHED_POLICY"
ENV_SEED = "PY_SCHED_SEED"
ENV_MIN = "PY_SCHED_MIN"
ENV_MAX = "PY_SCHED_MAX"
ENV_DEFAULT = "PY_SCHED_DEFAULT"

INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class PolicyBounds:
    """Closed range and default for a policy's priority values.

    Attributes:
        minimum: Smallest allowed base value (inclusive).
        maximum: Largest allowed base value (inclusive).
        default: Base value given to newly registered threads.

    """

    minimum: int
    maximum: int
    default: int

    def __post_init__(self) -> None:
        """Reject empty ranges and defaults outside the range."""
        if self.minimum > self.maximum:
            msg = f"minimum ({self.minimum}) must be <= maximum ({self.maximum})"
            raise ConfigError(msg)
        if not self.minimum <= self.default <= self.maximum:
            msg = f"default ({self.default}) outside [{self.minimum}, {self.maximum}]"
            raise ConfigError(msg)

    def clamp(self, value: int) -> int:
        """Return *value* forced into ``[minimum, maximum]``."""
        return max(self.minimum, min(self.maximum, value))

    def contains(self, value: int) -> bool:
        """Return True if *value* lies within the range."""
        return self.minimum <= value <= self.maximum


PRIORITY_BOUNDS = PolicyBounds(minimum=0, maximum=7, default=1)
LOTTERY_BOUNDS = PolicyBounds(minimum=1, maximum=INT32_MAX, default=1)


def default_bounds(policy: str) -> PolicyBounds:
    """Return the stock bounds for the named policy.

    Raises:
        ConfigError: If *policy* is not a known policy name.

    """
    if policy == POLICY_PRIORITY:
        return PRIORITY_BOUNDS
    if policy == POLICY_LOTTERY:
        return LOTTERY_BOUNDS
    msg = f"Unknown policy {policy!r} (expected one of {', '.join(POLICY_NAMES)})"
    raise ConfigError(msg)


@dataclass(frozen=True)
class SchedulerConfig:
    """Start-up settings for a ``Scheduler``.

    Attributes:
        policy: ``"priority"`` or ``"lottery"``.
        seed: Seed for the lottery's random source; None draws the
            seed from OS entropy.
        bounds: Custom bounds; None uses the policy's stock bounds.

    """

    policy: str = POLICY_PRIORITY
    seed: int | None = None
    bounds: PolicyBounds | None = None

    def __post_init__(self) -> None:
        """Validate the policy name eagerly."""
        default_bounds(self.policy)
        if self.policy == POLICY_LOTTERY and self.bounds is not None and self.bounds.minimum < 1:
            msg = f"Lottery ticket minimum must be >= 1, got {self.bounds.minimum}"
            raise ConfigError(msg)

    @property
    def effective_bounds(self) -> PolicyBounds:
        """Return the custom bounds, or the policy's stock bounds."""
        return self.bounds if self.bounds is not None else default_bounds(self.policy)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "SchedulerConfig":
        """Build a config from ``PY_SCHED_*`` variables.

        Args:
            env: Variables to read; defaults to ``os.environ``.

        Returns:
            The parsed configuration.

        Raises:
            ConfigError: If a value is not a valid policy name or integer.

        """
        source = os.environ if env is None else env
        policy = source.get(ENV_POLICY, POLICY_PRIORITY).strip().lower()
        seed = _parse_int(source, ENV_SEED)

        stock = default_bounds(policy)
        minimum = _parse_int(source, ENV_MIN)
        maximum = _parse_int(source, ENV_MAX)
        default = _parse_int(source, ENV_DEFAULT)
        bounds = None
        if minimum is not None or maximum is not None or default is not None:
            bounds = PolicyBounds(
                minimum=stock.minimum if minimum is None else minimum,
                maximum=stock.maximum if maximum is None else maximum,
                default=stock.default if default is None else default,
            )
        return cls(policy=policy, seed=seed, bounds=bounds)


def _parse_int(env: Mapping[str, str], key: str) -> int | None:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        msg = f"{key} must be an integer, got {raw!r}"
        raise ConfigError(msg) from None
