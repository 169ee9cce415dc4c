"""Scripted scheduling scenarios — watch donation and lotteries work.

Each scenario drives a fresh ``Scheduler`` through a fixed sequence of
lock operations and returns a transcript.  There is no real CPU: the
scenario plays the part of the dispatcher, deciding who "runs" next by
reading effective priorities.

- **priority_inversion_demo** — the classic three-thread inversion.
  Low holds a lock, High blocks on it, Medium is ready.  Without
  donation Medium would run; with donation Low runs at High's priority,
  releases, and High gets the lock.
- **lottery_distribution** — four threads wait forever on a plain queue
  holding 2, 5, 10 and 3 tickets.  Repeated draws converge on win
  shares of 0.10, 0.25, 0.50 and 0.15.
- **lottery_donation_demo** — tickets *add* through a lock: a 2-ticket
  holder with 5- and 10-ticket waiters draws with 17 tickets.
"""

from collections import Counter

from py_sched.config import POLICY_LOTTERY, POLICY_PRIORITY, SchedulerConfig
from py_sched.logging import Logger
from py_sched.sched.scheduler import Scheduler
from py_sched.sync.primitives import Lock

LOW, MEDIUM, HIGH = 1, 2, 3
LOTTERY_TICKETS = (2, 5, 10, 3)
DEFAULT_DRAWS = 10_000


def _runner(scheduler: Scheduler, ready: list[int]) -> int:
    """Return the ready tid with the highest effective priority."""
    return max(ready, key=scheduler.get_effective_priority)


def priority_inversion_demo(logger: Logger | None = None) -> list[str]:
    """Run the Low/Medium/High inversion scenario.

    Args:
        logger: Log buffer for the scheduler's own events.

    Returns:
        One transcript line per step.

    """
    scheduler = Scheduler(SchedulerConfig(policy=POLICY_PRIORITY), logger=logger)
    names = {LOW: "low", MEDIUM: "medium", HIGH: "high"}
    scheduler.set_priority(LOW, 1)
    scheduler.set_priority(MEDIUM, 4)
    scheduler.set_priority(HIGH, 7)
    lock = Lock(scheduler, name="shared")
    lines: list[str] = []

    def eff(tid: int) -> str:
        return f"{names[tid]}={scheduler.get_effective_priority(tid)}"

    lock.acquire(LOW)
    lines.append(f"low acquires '{lock.name}'  [{eff(LOW)}]")

    lock.acquire(HIGH)
    lines.append(f"high blocks on '{lock.name}'  [{eff(LOW)} {eff(HIGH)}]")

    ready = [LOW, MEDIUM]
    chosen = _runner(scheduler, ready)
    lines.append(f"ready: low, medium  [{eff(LOW)} {eff(MEDIUM)}] -> {names[chosen]} runs")

    successor = lock.release(LOW)
    who = names[successor] if successor is not None else "nobody"
    lines.append(f"low releases '{lock.name}' -> {who} holds it  [{eff(LOW)}]")

    ready = [LOW, MEDIUM, HIGH]
    chosen = _runner(scheduler, ready)
    lines.append(f"ready: low, medium, high -> {names[chosen]} runs")
    lock.release(HIGH)
    return lines


def lottery_distribution(
    tickets: tuple[int, ...] = LOTTERY_TICKETS,
    *,
    draws: int = DEFAULT_DRAWS,
    seed: int | None = 0,
) -> dict[int, float]:
    """Measure how often each ticket holder wins.

    Threads ``1..len(tickets)`` wait on a plain queue for the whole run;
    each draw peeks at the winner without dequeuing it.

    Returns:
        Mapping of tid to its share of wins.

    """
    scheduler = Scheduler(SchedulerConfig(policy=POLICY_LOTTERY, seed=seed))
    queue = scheduler.create_queue(transfer_priority=False, name="lottery")
    for tid, count in enumerate(tickets, start=1):
        scheduler.set_priority(tid, count)
        scheduler.wait_for_access(queue, tid)

    wins: Counter[int] = Counter()
    for _ in range(draws):
        winner = scheduler.pick_next_thread(queue)
        if winner is not None:
            wins[winner] += 1
    total = sum(wins.values()) or 1
    return {tid: wins[tid] / total for tid in range(1, len(tickets) + 1)}


def lottery_donation_demo(*, seed: int | None = 0, logger: Logger | None = None) -> list[str]:
    """Show ticket donation adding up through a lock.

    Returns:
        One transcript line per step.

    """
    scheduler = Scheduler(SchedulerConfig(policy=POLICY_LOTTERY, seed=seed), logger=logger)
    holder, small, large = 1, 2, 3
    scheduler.set_priority(holder, 2)
    scheduler.set_priority(small, 5)
    scheduler.set_priority(large, 10)
    lock = Lock(scheduler, name="tickets")
    lines: list[str] = []

    lock.acquire(holder)
    lines.append(f"t{holder} holds '{lock.name}' with {scheduler.get_effective_priority(holder)} tickets")
    for tid in (small, large):
        lock.acquire(tid)
        lines.append(
            f"t{tid} ({scheduler.get_priority(tid)} tickets) waits -> "
            f"t{holder} draws with {scheduler.get_effective_priority(holder)}"
        )

    successor = lock.release(holder)
    lines.append(
        f"t{holder} releases -> t{successor} wins the lock; "
        f"t{holder} back to {scheduler.get_effective_priority(holder)} tickets"
    )
    if successor is not None:
        lines.append(
            f"t{successor} now draws with {scheduler.get_effective_priority(successor)} tickets"
        )
    return lines
