"""Command-line runner for the scheduling scenarios.

Usage::

    py-sched priority              # priority inversion with donation
    py-sched lottery --draws 5000  # ticket-weighted win shares
    py-sched donation --seed 7     # ticket donation through a lock

The scenario functions are pure (they return transcripts); this module
is the thin I/O wrapper that prints them.
"""

import argparse
from collections.abc import Sequence

from py_sched.logging import Logger, LogLevel
from py_sched.selftest import (
    DEFAULT_DRAWS,
    LOTTERY_TICKETS,
    lottery_distribution,
    lottery_donation_demo,
    priority_inversion_demo,
)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for ``py-sched``."""
    parser = argparse.ArgumentParser(
        prog="py-sched",
        description="Run priority-donation and lottery scheduling scenarios.",
    )
    sub = parser.add_subparsers(dest="scenario", required=True)

    prio = sub.add_parser("priority", help="priority inversion solved by donation")
    prio.add_argument("--log", action="store_true", help="also print the scheduler log")

    lottery = sub.add_parser("lottery", help="lottery win shares for fixed tickets")
    lottery.add_argument("--draws", type=int, default=DEFAULT_DRAWS)
    lottery.add_argument("--seed", type=int, default=None)
    lottery.add_argument(
        "--tickets",
        type=int,
        nargs="+",
        default=list(LOTTERY_TICKETS),
        help="ticket count per thread",
    )

    donation = sub.add_parser("donation", help="lottery tickets donated through a lock")
    donation.add_argument("--seed", type=int, default=None)
    donation.add_argument("--log", action="store_true", help="also print the scheduler log")
    return parser


def format_distribution(tickets: Sequence[int], shares: dict[int, float]) -> list[str]:
    """Return one line per thread comparing expected and observed shares."""
    total = sum(tickets)
    lines = [f"{'tid':>4} {'tickets':>8} {'expected':>9} {'observed':>9}"]
    for tid, count in enumerate(tickets, start=1):
        lines.append(f"{tid:>4} {count:>8} {count / total:>9.3f} {shares[tid]:>9.3f}")
    return lines


def main(argv: Sequence[str] | None = None) -> int:
    """Run the selected scenario and print its transcript.

    Returns:
        Process exit status.

    """
    args = build_parser().parse_args(argv)
    logger = Logger(min_level=LogLevel.INFO)

    if args.scenario == "priority":
        lines = priority_inversion_demo(logger=logger)
    elif args.scenario == "lottery":
        if any(t < 1 for t in args.tickets):
            print("error: every thread needs at least one ticket")  # noqa: T201
            return 2
        shares = lottery_distribution(tuple(args.tickets), draws=args.draws, seed=args.seed)
        lines = format_distribution(args.tickets, shares)
    else:
        lines = lottery_donation_demo(seed=args.seed, logger=logger)

    for line in lines:
        print(line)  # noqa: T201
    if getattr(args, "log", False):
        print()  # noqa: T201
        for entry in logger.entries:
            print(entry)  # noqa: T201
    return 0
