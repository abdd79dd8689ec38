"""CLI handler for `dayzen status`: last diagnostics written by the daemon."""

import argparse
import sys
from datetime import datetime

import yaml

from dayzen.scheduling.status import load_snapshot


def _fmt_upcoming(job: dict) -> str:
    at = datetime.fromisoformat(job["next_fire"])
    count = f" ({job['count']})" if job.get("count", 1) > 1 else ""
    return f"  {at:%Y-%m-%d %H:%M}  {job['channel']:9s}  {job['title']}{count}"


def run_status_command(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(prog="dayzen status")
    parser.add_argument(
        "--upcoming", action="store_true", help="Only list scheduled jobs by next fire time"
    )
    args = parser.parse_args(argv)

    snapshot = load_snapshot()
    if snapshot is None:
        print("no status yet -- is the daemon running?")
        sys.exit(1)
    if not args.upcoming:
        print(yaml.safe_dump(snapshot, sort_keys=False, allow_unicode=True), end="")
        return

    jobs = snapshot.get("upcoming") or []
    if not jobs:
        print("nothing scheduled")
        return
    print(f"Upcoming (as of {snapshot.get('generated_at')}):")
    for job in jobs:
        print(_fmt_upcoming(job))
