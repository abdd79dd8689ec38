"""CLI handler for `dayzen reminder` subcommand.

Commands only validate and persist, under the store lock. A running daemon
notices the changed store on its next sync, resyncs both channels and sends
the confirmation for new recurring reminders.
"""

import argparse
import sys
from datetime import datetime

from dayzen.scheduling.categorize import categorize
from dayzen.scheduling.reminders import (
    RECURRENCES,
    Reminder,
    ReminderNotFoundError,
    ReminderStore,
    ValidationError,
    as_local,
)

_SECTIONS = (
    ("Recurring", "recurring"),
    ("Today", "today"),
    ("Upcoming", "upcoming"),
    ("Expired", "past"),
)


def parse_when(value: str, now: datetime | None = None) -> str:
    """ISO-8601, or HH:MM meaning today at that time."""
    if len(value) <= 5 and ":" in value:
        try:
            hour_s, minute_s = value.split(":", 1)
            base = as_local(now)
            at = base.replace(hour=int(hour_s), minute=int(minute_s), second=0, microsecond=0)
        except ValueError as exc:
            raise ValidationError(f"Invalid time: {value!r}") from exc
        return at.isoformat()
    return value


def _fmt_schedule(r: Reminder) -> str:
    at = r.timer_at()
    icon = "!" if r.is_intrusive else "-"
    if r.recurring == "daily":
        when = f"daily {at:%H:%M}" if at else "daily"
    elif r.recurring == "weekly":
        when = f"weekly {at:%a %H:%M}" if at else "weekly"
    elif r.recurring == "monthly":
        when = f"monthly day {at.day} {at:%H:%M}" if at else "monthly"
    elif at is not None:
        when = f"at {at:%Y-%m-%d %H:%M}"
    else:
        when = "unscheduled"
    return f"{icon} {when}"


def run_reminder_command(argv: list[str], store: ReminderStore | None = None) -> None:
    parser = argparse.ArgumentParser(prog="dayzen reminder")
    sub = parser.add_subparsers(dest="action")

    add_p = sub.add_parser("add", help="Create a reminder")
    add_p.add_argument("--message", "-m", required=True, help="Reminder message")
    add_p.add_argument("--at", default=None, help="ISO datetime or HH:MM (today)")
    add_p.add_argument("--recurring", choices=RECURRENCES, default=None)
    add_p.add_argument(
        "--intrusive", action="store_true", help="Device-waking alarm instead of a notification"
    )

    edit_p = sub.add_parser("edit", help="Edit a reminder by ID")
    edit_p.add_argument("id", help="Reminder ID")
    edit_p.add_argument("--message", "-m", default=None)
    edit_p.add_argument("--at", default=None, help="ISO datetime or HH:MM (today)")
    repeat = edit_p.add_mutually_exclusive_group()
    repeat.add_argument("--recurring", choices=RECURRENCES, default=None)
    repeat.add_argument("--one-off", action="store_true", help="Drop the recurrence")
    kind = edit_p.add_mutually_exclusive_group()
    kind.add_argument("--intrusive", action="store_true")
    kind.add_argument("--regular", action="store_true")

    sub.add_parser("list", help="Show reminders by category")

    delete_p = sub.add_parser("delete", help="Delete a reminder by ID")
    delete_p.add_argument("id", help="Reminder ID")

    args = parser.parse_args(argv)
    store = store or ReminderStore()

    try:
        if args.action == "add":
            _handle_add(store, args)
        elif args.action == "edit":
            _handle_edit(store, args)
        elif args.action == "list":
            _handle_list(store)
        elif args.action == "delete":
            _handle_delete(store, args.id)
        else:
            parser.print_help()
            sys.exit(1)
    except ValidationError as exc:
        print(f"error: {exc}")
        sys.exit(1)
    except ReminderNotFoundError as exc:
        print(f"reminder {exc.args[0]} not found")
        sys.exit(1)


def _handle_add(store: ReminderStore, args: argparse.Namespace) -> None:
    reminder = Reminder.new(
        args.message,
        timer=parse_when(args.at) if args.at else None,
        is_intrusive=args.intrusive,
        recurring=args.recurring,
    )
    store.add(reminder)
    print(f"scheduled {reminder.id}: {_fmt_schedule(reminder)} -- {reminder.message}")


def _handle_edit(store: ReminderStore, args: argparse.Namespace) -> None:
    changes: dict[str, object] = {}
    if args.message is not None:
        changes["message"] = args.message
    if args.at is not None:
        changes["timer"] = parse_when(args.at)
    if args.recurring is not None:
        changes["recurring"] = args.recurring
    elif args.one_off:
        changes["recurring"] = None
    if args.intrusive:
        changes["is_intrusive"] = True
    elif args.regular:
        changes["is_intrusive"] = False
    updated = store.get(args.id).edited(**changes)
    store.replace(updated)
    print(f"updated {updated.id}: {_fmt_schedule(updated)} -- {updated.message}")


def _handle_list(store: ReminderStore) -> None:
    reminders = store.load()
    if not reminders:
        print("no reminders")
        return
    result = categorize(reminders)
    for title, name in _SECTIONS:
        items = getattr(result, name)
        if not items:
            continue
        print(f"{title}:")
        for r in items:
            print(f"  {r.id}  {_fmt_schedule(r):28s}  {r.message}")


def _handle_delete(store: ReminderStore, reminder_id: str) -> None:
    store.remove(reminder_id)
    print(f"deleted {reminder_id}")
