"""Display buckets for reminders relative to the current time."""

from dataclasses import dataclass, field
from datetime import datetime

from dayzen.scheduling.reminders import Reminder, as_local

BUCKETS = ("recurring", "today", "upcoming", "past")


@dataclass(slots=True)
class Categorized:
    recurring: list[Reminder] = field(default_factory=list)
    today: list[Reminder] = field(default_factory=list)
    upcoming: list[Reminder] = field(default_factory=list)
    past: list[Reminder] = field(default_factory=list)

    def bucket_of(self) -> dict[str, str]:
        """Reminder id -> bucket name."""
        return {r.id: name for name in BUCKETS for r in getattr(self, name)}


def _bucket(reminder: Reminder, now: datetime) -> str:
    if reminder.recurring:
        return "recurring"
    if not reminder.timer:
        return "today"
    at = reminder.timer_at()
    if at is None:
        return "past"
    if at.date() < now.date():
        return "past"
    if at.date() == now.date():
        return "past" if at < now else "today"
    if at.date() > now.date():
        return "upcoming"
    return "past"


def _timer_key(reminder: Reminder) -> datetime:
    at = reminder.timer_at()
    assert at is not None
    return at


def categorize(reminders: list[Reminder], now: datetime | None = None) -> Categorized:
    """Pure; call again whenever `now` moves so boundary items change buckets.

    today/upcoming/recurring sort ascending by timer with undated entries last;
    past sorts newest first.
    """
    now = as_local(now)
    result = Categorized()
    for reminder in reminders:
        getattr(result, _bucket(reminder, now)).append(reminder)

    for name in ("today", "upcoming", "recurring"):
        items = getattr(result, name)
        dated = sorted((r for r in items if r.timer_at() is not None), key=_timer_key)
        undated = [r for r in items if r.timer_at() is None]
        setattr(result, name, dated + undated)

    dated_past = sorted(
        (r for r in result.past if r.timer_at() is not None),
        key=_timer_key,
        reverse=True,
    )
    result.past = dated_past + [r for r in result.past if r.timer_at() is None]
    return result
