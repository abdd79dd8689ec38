"""Collapse reminders that fire at the same slot into trigger groups.

One group becomes one scheduled job, so five daily reminders at 08:30 produce
a single consolidated notification instead of five.

Slot keys:
  daily    "{hour}:{minute}"             e.g. "8:30"
  weekly   "{weekday}-{hour}:{minute}"   weekday 0=Sunday .. 6=Saturday
  monthly  "{day}-{hour}:{minute}"
  one_time exact UTC instant, ISO-8601 to the second
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Literal

from dayzen import config
from dayzen.scheduling.reminders import Reminder, as_local

GroupKind = Literal["daily", "weekly", "monthly", "one_time"]
KINDS: tuple[GroupKind, ...] = ("daily", "weekly", "monthly", "one_time")

log = logging.getLogger(__name__)


def sunday_first_weekday(moment: datetime) -> int:
    """0=Sunday .. 6=Saturday (datetime.weekday() is 0=Monday)."""
    return (moment.weekday() + 1) % 7


@dataclass(frozen=True, slots=True)
class Slot:
    kind: GroupKind
    hour: int = 0
    minute: int = 0
    weekday: int | None = None  # weekly only, 0=Sunday
    day: int | None = None  # monthly only
    run_at: datetime | None = None  # one_time only

    @property
    def key(self) -> str:
        if self.kind == "daily":
            return f"{self.hour}:{self.minute}"
        if self.kind == "weekly":
            return f"{self.weekday}-{self.hour}:{self.minute}"
        if self.kind == "monthly":
            return f"{self.day}-{self.hour}:{self.minute}"
        assert self.run_at is not None
        return self.run_at.astimezone(timezone.utc).isoformat(timespec="seconds")


@dataclass(slots=True)
class TriggerGroup:
    slot: Slot
    members: list[Reminder] = field(default_factory=list)

    @property
    def kind(self) -> GroupKind:
        return self.slot.kind

    @property
    def key(self) -> str:
        return self.slot.key

    @property
    def member_ids(self) -> list[str]:
        return [r.id for r in self.members]

    @property
    def consolidated(self) -> bool:
        return len(self.members) > 1


@dataclass(slots=True)
class TriggerGroups:
    daily: dict[str, TriggerGroup] = field(default_factory=dict)
    weekly: dict[str, TriggerGroup] = field(default_factory=dict)
    monthly: dict[str, TriggerGroup] = field(default_factory=dict)
    one_time: dict[str, TriggerGroup] = field(default_factory=dict)

    def __iter__(self) -> Iterator[TriggerGroup]:
        for kind in KINDS:
            yield from getattr(self, kind).values()

    def __len__(self) -> int:
        return sum(len(getattr(self, kind)) for kind in KINDS)

    def add(self, slot: Slot, reminder: Reminder) -> None:
        bucket: dict[str, TriggerGroup] = getattr(self, slot.kind)
        group = bucket.get(slot.key)
        if group is None:
            group = bucket[slot.key] = TriggerGroup(slot)
        group.members.append(reminder)


def _default_time() -> tuple[int, int]:
    return config.DEFAULT_HOUR, config.DEFAULT_MINUTE


def _next_sunday(now: datetime) -> datetime:
    """Today when today is Sunday."""
    days = (7 - sunday_first_weekday(now)) % 7
    return now + timedelta(days=days)


def slot_for(reminder: Reminder, now: datetime) -> Slot | None:
    """None when the reminder has no future firing to schedule."""
    at = reminder.timer_at()

    if reminder.recurring == "daily":
        hour, minute = (at.hour, at.minute) if at else _default_time()
        return Slot("daily", hour, minute)

    if reminder.recurring == "weekly":
        if at is None:
            hour, minute = _default_time()
            at = _next_sunday(now).replace(hour=hour, minute=minute, second=0, microsecond=0)
        return Slot("weekly", at.hour, at.minute, weekday=sunday_first_weekday(at))

    if reminder.recurring == "monthly":
        if at is None:
            hour, minute = _default_time()
            return Slot("monthly", hour, minute, day=1)
        return Slot("monthly", at.hour, at.minute, day=at.day)

    if at is None:
        return None
    if at <= now:
        log.debug("Skipping past one-time reminder %s scheduled for %s", reminder.id, at)
        return None
    return Slot("one_time", at.hour, at.minute, run_at=at)


def group(reminders: list[Reminder], now: datetime | None = None) -> TriggerGroups:
    """Bucket reminders by recurrence and slot key. Pure and idempotent.

    Members keep their input order inside each group.
    """
    now = as_local(now)
    groups = TriggerGroups()
    for reminder in reminders:
        slot = slot_for(reminder, now)
        if slot is not None:
            groups.add(slot, reminder)
    return groups
