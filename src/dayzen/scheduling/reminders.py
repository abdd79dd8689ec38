"""Reminder data model and key-value persistence.

Reminders are either one-off (a `timer` instant) or recurring (daily, weekly,
monthly). For recurring reminders the timer only supplies the time of day,
plus the weekday (weekly) or day of month (monthly); the date is ignored.

The whole list lives as one JSON array under a single store key, with the
camelCase field names the list has always been written with.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from dayzen.storage import TZ, KeyValueStore

ITEMS_KEY = "items"

Recurrence = Literal["daily", "weekly", "monthly"]
RECURRENCES: tuple[str, ...] = ("daily", "weekly", "monthly")

log = logging.getLogger(__name__)

# dataclass field -> JSON key
_JSON_KEYS = {
    "id": "id",
    "message": "message",
    "timer": "timer",
    "is_intrusive": "isIntrusive",
    "recurring": "recurring",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


class ValidationError(ValueError):
    """Reminder input rejected before anything is persisted."""


class ReminderNotFoundError(KeyError):
    pass


def _utc_stamp() -> str:
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def as_local(moment: datetime | None = None) -> datetime:
    """Aware datetime in the local zone; naive values are local wall-clock time."""
    if moment is None:
        return datetime.now(TZ)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=TZ)
    return moment.astimezone(TZ)


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware datetime in the local zone.

    Naive values are taken as local wall-clock time.
    """
    return as_local(datetime.fromisoformat(value))


def _fields_from(data: dict[str, Any]) -> dict[str, Any]:
    """Normalized dataclass fields of a stored record."""
    intrusive = data.get("isIntrusive")
    if intrusive is None:
        # older records used a bare "intrusive" flag
        intrusive = data.get("intrusive", False)
    return {
        "id": str(data.get("id") or ""),
        "message": data.get("message") or "",
        "timer": data.get("timer") or None,
        "is_intrusive": bool(intrusive),
        "recurring": data.get("recurring") or None,
        "created_at": data.get("createdAt"),
        "updated_at": data.get("updatedAt"),
    }


@dataclass(frozen=True, slots=True)
class Reminder:
    id: str
    message: str
    timer: str | None = None  # ISO datetime, stored verbatim
    is_intrusive: bool = False
    recurring: Recurrence | None = None
    created_at: str | None = None
    updated_at: str | None = None
    # Record as read from the store; unchanged fields are written back from it
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValidationError("Reminder id must not be empty")
        if not isinstance(self.message, str) or not self.message.strip():
            raise ValidationError("Please enter a reminder message")
        if self.recurring is not None and self.recurring not in RECURRENCES:
            raise ValidationError(
                f"Invalid recurrence: {self.recurring!r} (must be one of {', '.join(RECURRENCES)})"
            )

    @property
    def is_one_off(self) -> bool:
        return self.recurring is None

    def timer_at(self) -> datetime | None:
        """Timer as a local aware datetime; None when unset or unparseable."""
        if not self.timer:
            return None
        try:
            return parse_instant(self.timer)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def new(
        message: str,
        *,
        timer: datetime | str | None = None,
        is_intrusive: bool = False,
        recurring: str | None = None,
    ) -> "Reminder":
        """Validate user input and build a fresh reminder with a new id."""
        stamp = _utc_stamp()
        return _build(
            uuid4().hex[:8],
            message,
            timer=timer,
            is_intrusive=is_intrusive,
            recurring=recurring,
            created_at=stamp,
            updated_at=stamp,
        )

    def edited(self, **changes: Any) -> "Reminder":
        """Apply user edits, keeping id and createdAt, bumping updatedAt."""
        unknown = set(changes) - {"message", "timer", "is_intrusive", "recurring"}
        if unknown:
            raise TypeError(f"Cannot edit fields: {', '.join(sorted(unknown))}")
        return _build(
            self.id,
            changes.get("message", self.message),
            timer=changes.get("timer", self.timer),
            is_intrusive=changes.get("is_intrusive", self.is_intrusive),
            recurring=changes.get("recurring", self.recurring),
            created_at=self.created_at,
            updated_at=_utc_stamp(),
            raw=self.raw,
        )

    def to_json(self) -> dict[str, Any]:
        """Unknown keys and unchanged values come back exactly as they were read."""
        data = dict(self.raw)
        stored = _fields_from(self.raw) if self.raw else {}
        for name, key in _JSON_KEYS.items():
            value = getattr(self, name)
            if name in stored and stored[name] == value:
                continue
            data[key] = value
        return data

    @staticmethod
    def from_json(data: dict[str, Any]) -> "Reminder":
        if not isinstance(data, dict):
            raise ValidationError("Reminder record is not an object")
        return Reminder(**_fields_from(data), raw=dict(data))


def _build(
    reminder_id: str,
    message: str,
    *,
    timer: datetime | str | None,
    is_intrusive: bool,
    recurring: str | None,
    created_at: str | None,
    updated_at: str | None,
    raw: dict[str, Any] | None = None,
) -> Reminder:
    if isinstance(timer, datetime):
        timer = as_local(timer).isoformat()
    elif timer is not None:
        try:
            parse_instant(timer)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid time: {timer!r}") from exc
    if recurring is None and not timer:
        raise ValidationError("A one-off reminder needs a time")
    return Reminder(
        id=reminder_id,
        message=(message or "").strip(),
        timer=timer or None,
        is_intrusive=bool(is_intrusive),
        recurring=recurring,  # type: ignore[arg-type]
        created_at=created_at,
        updated_at=updated_at,
        raw=dict(raw or {}),
    )


class ReminderStore:
    """Load/save the canonical reminder list under one key of a KeyValueStore.

    Records that do not parse as reminders are never handed out, but they
    keep their place in the stored list and are written back untouched.
    Every read-modify-write holds the store lock, so CLI processes and the
    daemon never overwrite each other's changes.
    """

    def __init__(self, kv: KeyValueStore | None = None, key: str = ITEMS_KEY) -> None:
        self.kv = kv if kv is not None else KeyValueStore()
        self.key = key

    def _read(self) -> list[Any]:
        raw = self.kv.get(self.key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            log.warning("Reminder list under %r is not valid JSON", self.key)
            return []
        if not isinstance(data, list):
            log.warning("Reminder list under %r is not an array", self.key)
            return []
        return data

    def _write(self, records: list[Any]) -> None:
        self.kv.set(self.key, json.dumps(records, ensure_ascii=False))

    def _parse(self, records: list[Any]) -> list[Reminder]:
        result: list[Reminder] = []
        for record in records:
            reminder = _parse_record(record)
            if reminder is None:
                log.warning("Skipping unreadable reminder record: %r", record)
            else:
                result.append(reminder)
        return result

    def _update(self, change: Callable[[list[Reminder]], list[Reminder]]) -> list[Reminder]:
        with self.kv.lock(self.key):
            records = self._read()
            reminders = change(self._parse(records))
            self._write(_merge(records, reminders))
        return reminders

    def load(self) -> list[Reminder]:
        """Skips unreadable records; a missing or non-array value reads as empty."""
        return self._parse(self._read())

    def save(self, reminders: list[Reminder]) -> None:
        self._update(lambda _current: list(reminders))

    def revision(self) -> tuple[int, int] | None:
        return self.kv.revision(self.key)

    def get(self, reminder_id: str) -> Reminder:
        for reminder in self.load():
            if reminder.id == reminder_id:
                return reminder
        raise ReminderNotFoundError(reminder_id)

    def add(self, reminder: Reminder) -> list[Reminder]:
        return self._update(lambda reminders: [*reminders, reminder])

    def replace(self, reminder: Reminder) -> list[Reminder]:
        """Replace the record with the same id in place."""

        def change(reminders: list[Reminder]) -> list[Reminder]:
            for idx, existing in enumerate(reminders):
                if existing.id == reminder.id:
                    reminders[idx] = reminder
                    return reminders
            raise ReminderNotFoundError(reminder.id)

        return self._update(change)

    def remove(self, reminder_id: str) -> list[Reminder]:
        def change(reminders: list[Reminder]) -> list[Reminder]:
            remaining = [r for r in reminders if r.id != reminder_id]
            if len(remaining) == len(reminders):
                raise ReminderNotFoundError(reminder_id)
            return remaining

        return self._update(change)


def _parse_record(record: Any) -> Reminder | None:
    try:
        return Reminder.from_json(record)
    except (ValidationError, TypeError):
        return None


def _merge(records: list[Any], reminders: list[Reminder]) -> list[Any]:
    """Lay `reminders` over the stored records.

    Readable records are replaced by the reminder with the same id, or dropped
    when it is gone; unreadable ones stay where they were. Reminders with new
    ids are appended.
    """
    pending: dict[str, list[Reminder]] = {}
    for reminder in reminders:
        pending.setdefault(reminder.id, []).append(reminder)

    merged: list[Any] = []
    for record in records:
        existing = _parse_record(record)
        if existing is None:
            merged.append(record)
        elif pending.get(existing.id):
            merged.append(pending[existing.id].pop(0).to_json())
    for reminder in reminders:
        queue = pending.get(reminder.id)
        if queue and queue[0] is reminder:
            merged.append(queue.pop(0).to_json())
    return merged
