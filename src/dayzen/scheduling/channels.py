"""Trigger channels: the backends that own scheduled jobs.

There are two channels, intrusive (device-waking alarms) and regular (plain
notifications). Both implement TriggerChannel so the resync algorithm is
written once. SchedulerChannel puts them on one APScheduler instance, each
under its own job-id prefix; a channel never sees the other's jobs.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal, Protocol
from uuid import uuid4

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from dayzen.storage import TZ

RecurrenceKind = Literal["daily", "weekly", "monthly"]
PayloadKind = Literal["single", "consolidated", "confirmation"]

log = logging.getLogger(__name__)

# Weekdays are kept 0=Sunday. APScheduler CronTrigger: 0=Monday.
# Convert to named days to avoid the mismatch.
_CRON_DOW = {
    0: "sun",
    1: "mon",
    2: "tue",
    3: "wed",
    4: "thu",
    5: "fri",
    6: "sat",
}


@dataclass(frozen=True, slots=True)
class Recurrence:
    kind: RecurrenceKind
    hour: int
    minute: int
    weekday: int | None = None  # weekly only, 0=Sunday
    day: int | None = None  # monthly only

    def __post_init__(self) -> None:
        if self.kind == "weekly" and self.weekday is None:
            raise ValueError("weekly recurrence needs a weekday")
        if self.kind == "monthly" and self.day is None:
            raise ValueError("monthly recurrence needs a day of month")

    def cron_trigger(self) -> CronTrigger:
        day_of_week = _CRON_DOW[self.weekday] if self.kind == "weekly" else "*"
        day = str(self.day) if self.kind == "monthly" else "*"
        return CronTrigger(
            minute=self.minute,
            hour=self.hour,
            day=day,
            day_of_week=day_of_week,
            timezone=TZ,
        )


@dataclass(frozen=True, slots=True)
class Payload:
    title: str
    body: str
    member_ids: tuple[str, ...] = ()
    kind: PayloadKind = "single"

    @property
    def count(self) -> int:
        return len(self.member_ids)


@dataclass(frozen=True, slots=True)
class JobDescriptor:
    """One registered job; exactly one of recurrence / run_at is set."""

    job_id: str
    payload: Payload
    recurrence: Recurrence | None = None
    run_at: datetime | None = None
    # Filled in by the backend when listing, if it knows
    next_run_at: datetime | None = None

    @property
    def bucket(self) -> str:
        return self.recurrence.kind if self.recurrence else "one_time"

    @property
    def trigger(self) -> str:
        rec = self.recurrence
        if rec is None:
            return f"at {self.run_at:%Y-%m-%d %H:%M}" if self.run_at else "unscheduled"
        clock = f"{rec.hour:02d}:{rec.minute:02d}"
        if rec.kind == "weekly":
            return f"weekly {_CRON_DOW[rec.weekday]} {clock}"
        if rec.kind == "monthly":
            return f"monthly day {rec.day} {clock}"
        return f"daily {clock}"

    def next_fire(self, now: datetime) -> datetime | None:
        """Next firing after `now`; None for a one-shot that already fired."""
        if self.next_run_at is not None:
            return self.next_run_at
        if self.recurrence is not None:
            return self.recurrence.cron_trigger().get_next_fire_time(None, now)
        if self.run_at is not None and self.run_at >= now:
            return self.run_at
        return None


class TriggerChannel(Protocol):
    name: str
    intrusive: bool

    async def register_recurring(self, recurrence: Recurrence, payload: Payload) -> str: ...

    async def register_once(self, run_at: datetime, payload: Payload) -> str: ...

    async def list_jobs(self) -> list[JobDescriptor]: ...

    async def cancel(self, job_id: str) -> None: ...


FireHandler = Callable[[JobDescriptor], Awaitable[None]]


@dataclass
class SchedulerChannel:
    """TriggerChannel on an APScheduler scheduler, namespaced by job-id prefix."""

    scheduler: BaseScheduler
    name: str
    intrusive: bool
    on_fire: FireHandler
    _prefix: str = field(init=False)

    def __post_init__(self) -> None:
        self._prefix = f"{self.name}_"

    def _new_id(self) -> str:
        return f"{self._prefix}{uuid4().hex[:8]}"

    async def _fire(self, descriptor: JobDescriptor) -> None:
        try:
            await self.on_fire(descriptor)
        except Exception:
            log.exception("Job %s on %s channel failed", descriptor.job_id, self.name)
            raise

    async def register_recurring(self, recurrence: Recurrence, payload: Payload) -> str:
        descriptor = JobDescriptor(self._new_id(), payload, recurrence=recurrence)
        self.scheduler.add_job(
            self._fire,
            recurrence.cron_trigger(),
            id=descriptor.job_id,
            kwargs={"descriptor": descriptor},
        )
        return descriptor.job_id

    async def register_once(self, run_at: datetime, payload: Payload) -> str:
        descriptor = JobDescriptor(self._new_id(), payload, run_at=run_at)
        self.scheduler.add_job(
            self._fire,
            DateTrigger(run_date=run_at, timezone=TZ),
            id=descriptor.job_id,
            kwargs={"descriptor": descriptor},
        )
        return descriptor.job_id

    async def list_jobs(self) -> list[JobDescriptor]:
        # Jobs added before the scheduler starts have no next_run_time yet
        return [
            replace(job.kwargs["descriptor"], next_run_at=getattr(job, "next_run_time", None))
            for job in self.scheduler.get_jobs()
            if job.id.startswith(self._prefix) and "descriptor" in job.kwargs
        ]

    async def cancel(self, job_id: str) -> None:
        if not job_id.startswith(self._prefix):
            raise ValueError(f"Job {job_id} does not belong to the {self.name} channel")
        self.scheduler.remove_job(job_id)
