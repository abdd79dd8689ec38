"""Reminder channels and housekeeping jobs on one APScheduler instance.

Both trigger channels live on the same AsyncIOScheduler under their own
job-id prefixes. Two housekeeping jobs run next to them:
  sync  every SYNC_SECONDS, resync when the store changed on disk
  tick  every TICK_SECONDS, re-categorize so items move between buckets
The tick never touches the channels.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dayzen import config
from dayzen.alarm import AlarmContext
from dayzen.notifier import Notifier
from dayzen.scheduling.categorize import Categorized, categorize
from dayzen.scheduling.channels import JobDescriptor, SchedulerChannel
from dayzen.scheduling.dispatcher import Dispatcher
from dayzen.scheduling.reminders import Reminder, ReminderStore
from dayzen.scheduling.service import ReminderService
from dayzen.scheduling.status import build_report, save_snapshot
from dayzen.storage import TZ

log = logging.getLogger(__name__)

INTRUSIVE = "intrusive"
REGULAR = "regular"


class CategoryTicker:
    """Re-runs the categorizer on a fixed interval and reports bucket moves."""

    def __init__(
        self,
        source: Callable[[], list[Reminder]],
        on_change: Callable[[Categorized, dict[str, tuple[str, str]]], None] | None = None,
    ) -> None:
        self.source = source
        self.on_change = on_change
        self.latest: Categorized | None = None
        self._buckets: dict[str, str] = {}

    def tick(self, now: datetime | None = None) -> dict[str, tuple[str, str]]:
        """reminder id -> (old bucket, new bucket) for reminders that moved."""
        result = categorize(self.source(), now)
        buckets = result.bucket_of()
        moved = {
            rid: (self._buckets[rid], bucket)
            for rid, bucket in buckets.items()
            if rid in self._buckets and self._buckets[rid] != bucket
        }
        self.latest = result
        self._buckets = buckets
        for rid, (old, new) in moved.items():
            log.info("Reminder %s moved from %s to %s", rid, old, new)
        if moved and self.on_change is not None:
            self.on_change(result, moved)
        return moved


@dataclass
class Runtime:
    scheduler: AsyncIOScheduler
    service: ReminderService
    ticker: CategoryTicker
    alarm: AlarmContext


def _fire_handler(notifier: Notifier, alarm: AlarmContext, *, intrusive: bool):
    async def fire(job: JobDescriptor) -> None:
        log.info(
            "Firing %s job %s: %s",
            INTRUSIVE if intrusive else REGULAR,
            job.job_id,
            job.payload.title,
        )
        if intrusive:
            alarm.ring(job.job_id, job.payload)
        await notifier.notify(
            job.payload.title,
            job.payload.body,
            urgency="critical" if intrusive else "normal",
        )

    return fire


def setup_scheduler(
    notifier: Notifier,
    *,
    store: ReminderStore | None = None,
    alarm: AlarmContext | None = None,
) -> Runtime:
    """Build channels, service and housekeeping jobs. Caller starts the scheduler."""
    scheduler = AsyncIOScheduler(timezone=TZ)
    alarm = alarm or AlarmContext()

    dispatcher = Dispatcher(
        intrusive=SchedulerChannel(
            scheduler, INTRUSIVE, True, _fire_handler(notifier, alarm, intrusive=True)
        ),
        regular=SchedulerChannel(
            scheduler, REGULAR, False, _fire_handler(notifier, alarm, intrusive=False)
        ),
    )

    async def write_status() -> None:
        report = await build_report(
            notifier.permission_state(), dispatcher.intrusive, dispatcher.regular
        )
        save_snapshot(report)

    service = ReminderService(
        store or ReminderStore(), dispatcher, after_resync=write_status
    )
    ticker = CategoryTicker(lambda: service.reminders)

    @scheduler.scheduled_job(IntervalTrigger(seconds=config.SYNC_SECONDS), id="sync")
    async def sync_all() -> None:
        await service.reload()

    @scheduler.scheduled_job(IntervalTrigger(seconds=config.TICK_SECONDS), id="tick")
    async def tick() -> None:
        ticker.tick()

    return Runtime(scheduler=scheduler, service=service, ticker=ticker, alarm=alarm)
