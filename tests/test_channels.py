"""Tests for channels.py — APScheduler-backed trigger channels."""

from datetime import datetime

import pytest
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from dayzen.scheduling.channels import JobDescriptor, Payload, Recurrence, SchedulerChannel
from dayzen.storage import TZ


@pytest.fixture()
def scheduler():
    # Never started: jobs stay pending, which is all these tests need
    return AsyncIOScheduler(timezone=TZ)


@pytest.fixture()
def fired():
    return []


@pytest.fixture()
def channels(scheduler, fired):
    async def on_fire(descriptor):
        fired.append(descriptor)

    return (
        SchedulerChannel(scheduler, "intrusive", True, on_fire),
        SchedulerChannel(scheduler, "regular", False, on_fire),
    )


PAYLOAD = Payload(title="📅 Daily Reminder", body="stretch", member_ids=("a",))


def test_weekly_recurrence_requires_weekday():
    with pytest.raises(ValueError, match="weekday"):
        Recurrence("weekly", 9, 0)


def test_monthly_recurrence_requires_day():
    with pytest.raises(ValueError, match="day of month"):
        Recurrence("monthly", 9, 0)


def test_weekly_cron_trigger_uses_named_weekday():
    trigger = Recurrence("weekly", 14, 0, weekday=0).cron_trigger()

    fields = {f.name: str(f) for f in trigger.fields}
    assert fields["day_of_week"] == "sun"
    assert fields["hour"] == "14"
    assert fields["minute"] == "0"


def test_weekly_cron_trigger_next_fire_is_sunday():
    trigger = Recurrence("weekly", 14, 0, weekday=0).cron_trigger()

    # From Tuesday 2026-03-10 the next Sunday is the 15th
    fire = trigger.get_next_fire_time(None, datetime(2026, 3, 10, 12, 0, tzinfo=TZ))

    assert (fire.month, fire.day, fire.hour, fire.minute) == (3, 15, 14, 0)


def test_monthly_cron_trigger_uses_day():
    trigger = Recurrence("monthly", 7, 45, day=15).cron_trigger()

    fire = trigger.get_next_fire_time(None, datetime(2026, 3, 16, 0, 0, tzinfo=TZ))

    assert (fire.month, fire.day, fire.hour, fire.minute) == (4, 15, 7, 45)


@pytest.mark.asyncio
async def test_register_recurring_adds_cron_job(scheduler, channels):
    _, regular = channels

    job_id = await regular.register_recurring(Recurrence("daily", 9, 0), PAYLOAD)

    assert job_id.startswith("regular_")
    job = scheduler.get_job(job_id)
    assert isinstance(job.trigger, CronTrigger)
    assert job.kwargs["descriptor"].payload == PAYLOAD


@pytest.mark.asyncio
async def test_register_once_adds_date_job(scheduler, channels):
    intrusive, _ = channels
    run_at = datetime(2026, 3, 11, 6, 0, tzinfo=TZ)

    job_id = await intrusive.register_once(run_at, PAYLOAD)

    job = scheduler.get_job(job_id)
    assert isinstance(job.trigger, DateTrigger)
    assert job.kwargs["descriptor"].run_at == run_at


@pytest.mark.asyncio
async def test_channels_only_list_their_own_jobs(scheduler, channels):
    intrusive, regular = channels
    alarm_id = await intrusive.register_recurring(Recurrence("daily", 6, 30), PAYLOAD)
    note_id = await regular.register_recurring(Recurrence("daily", 6, 30), PAYLOAD)

    scheduler.add_job(lambda: None, "interval", seconds=10, id="sync")

    assert [j.job_id for j in await intrusive.list_jobs()] == [alarm_id]
    assert [j.job_id for j in await regular.list_jobs()] == [note_id]


@pytest.mark.asyncio
async def test_cancel_removes_job(scheduler, channels):
    _, regular = channels
    job_id = await regular.register_recurring(Recurrence("daily", 9, 0), PAYLOAD)

    await regular.cancel(job_id)

    assert scheduler.get_job(job_id) is None
    assert await regular.list_jobs() == []


@pytest.mark.asyncio
async def test_cancel_refuses_other_channel_jobs(channels):
    intrusive, regular = channels
    alarm_id = await intrusive.register_recurring(Recurrence("daily", 6, 30), PAYLOAD)

    with pytest.raises(ValueError, match="does not belong"):
        await regular.cancel(alarm_id)


@pytest.mark.asyncio
async def test_cancel_unknown_job_raises(channels):
    _, regular = channels

    with pytest.raises(JobLookupError):
        await regular.cancel("regular_missing")


@pytest.mark.asyncio
async def test_fire_passes_descriptor_to_handler(channels, fired):
    _, regular = channels
    descriptor = JobDescriptor("regular_x", PAYLOAD, recurrence=Recurrence("daily", 9, 0))

    await regular._fire(descriptor)

    assert fired == [descriptor]


@pytest.mark.asyncio
async def test_fire_reraises_handler_errors(scheduler):
    async def broken(descriptor):
        raise RuntimeError("no display")

    channel = SchedulerChannel(scheduler, "regular", False, broken)

    with pytest.raises(RuntimeError, match="no display"):
        await channel._fire(JobDescriptor("regular_x", PAYLOAD))


def test_descriptor_bucket():
    assert JobDescriptor("x", PAYLOAD, recurrence=Recurrence("monthly", 1, 0, day=3)).bucket == "monthly"
    assert JobDescriptor("x", PAYLOAD, run_at=datetime(2026, 3, 11, tzinfo=TZ)).bucket == "one_time"


def test_descriptor_trigger_text():
    assert JobDescriptor("x", PAYLOAD, recurrence=Recurrence("daily", 9, 5)).trigger == "daily 09:05"
    assert (
        JobDescriptor("x", PAYLOAD, recurrence=Recurrence("weekly", 14, 0, weekday=2)).trigger
        == "weekly tue 14:00"
    )
    assert (
        JobDescriptor("x", PAYLOAD, recurrence=Recurrence("monthly", 7, 45, day=15)).trigger
        == "monthly day 15 07:45"
    )
    run_at = datetime(2026, 3, 11, 6, 0, tzinfo=TZ)
    assert JobDescriptor("x", PAYLOAD, run_at=run_at).trigger == "at 2026-03-11 06:00"


def test_descriptor_next_fire():
    now = datetime(2026, 3, 10, 12, 0, tzinfo=TZ)
    daily = JobDescriptor("x", PAYLOAD, recurrence=Recurrence("daily", 9, 0))
    once = JobDescriptor("y", PAYLOAD, run_at=datetime(2026, 3, 11, 6, 0, tzinfo=TZ))
    expired = JobDescriptor("z", PAYLOAD, run_at=datetime(2026, 3, 9, 6, 0, tzinfo=TZ))

    assert daily.next_fire(now) == datetime(2026, 3, 11, 9, 0, tzinfo=TZ)
    assert once.next_fire(now) == datetime(2026, 3, 11, 6, 0, tzinfo=TZ)
    assert expired.next_fire(now) is None


def test_descriptor_next_fire_prefers_backend_time():
    backend = datetime(2026, 3, 12, 9, 0, tzinfo=TZ)
    job = JobDescriptor("x", PAYLOAD, recurrence=Recurrence("daily", 9, 0), next_run_at=backend)

    assert job.next_fire(datetime(2026, 3, 10, 12, 0, tzinfo=TZ)) == backend


@pytest.mark.asyncio
async def test_pending_jobs_list_without_next_run_time(channels):
    _, regular = channels
    await regular.register_recurring(Recurrence("daily", 9, 0), PAYLOAD)

    (job,) = await regular.list_jobs()

    assert job.next_run_at is None


@pytest.mark.asyncio
async def test_started_scheduler_reports_next_run_time(scheduler, channels):
    _, regular = channels
    await regular.register_recurring(Recurrence("daily", 9, 0), PAYLOAD)
    scheduler.start(paused=True)
    try:
        (job,) = await regular.list_jobs()
    finally:
        scheduler.shutdown(wait=False)

    assert job.next_run_at is not None
    assert (job.next_run_at.hour, job.next_run_at.minute) == (9, 0)
