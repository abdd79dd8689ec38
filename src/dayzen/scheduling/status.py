"""Creation confirmations and read-only diagnostics over the trigger channels."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

from dayzen import config
from dayzen.scheduling.channels import JobDescriptor, Payload, TriggerChannel
from dayzen.scheduling.dispatcher import TYPE_EMOJI
from dayzen.scheduling.reminders import Reminder, as_local
from dayzen.storage import STATE_DIR, read_json, write_json

STATUS_FILE = STATE_DIR / "status.json"

log = logging.getLogger(__name__)


async def schedule_confirmation(
    channel: TriggerChannel,
    reminder: Reminder,
    *,
    delay: int | None = None,
    now: datetime | None = None,
) -> str | None:
    """One-shot "reminder added" notice for a new recurring reminder.

    Informational only: returns None instead of raising when the reminder is
    not recurring or the channel refuses the job.
    """
    if reminder.recurring not in TYPE_EMOJI:
        log.debug("Not a recurring reminder, skipping confirmation for %s", reminder.id)
        return None
    seconds = config.CONFIRMATION_DELAY if delay is None else delay
    run_at = as_local(now) + timedelta(seconds=seconds)
    payload = Payload(
        title=f"{TYPE_EMOJI[reminder.recurring]} {reminder.recurring.capitalize()} Reminder Added!",
        body=f'"{reminder.message}" - This confirmation shows your notifications are working properly.',
        member_ids=(reminder.id,),
        kind="confirmation",
    )
    try:
        job_id = await channel.register_once(run_at, payload)
    except Exception:
        log.exception("Scheduling confirmation for %s failed", reminder.id)
        return None
    log.info("Confirmation for %s scheduled as %s", reminder.id, job_id)
    return job_id


@dataclass(slots=True)
class JobDetail:
    channel: str
    job_id: str
    title: str
    body: str
    kind: str  # single, consolidated or confirmation
    bucket: str
    count: int
    trigger: str
    next_fire: str | None = None  # ISO-8601, local zone


@dataclass(slots=True)
class ChannelStatus:
    name: str
    scheduled: int = 0
    buckets: dict[str, int] = field(
        default_factory=lambda: {"daily": 0, "weekly": 0, "monthly": 0, "one_time": 0}
    )
    single: int = 0
    consolidated: int = 0
    confirmations: int = 0
    total_reminders: int = 0
    error: str | None = None
    jobs: list[JobDetail] = field(default_factory=list)


@dataclass(slots=True)
class StatusReport:
    permission: str
    channels: list[ChannelStatus]
    generated_at: str
    # Every job with a next firing, soonest first
    upcoming: list[JobDetail] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def _detail(channel: str, job: JobDescriptor, now: datetime) -> JobDetail:
    try:
        next_fire = job.next_fire(now)
    except Exception:
        log.warning("Could not compute next fire time of %s job %s", channel, job.job_id)
        next_fire = None
    return JobDetail(
        channel=channel,
        job_id=job.job_id,
        title=job.payload.title,
        body=job.payload.body,
        kind=job.payload.kind,
        bucket=job.bucket,
        count=max(job.payload.count, 1),
        trigger=job.trigger,
        next_fire=as_local(next_fire).isoformat(timespec="seconds") if next_fire else None,
    )


async def channel_status(channel: TriggerChannel, now: datetime | None = None) -> ChannelStatus:
    now = as_local(now)
    status = ChannelStatus(name=channel.name)
    try:
        jobs = await channel.list_jobs()
    except Exception as exc:
        log.warning("Could not list %s jobs: %s", channel.name, exc)
        status.error = str(exc)
        return status
    status.scheduled = len(jobs)
    for job in jobs:
        status.jobs.append(_detail(channel.name, job, now))
        status.buckets[job.bucket] = status.buckets.get(job.bucket, 0) + 1
        if job.payload.kind == "confirmation":
            status.confirmations += 1
            continue
        if job.payload.kind == "consolidated":
            status.consolidated += 1
        else:
            status.single += 1
        status.total_reminders += max(job.payload.count, 1)
    return status


def upcoming(channels: list[ChannelStatus]) -> list[JobDetail]:
    """Jobs of all channels that will still fire, soonest first."""
    pending = [job for status in channels for job in status.jobs if job.next_fire]
    return sorted(pending, key=lambda job: datetime.fromisoformat(job.next_fire or ""))


async def build_report(
    permission: str, *channels: TriggerChannel, now: datetime | None = None
) -> StatusReport:
    now = as_local(now)
    statuses = [await channel_status(c, now) for c in channels]
    return StatusReport(
        permission=permission,
        channels=statuses,
        generated_at=now.isoformat(timespec="seconds"),
        upcoming=upcoming(statuses),
    )


def save_snapshot(report: StatusReport) -> None:
    """Overwritten by the daemon after every resync; read by `dayzen status`."""
    write_json(STATUS_FILE, report.to_dict())


def load_snapshot() -> dict[str, object] | None:
    data = read_json(STATUS_FILE)
    return data if isinstance(data, dict) else None
