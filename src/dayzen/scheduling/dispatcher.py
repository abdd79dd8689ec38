"""Route reminders to the intrusive or regular channel and keep jobs in sync.

Each channel owns a partition of the reminder list. A full resync cancels
every job the channel holds, regroups its partition and registers one job
per group. Every backend call is best-effort: a failed cancel or register is
logged and the pass carries on, leaving a recoverable state for the next
resync.

Weekly and monthly intrusive reminders are not admitted anywhere: the alarm
channel only handles daily repeats and one-offs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from dayzen.scheduling.channels import Payload, Recurrence, TriggerChannel
from dayzen.scheduling.grouping import TriggerGroup, group
from dayzen.scheduling.reminders import RECURRENCES, Reminder, as_local

Admission = Callable[[Reminder, datetime], bool]

log = logging.getLogger(__name__)

TYPE_EMOJI = {
    "daily": "📅",
    "weekly": "📆",
    "monthly": "🗓️",
}
_DEFAULT_EMOJI = "⏰"


def admits_intrusive(reminder: Reminder, now: datetime) -> bool:
    if not reminder.is_intrusive:
        return False
    if reminder.recurring == "daily":
        return True
    if reminder.recurring is not None:
        log.debug(
            "Intrusive %s reminder %s is not supported by the alarm channel",
            reminder.recurring,
            reminder.id,
        )
        return False
    at = reminder.timer_at()
    if at is None:
        return False
    if at < now:
        log.debug("Skipping expired intrusive alarm %s scheduled for %s", reminder.id, at)
        return False
    return True


def admits_regular(reminder: Reminder, now: datetime) -> bool:
    if reminder.is_intrusive:
        return False
    if reminder.recurring in RECURRENCES:
        return True
    at = reminder.timer_at()
    return at is not None and at > now


def type_title(kind: str, *, intrusive: bool = False) -> str:
    noun = "Alarm" if intrusive else "Reminder"
    if kind in TYPE_EMOJI:
        return f"{kind.capitalize()} {noun}"
    return noun


def build_payload(grp: TriggerGroup, *, intrusive: bool = False) -> Payload:
    emoji = TYPE_EMOJI.get(grp.kind, _DEFAULT_EMOJI)
    title = type_title(grp.kind, intrusive=intrusive)
    ids = tuple(grp.member_ids)
    if not grp.consolidated:
        return Payload(title=f"{emoji} {title}", body=grp.members[0].message, member_ids=ids)
    body = "\n".join(f"{i}. {r.message}" for i, r in enumerate(grp.members, start=1))
    return Payload(
        title=f"{emoji} {len(grp.members)} {title}s",
        body=body,
        member_ids=ids,
        kind="consolidated",
    )


def recurrence_for(grp: TriggerGroup) -> Recurrence | None:
    slot = grp.slot
    if slot.kind == "one_time":
        return None
    return Recurrence(slot.kind, slot.hour, slot.minute, weekday=slot.weekday, day=slot.day)


@dataclass(frozen=True, slots=True)
class ResyncResult:
    channel: str
    cancelled: int = 0
    registered: int = 0
    failed: int = 0
    admitted: int = 0


async def register_group(channel: TriggerChannel, grp: TriggerGroup) -> str:
    payload = build_payload(grp, intrusive=channel.intrusive)
    recurrence = recurrence_for(grp)
    if recurrence is not None:
        return await channel.register_recurring(recurrence, payload)
    assert grp.slot.run_at is not None
    return await channel.register_once(grp.slot.run_at, payload)


async def _cancel_all(channel: TriggerChannel) -> int:
    try:
        jobs = await channel.list_jobs()
    except Exception:
        log.exception("Listing %s jobs failed; registering on top of them", channel.name)
        return 0
    cancelled = 0
    for job in jobs:
        try:
            await channel.cancel(job.job_id)
            cancelled += 1
        except Exception:
            log.exception("Cancelling %s job %s failed", channel.name, job.job_id)
    return cancelled


async def resync(
    channel: TriggerChannel,
    reminders: list[Reminder],
    admits: Admission,
    now: datetime | None = None,
) -> ResyncResult:
    """Cancel every job on the channel, then register one job per group."""
    now = as_local(now)
    cancelled = await _cancel_all(channel)

    admitted = [r for r in reminders if admits(r, now)]
    groups = group(admitted, now)

    registered = failed = 0
    for grp in groups:
        try:
            job_id = await register_group(channel, grp)
        except Exception:
            failed += 1
            log.exception(
                "Registering %s %s group %s failed (%d reminders)",
                channel.name,
                grp.kind,
                grp.key,
                len(grp.members),
            )
            continue
        registered += 1
        log.debug("Registered %s job %s for %s group %s", channel.name, job_id, grp.kind, grp.key)

    log.info(
        "Resynced %s channel: %d cancelled, %d/%d jobs registered for %d reminders",
        channel.name,
        cancelled,
        registered,
        len(groups),
        len(admitted),
    )
    return ResyncResult(
        channel=channel.name,
        cancelled=cancelled,
        registered=registered,
        failed=failed,
        admitted=len(admitted),
    )


async def cancel_reminder(channel: TriggerChannel, reminder_id: str) -> int:
    """Cancel every job on the channel whose members include reminder_id.

    Surviving members of a consolidated job are not re-registered here; they
    stay unscheduled until the caller runs a full resync.
    """
    try:
        jobs = await channel.list_jobs()
    except Exception:
        log.exception("Listing %s jobs failed while cancelling %s", channel.name, reminder_id)
        return 0
    cancelled = 0
    for job in jobs:
        if reminder_id not in job.payload.member_ids:
            continue
        try:
            await channel.cancel(job.job_id)
            cancelled += 1
        except Exception:
            log.exception("Cancelling %s job %s failed", channel.name, job.job_id)
    log.info("Cancelled %d %s jobs for reminder %s", cancelled, channel.name, reminder_id)
    return cancelled


@dataclass
class Dispatcher:
    """Both channels, always resynced together."""

    intrusive: TriggerChannel
    regular: TriggerChannel

    def channel_for(self, reminder: Reminder) -> TriggerChannel:
        return self.intrusive if reminder.is_intrusive else self.regular

    async def resync_all(
        self, reminders: list[Reminder], now: datetime | None = None
    ) -> tuple[ResyncResult, ResyncResult]:
        now = as_local(now)
        intrusive = await resync(self.intrusive, reminders, admits_intrusive, now)
        regular = await resync(self.regular, reminders, admits_regular, now)
        return intrusive, regular

    async def cancel(self, reminder: Reminder) -> int:
        return await cancel_reminder(self.channel_for(reminder), reminder.id)
