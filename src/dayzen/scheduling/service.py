"""Single writer for the reminder list.

Every unit of work reads the current list, applies the change, persists it
and then resyncs both channels, all under one lock. Persisting first means a
failed resync leaves a correct list and stale jobs, which the next resync
repairs.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from dayzen.scheduling.dispatcher import Dispatcher, ResyncResult
from dayzen.scheduling.reminders import Reminder, ReminderStore
from dayzen.scheduling.status import schedule_confirmation

AfterResync = Callable[[], Awaitable[None]]

log = logging.getLogger(__name__)


class ReminderService:
    def __init__(
        self,
        store: ReminderStore,
        dispatcher: Dispatcher,
        *,
        after_resync: AfterResync | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.after_resync = after_resync
        self._lock = asyncio.Lock()
        self._reminders: list[Reminder] = []
        self._revision: tuple[int, int] | None = None

    @property
    def reminders(self) -> list[Reminder]:
        """Last list seen by this service; never reads the store."""
        return list(self._reminders)

    def _remember(self, reminders: list[Reminder]) -> None:
        self._reminders = list(reminders)
        self._revision = self.store.revision()

    async def _resync(self, now: datetime | None = None) -> tuple[ResyncResult, ResyncResult]:
        results = await self.dispatcher.resync_all(self._reminders, now)
        if self.after_resync is not None:
            try:
                await self.after_resync()
            except Exception:
                log.exception("Post-resync hook failed")
        return results

    async def start(self, now: datetime | None = None) -> list[Reminder]:
        """Load persisted reminders and rebuild both channels from them."""
        async with self._lock:
            self._remember(self.store.load())
            log.info("Loaded %d reminders", len(self._reminders))
            await self._resync(now)
            return self.reminders

    async def resync(self, now: datetime | None = None) -> tuple[ResyncResult, ResyncResult]:
        async with self._lock:
            return await self._resync(now)

    async def create(
        self,
        message: str,
        *,
        timer: datetime | str | None = None,
        is_intrusive: bool = False,
        recurring: str | None = None,
    ) -> Reminder:
        """Raises ValidationError before anything is written."""
        reminder = Reminder.new(
            message, timer=timer, is_intrusive=is_intrusive, recurring=recurring
        )
        async with self._lock:
            self._remember(self.store.add(reminder))
            log.info("Created reminder %s", reminder.id)
            await self._resync()
            if reminder.recurring:
                await schedule_confirmation(self.dispatcher.regular, reminder)
        return reminder

    async def edit(self, reminder_id: str, **changes: Any) -> Reminder:
        """Raises ReminderNotFoundError or ValidationError before anything is written."""
        async with self._lock:
            old = self.store.get(reminder_id)
            updated = old.edited(**changes)
            self._remember(self.store.replace(updated))
            log.info("Edited reminder %s", reminder_id)
            await self.dispatcher.cancel(old)
            await self._resync()
        return updated

    async def delete(self, reminder_id: str) -> Reminder:
        async with self._lock:
            reminder = self.store.get(reminder_id)
            await self.dispatcher.cancel(reminder)
            self._remember(self.store.remove(reminder_id))
            log.info("Deleted reminder %s", reminder_id)
            await self._resync()
        return reminder

    async def reload(self, now: datetime | None = None) -> bool:
        """Pick up changes written to the store by another process.

        Returns True when the store had changed and both channels were resynced.
        Reminders whose ids were not known before count as created; edited and
        deleted ones get their jobs cancelled first, as in edit() and delete().
        """
        async with self._lock:
            if self.store.revision() == self._revision:
                return False
            previous = {r.id: r for r in self._reminders}
            self._remember(self.store.load())
            current = {r.id: r for r in self._reminders}
            created = [r for r in self._reminders if r.id not in previous]
            stale = [old for rid, old in previous.items() if current.get(rid) != old]
            log.info(
                "Reminder list changed on disk: %d reminders, %d new, %d edited or deleted",
                len(self._reminders),
                len(created),
                len(stale),
            )
            for old in stale:
                await self.dispatcher.cancel(old)
            await self._resync(now)
            for reminder in created:
                if reminder.recurring:
                    await schedule_confirmation(self.dispatcher.regular, reminder, now=now)
            return True
