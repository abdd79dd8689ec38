"""The alarm that is currently ringing, if any.

Owned by the daemon and handed to whatever needs to ring, stop or query it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from dayzen.scheduling.channels import Payload
from dayzen.storage import TZ

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RingingAlarm:
    job_id: str
    payload: Payload
    since: datetime


class AlarmContext:
    def __init__(self) -> None:
        self._current: RingingAlarm | None = None

    @property
    def current(self) -> RingingAlarm | None:
        return self._current

    def is_ringing(self) -> bool:
        return self._current is not None

    def ring(self, job_id: str, payload: Payload) -> RingingAlarm:
        """A new alarm replaces one that is still ringing."""
        if self._current is not None:
            log.info("Alarm %s superseded by %s", self._current.job_id, job_id)
        self._current = RingingAlarm(job_id, payload, datetime.now(TZ))
        return self._current

    def stop(self) -> RingingAlarm | None:
        stopped, self._current = self._current, None
        if stopped is not None:
            log.info("Stopped alarm %s (%s)", stopped.job_id, stopped.payload.title)
        return stopped
