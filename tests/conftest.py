"""Shared fixtures for dayzen tests."""

import os

os.environ.setdefault("DAYZEN_TIMEZONE", "America/Los_Angeles")
os.environ.setdefault("DAYZEN_NOTIFIER", "log")
os.environ.setdefault("DAYZEN_DEFAULT_TIME", "09:00")

from datetime import datetime

import pytest

from dayzen.scheduling.channels import JobDescriptor, Payload, Recurrence
from dayzen.scheduling.dispatcher import Dispatcher
from dayzen.scheduling.reminders import Reminder
from dayzen.storage import TZ

# A Tuesday, noon
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=TZ)


def at(month: int, day: int, hour: int, minute: int = 0, *, year: int = 2026) -> str:
    return datetime(year, month, day, hour, minute, tzinfo=TZ).isoformat()


def make(
    rid: str,
    message: str | None = None,
    *,
    timer: str | None = None,
    recurring: str | None = None,
    intrusive: bool = False,
) -> Reminder:
    return Reminder(
        id=rid,
        message=message or f"msg {rid}",
        timer=timer,
        is_intrusive=intrusive,
        recurring=recurring,  # type: ignore[arg-type]
    )


class FakeChannel:
    """In-memory TriggerChannel with switchable failures."""

    def __init__(self, name: str = "regular", intrusive: bool = False) -> None:
        self.name = name
        self.intrusive = intrusive
        self.jobs: dict[str, JobDescriptor] = {}
        self.fail_list = False
        self.fail_cancel: set[str] = set()
        self.fail_register_titles: set[str] = set()
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"{self.name}_{self._counter}"

    def _check(self, payload: Payload) -> None:
        if payload.title in self.fail_register_titles:
            raise RuntimeError(f"backend refused {payload.title}")

    async def register_recurring(self, recurrence: Recurrence, payload: Payload) -> str:
        self._check(payload)
        job_id = self._next_id()
        self.jobs[job_id] = JobDescriptor(job_id, payload, recurrence=recurrence)
        return job_id

    async def register_once(self, run_at: datetime, payload: Payload) -> str:
        self._check(payload)
        job_id = self._next_id()
        self.jobs[job_id] = JobDescriptor(job_id, payload, run_at=run_at)
        return job_id

    async def list_jobs(self) -> list[JobDescriptor]:
        if self.fail_list:
            raise RuntimeError("backend unavailable")
        return list(self.jobs.values())

    async def cancel(self, job_id: str) -> None:
        if job_id in self.fail_cancel:
            raise RuntimeError(f"cannot cancel {job_id}")
        del self.jobs[job_id]


@pytest.fixture()
def data_dir(tmp_path, monkeypatch):
    """Redirect all data file paths to a temp directory."""
    import dayzen.main as main_mod
    import dayzen.scheduling.status as status_mod
    import dayzen.storage as storage_mod

    state_dir = tmp_path / "state"
    monkeypatch.setattr(storage_mod, "DATA_DIR", tmp_path)
    monkeypatch.setattr(storage_mod, "STATE_DIR", state_dir)
    monkeypatch.setattr(status_mod, "STATUS_FILE", state_dir / "status.json")
    monkeypatch.setattr(main_mod, "PID_FILE", state_dir / "daemon.pid")
    return tmp_path


@pytest.fixture()
def intrusive_channel():
    return FakeChannel("intrusive", intrusive=True)


@pytest.fixture()
def regular_channel():
    return FakeChannel("regular")


@pytest.fixture()
def dispatcher(intrusive_channel, regular_channel):
    return Dispatcher(intrusive=intrusive_channel, regular=regular_channel)
