"""Tests for reminder_cmd.py and status_cmd.py CLI handlers."""

import io
import os
import subprocess
import sys
from datetime import datetime

import pytest
import yaml

from dayzen.scheduling.reminder_cmd import parse_when, run_reminder_command
from dayzen.scheduling.reminders import ReminderStore, ValidationError
from dayzen.scheduling.status import ChannelStatus, JobDetail, StatusReport, save_snapshot
from dayzen.scheduling.status_cmd import run_status_command
from dayzen.storage import TZ


def _capture_stdout(fn, *args):
    old = sys.stdout
    sys.stdout = buf = io.StringIO()
    try:
        fn(*args)
    finally:
        sys.stdout = old
    return buf.getvalue()


def _added_id(output: str) -> str:
    return output.split()[1].rstrip(":")


def test_parse_when_clock_time_is_today():
    now = datetime(2026, 3, 10, 12, 0, tzinfo=TZ)

    assert parse_when("8:05", now) == datetime(2026, 3, 10, 8, 5, tzinfo=TZ).isoformat()


def test_parse_when_passes_iso_through():
    assert parse_when("2026-11-02T14:00") == "2026-11-02T14:00"


def test_parse_when_bad_clock_time_raises():
    with pytest.raises(ValidationError):
        parse_when("25:00")


def test_reminder_add_and_list(data_dir):
    output = _capture_stdout(
        run_reminder_command, ["add", "-m", "stand up", "--at", "10:30", "--recurring", "daily"]
    )
    assert "scheduled" in output
    assert "daily 10:30" in output

    output = _capture_stdout(run_reminder_command, ["list"])
    assert "Recurring:" in output
    assert "stand up" in output


def test_reminder_add_one_off_lists_as_upcoming(data_dir):
    _capture_stdout(
        run_reminder_command, ["add", "-m", "dentist", "--at", "2099-11-02T14:00", "--intrusive"]
    )

    output = _capture_stdout(run_reminder_command, ["list"])

    assert "Upcoming:" in output
    assert "! at 2099-11-02 14:00" in output


def test_reminder_add_persists_camel_case_record(data_dir):
    output = _capture_stdout(
        run_reminder_command, ["add", "-m", "review", "--recurring", "weekly"]
    )

    (reminder,) = ReminderStore().load()
    assert reminder.id == _added_id(output)
    assert reminder.recurring == "weekly"
    assert '"isIntrusive": false' in (data_dir / "items.json").read_text()


def test_reminder_add_one_off_without_time_fails(data_dir):
    with pytest.raises(SystemExit) as exc_info:
        _capture_stdout(run_reminder_command, ["add", "-m", "someday"])

    assert exc_info.value.code == 1
    assert ReminderStore().load() == []


def test_reminder_add_empty_message_fails(data_dir, capsys):
    with pytest.raises(SystemExit):
        run_reminder_command(["add", "-m", "  ", "--recurring", "daily"])

    assert "Please enter a reminder message" in capsys.readouterr().out


def test_reminder_edit(data_dir):
    output = _capture_stdout(
        run_reminder_command, ["add", "-m", "old", "--at", "2099-01-01T09:00"]
    )
    reminder_id = _added_id(output)

    output = _capture_stdout(
        run_reminder_command, ["edit", reminder_id, "-m", "new", "--recurring", "monthly"]
    )

    assert f"updated {reminder_id}" in output
    (reminder,) = ReminderStore().load()
    assert (reminder.message, reminder.recurring) == ("new", "monthly")


def test_reminder_edit_to_one_off_and_intrusive(data_dir):
    output = _capture_stdout(
        run_reminder_command, ["add", "-m", "wake", "--at", "2099-01-01T06:00", "--recurring", "daily"]
    )
    reminder_id = _added_id(output)

    _capture_stdout(run_reminder_command, ["edit", reminder_id, "--one-off", "--intrusive"])

    (reminder,) = ReminderStore().load()
    assert reminder.recurring is None
    assert reminder.is_intrusive is True


def test_reminder_edit_unknown_fails(data_dir, capsys):
    with pytest.raises(SystemExit):
        run_reminder_command(["edit", "ghost", "-m", "x"])

    assert "reminder ghost not found" in capsys.readouterr().out


def test_reminder_delete(data_dir):
    output = _capture_stdout(
        run_reminder_command, ["add", "-m", "to delete", "--recurring", "daily"]
    )
    reminder_id = _added_id(output)

    output = _capture_stdout(run_reminder_command, ["delete", reminder_id])
    assert f"deleted {reminder_id}" in output

    output = _capture_stdout(run_reminder_command, ["list"])
    assert "no reminders" in output


def test_reminder_delete_unknown_fails(data_dir):
    with pytest.raises(SystemExit):
        _capture_stdout(run_reminder_command, ["delete", "ghost"])


def test_reminder_without_action_prints_help(data_dir):
    with pytest.raises(SystemExit):
        _capture_stdout(run_reminder_command, [])


def test_status_without_snapshot_fails(data_dir, capsys):
    with pytest.raises(SystemExit):
        run_status_command([])

    assert "no status yet" in capsys.readouterr().out


def test_status_prints_snapshot_as_yaml(data_dir):
    save_snapshot(
        StatusReport(
            permission="granted",
            channels=[ChannelStatus(name="regular", scheduled=2, single=2, total_reminders=2)],
            generated_at="2026-03-10T12:00:00-07:00",
        )
    )

    output = _capture_stdout(run_status_command, [])

    data = yaml.safe_load(output)
    assert data["permission"] == "granted"
    assert data["channels"][0]["name"] == "regular"
    assert data["channels"][0]["scheduled"] == 2


def test_concurrent_adds_from_separate_processes_all_persist(data_dir):
    env = {**os.environ, "DAYZEN_DATA_DIR": str(data_dir)}
    procs = [
        subprocess.Popen(
            [sys.executable, "-m", "dayzen.main", "reminder", "add", "-m", f"m{i}", "--recurring", "daily"],
            env=env,
            stdout=subprocess.DEVNULL,
        )
        for i in range(20)
    ]

    assert [proc.wait(timeout=60) for proc in procs] == [0] * 20
    assert {r.message for r in ReminderStore().load()} == {f"m{i}" for i in range(20)}


def test_status_upcoming_lists_jobs_in_order(data_dir):
    jobs = [
        JobDetail("intrusive", "intrusive_1", "⏰ Alarm", "flight", "single", "one_time", 1,
                  "at 2026-03-10 20:00", "2026-03-10T20:00:00-07:00"),
        JobDetail("regular", "regular_1", "📅 2 Daily Reminders", "1. a\n2. b", "consolidated",
                  "daily", 2, "daily 09:00", "2026-03-11T09:00:00-07:00"),
    ]
    save_snapshot(
        StatusReport(
            permission="granted",
            channels=[],
            generated_at="2026-03-10T12:00:00-07:00",
            upcoming=jobs,
        )
    )

    output = _capture_stdout(run_status_command, ["--upcoming"])

    assert output.splitlines() == [
        "Upcoming (as of 2026-03-10T12:00:00-07:00):",
        "  2026-03-10 20:00  intrusive  ⏰ Alarm",
        "  2026-03-11 09:00  regular    📅 2 Daily Reminders (2)",
    ]


def test_status_upcoming_when_nothing_scheduled(data_dir):
    save_snapshot(StatusReport(permission="granted", channels=[], generated_at="2026-03-10T12:00:00-07:00"))

    output = _capture_stdout(run_status_command, ["--upcoming"])

    assert output == "nothing scheduled\n"
