"""Entry point for dayzen."""

from __future__ import annotations

import asyncio
import atexit
import logging
import os
import signal
import sys
from pathlib import Path

from dayzen import config
from dayzen.storage import STATE_DIR

PID_FILE = STATE_DIR / "daemon.pid"


HELP = """\
dayzen -- reminders and alarms with consolidated notifications

commands:
  dayzen                   Run the scheduler daemon
  dayzen reminder add      Create a reminder (one-off or recurring)
  dayzen reminder edit     Edit a reminder by ID
  dayzen reminder list     Show reminders by category
  dayzen reminder delete   Delete a reminder by ID
  dayzen status            Show the daemon's last scheduling status
  dayzen help              Show this help message

examples:
  dayzen reminder add -m "stand up" --at 10:30 --recurring daily
  dayzen reminder add -m "dentist" --at 2026-11-02T14:00 --intrusive
  dayzen reminder list

signals:
  SIGUSR1 stops the alarm that is currently ringing.
"""

log = logging.getLogger(__name__)


def _setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def _check_already_running() -> None:
    PID_FILE.parent.mkdir(parents=True, exist_ok=True)
    if PID_FILE.exists():
        try:
            pid = int(PID_FILE.read_text().strip() or 0)
        except ValueError:
            log.warning("Ignoring unreadable pid file %s", PID_FILE)
            pid = 0
        proc_cmdline = Path(f"/proc/{pid}/cmdline")
        if pid and proc_cmdline.exists() and "dayzen" in proc_cmdline.read_bytes().decode(errors="replace"):
            print(f"dayzen is already running (pid {pid})")
            raise SystemExit(1)
    PID_FILE.write_text(str(os.getpid()))
    atexit.register(PID_FILE.unlink, missing_ok=True)


def _dispatch_subcommand() -> bool:
    """Route CLI subcommands. Returns True if handled."""
    if len(sys.argv) < 2:
        return False
    cmd = sys.argv[1]
    rest = sys.argv[2:]
    if cmd in ("help", "--help", "-h"):
        print(HELP)
        return True
    routes: dict[str, tuple[str, str]] = {
        "reminder": ("dayzen.scheduling.reminder_cmd", "run_reminder_command"),
        "status": ("dayzen.scheduling.status_cmd", "run_status_command"),
    }
    if cmd in routes:
        from importlib import import_module

        mod_path, func_name = routes[cmd]
        getattr(import_module(mod_path), func_name)(rest)
        return True
    print(f"unknown command: {cmd}\n")
    print(HELP)
    raise SystemExit(1)


async def _run() -> None:
    """Run the daemon until SIGTERM/SIGINT."""
    from dayzen.notifier import create_notifier
    from dayzen.scheduling.scheduler import setup_scheduler

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    runtime = setup_scheduler(create_notifier())

    def _on_signal(sig_name: str) -> None:
        log.info("Received %s, shutting down", sig_name)
        stop.set()

    loop.add_signal_handler(signal.SIGTERM, _on_signal, "SIGTERM")
    loop.add_signal_handler(signal.SIGINT, _on_signal, "SIGINT")
    loop.add_signal_handler(signal.SIGUSR1, runtime.alarm.stop)

    # Starting up counts as the user looking at the app: silence any alarm
    runtime.alarm.stop()
    runtime.scheduler.start()
    try:
        await runtime.service.start()
        runtime.ticker.tick()
        await stop.wait()
    finally:
        runtime.scheduler.shutdown(wait=False)


def main() -> None:
    if _dispatch_subcommand():
        return

    _setup_logging()
    _check_already_running()
    asyncio.run(_run())


if __name__ == "__main__":
    main()
