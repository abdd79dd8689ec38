"""Deliver fired jobs to the user.

DesktopNotifier goes through notify-send; intrusive alarms use critical
urgency so they stay on screen until dismissed.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from typing import Literal, Protocol

from dayzen import config

Urgency = Literal["low", "normal", "critical"]

log = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, title: str, body: str, *, urgency: Urgency = "normal") -> bool: ...

    def permission_state(self) -> str: ...


class LogNotifier:
    async def notify(self, title: str, body: str, *, urgency: Urgency = "normal") -> bool:
        log.info("[%s] %s: %s", urgency, title, body.replace("\n", " | "))
        return True

    def permission_state(self) -> str:
        return "granted"


class DesktopNotifier:
    def __init__(self, binary: str = "notify-send", app_name: str = "dayzen") -> None:
        self.binary = binary
        self.app_name = app_name

    def permission_state(self) -> str:
        return "granted" if shutil.which(self.binary) else "unavailable"

    def _send(self, title: str, body: str, urgency: Urgency) -> bool:
        cmd = [self.binary, f"--urgency={urgency}", f"--app-name={self.app_name}", title]
        if body:
            cmd.append(body)
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=5)
        except (OSError, subprocess.TimeoutExpired) as exc:
            log.warning("notify-send failed: %s", exc)
            return False
        if result.returncode != 0:
            log.warning(
                "notify-send exited %d: %s",
                result.returncode,
                result.stderr.decode(errors="replace").strip(),
            )
            return False
        return True

    async def notify(self, title: str, body: str, *, urgency: Urgency = "normal") -> bool:
        return await asyncio.to_thread(self._send, title, body, urgency)


def create_notifier(kind: str | None = None) -> Notifier:
    kind = kind or config.NOTIFIER
    if kind == "log":
        return LogNotifier()
    notifier = DesktopNotifier()
    if notifier.permission_state() != "granted":
        log.warning("notify-send not found; falling back to log notifications")
        return LogNotifier()
    return notifier
