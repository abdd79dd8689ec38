"""User-configurable values loaded from environment variables."""

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

_NOTIFIERS = ("desktop", "log")


def _fail(message: str) -> None:
    print(message, file=sys.stderr)
    print("Set it in .env or your environment.", file=sys.stderr)
    raise SystemExit(1)


def _detect_local_tz() -> str:
    """Detect the system's IANA timezone name. Falls back to UTC."""
    # Debian/Ubuntu: plain text file with IANA name
    etc_tz = Path("/etc/timezone")
    if etc_tz.exists():
        name = etc_tz.read_text().strip()
        if name:
            return name

    # Most Linux/WSL: /etc/localtime is a symlink into zoneinfo
    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        target = str(localtime.resolve())
        marker = "/zoneinfo/"
        idx = target.find(marker)
        if idx != -1:
            return target[idx + len(marker) :]

    return "UTC"


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        _fail(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        _fail(f"{name} must be at least {minimum}, got {value}")
    return value


def _parse_time(name: str, default: str) -> tuple[int, int]:
    raw = os.environ.get(name) or default
    try:
        hour_s, minute_s = raw.split(":", 1)
        hour, minute = int(hour_s), int(minute_s)
    except ValueError:
        _fail(f"{name} must look like HH:MM, got {raw!r}")
    if not (0 <= hour < 24 and 0 <= minute < 60):
        _fail(f"{name} is out of range: {raw!r}")
    return hour, minute


_TZ_NAME = os.environ.get("DAYZEN_TIMEZONE") or _detect_local_tz()
try:
    TZ: ZoneInfo = ZoneInfo(_TZ_NAME)
except (ZoneInfoNotFoundError, ValueError):
    _fail(f"Unknown timezone: {_TZ_NAME!r} (set DAYZEN_TIMEZONE to an IANA zone name)")

DATA_DIR: Path = Path(os.environ.get("DAYZEN_DATA_DIR") or Path.home() / ".dayzen").expanduser()

# Slot used by recurring reminders that carry no timer
DEFAULT_HOUR, DEFAULT_MINUTE = _parse_time("DAYZEN_DEFAULT_TIME", "09:00")

CONFIRMATION_DELAY: int = _int_env("DAYZEN_CONFIRMATION_DELAY", 3)  # seconds
TICK_SECONDS: int = _int_env("DAYZEN_TICK_SECONDS", 60, minimum=1)
SYNC_SECONDS: int = _int_env("DAYZEN_SYNC_SECONDS", 10, minimum=1)

NOTIFIER: str = (os.environ.get("DAYZEN_NOTIFIER") or "desktop").lower()
if NOTIFIER not in _NOTIFIERS:
    _fail(f"DAYZEN_NOTIFIER must be one of {', '.join(_NOTIFIERS)}, got {NOTIFIER!r}")

LOG_LEVEL: str = (os.environ.get("DAYZEN_LOG_LEVEL") or "INFO").upper()
