"""File-backed key-value store and shared JSON I/O for persistent data files."""

import fcntl
import json
import logging
import os
import re
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from dayzen.config import DATA_DIR as DATA_DIR
from dayzen.config import TZ as TZ

STATE_DIR = DATA_DIR / "state"

log = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def atomic_write(filepath: Path, content: str) -> None:
    """Write via temp file + rename so readers never see a partial file."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=filepath.parent, suffix=".tmp")
    try:
        os.write(fd, content.encode())
    finally:
        os.close(fd)
    os.replace(tmp, filepath)


def read_json(filepath: Path) -> Any | None:
    """None when the file is missing or not valid JSON."""
    if not filepath.exists():
        return None
    try:
        return json.loads(filepath.read_text())
    except json.JSONDecodeError:
        log.warning("Skipping corrupt file: %s", filepath)
        return None


def write_json(filepath: Path, data: Any) -> None:
    atomic_write(filepath, json.dumps(data, ensure_ascii=False))


class KeyValueStore:
    """String values addressed by key, one file per key under a directory.

    Mirrors the secure-store style API of mobile platforms: values are opaque
    strings, a missing key reads as None.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory if directory is not None else DATA_DIR

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self._directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text() or None

    def set(self, key: str, value: str) -> None:
        atomic_write(self._path(key), value)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def revision(self, key: str) -> tuple[int, int] | None:
        """Cheap change marker (mtime_ns, size); None when the key is unset."""
        path = self._path(key)
        try:
            st = path.stat()
        except FileNotFoundError:
            return None
        return st.st_mtime_ns, st.st_size

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        """Exclusive lock on `key` across processes, held for the whole block.

        Uses a sibling `<key>.lock` file so the value file itself can still be
        replaced atomically while the lock is held. Not reentrant.
        """
        path = self._path(key).with_suffix(".lock")
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
