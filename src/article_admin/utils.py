"""
Utility functions for filesystem paths, timestamps and per-key locking.

This module provides helper functions for:
- Ensuring directory creation with proper error handling
- Splitting file extensions from client-supplied filenames
- Producing the UTC timestamps stamped onto article rows
- Serializing work on the same article across request threads
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import DefaultDict, Iterator


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def split_extension(filename: str) -> tuple[str, str]:
    """
    Split a filename into stem and extension components.

    Only the final component of ``filename`` is considered, so client paths such
    as ``C:\\photos\\cover.png`` or ``../cover.png`` cannot leak directories.

    Example:
        >>> split_extension("cover.JPG")
        ("cover", ".JPG")
        >>> split_extension("archive.tar.gz")
        ("archive.tar", ".gz")
    """
    path = Path(filename.replace("\\", "/")).name
    return Path(path).stem, Path(path).suffix


def utc_now_iso() -> str:
    """Current instant as an ISO-8601 string in UTC with microsecond precision."""
    return datetime.now(timezone.utc).isoformat()


class KeyedLock:
    """
    One mutex per key, created on demand.

    Used to serialize cover-image replacement and deletion for the same article
    so two requests cannot both read the old cover and race on the file. Locks
    are process-local; entries are dropped once no thread holds or waits on them.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, Lock] = {}
        self._waiters: DefaultDict[str, int] = defaultdict(int)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, Lock())
            self._waiters[key] += 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
