"""Per-path serialization of file mutations."""

from __future__ import annotations

import asyncio


class PathLocks:
    """One asyncio.Lock per path, created on first use.

    Resolution and staging both acquire the lock of the path they
    touch, so at most one mutation per file is in flight while
    different files proceed independently. Waiters are served in
    FIFO order, which makes each lock a per-path request queue.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def __call__(self, path: str) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        return lock

    def busy(self, path: str) -> bool:
        """Whether an operation on path is currently in flight."""
        lock = self._locks.get(path)
        return lock is not None and lock.locked()

    def discard(self, path: str) -> None:
        """Forget an idle path's lock (after it leaves the session)."""
        lock = self._locks.get(path)
        if lock is not None and not lock.locked():
            del self._locks[path]
