"""Per-identity mutual exclusion with a bounded wait."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, Tuple

from ..errors import ConcurrentModification

logger = logging.getLogger(__name__)


class IdentityLocks:
    """One lock per key, created on demand and dropped when nobody holds it."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._guard = threading.Lock()
        # key -> (lock, number of threads holding or waiting)
        self._locks: Dict[Hashable, Tuple[threading.Lock, int]] = {}

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
            return lock

    def _release(self, key: Hashable) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    @contextmanager
    def hold(self, key: Hashable, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for ``key``; raise ``ConcurrentModification`` on timeout."""
        wait = self.timeout if timeout is None else timeout
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=wait):
                logger.warning("Timed out after %.2fs waiting for lock on %r", wait, key)
                raise ConcurrentModification(
                    f"another mutation on {key!r} is still in progress",
                    key=str(key),
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
