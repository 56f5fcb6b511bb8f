"""
Injectable timestamp sources.

The store asks its clock for ``now()`` exactly once per mutation and uses
that value for both the archived row's ``valid_to`` and the new row's
``valid_from``.
"""

from __future__ import annotations

import datetime as dt
import threading
from typing import Protocol

# smallest step representable by DateTime columns on SQLite and PostgreSQL
RESOLUTION = dt.timedelta(microseconds=1)


def now_utc() -> dt.datetime:  # compact timezone‑aware timestamp
    return dt.datetime.now(tz=dt.timezone.utc)


class Clock(Protocol):
    def now(self) -> dt.datetime: ...


class SystemClock:
    """Wall clock that never repeats or goes backwards within this process.

    Two calls landing in the same microsecond (or a wall-clock step back)
    are bumped to ``last + 1µs``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: dt.datetime | None = None

    def now(self) -> dt.datetime:
        with self._lock:
            current = now_utc()
            if self._last is not None and current <= self._last:
                current = self._last + RESOLUTION
            self._last = current
            return current


class ManualClock:
    """Clock that only moves when told to. Used by tests and replays.

    With ``step`` set, every ``now()`` call moves the clock forward by that
    amount after answering.
    """

    def __init__(
        self, start: dt.datetime | None = None, step: dt.timedelta | None = None
    ):
        self._current = start or dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
        self._step = step
        self._lock = threading.Lock()

    def now(self) -> dt.datetime:
        with self._lock:
            current = self._current
            if self._step is not None:
                self._current = current + self._step
            return current

    def set(self, value: dt.datetime) -> None:
        with self._lock:
            self._current = value

    def advance(self, **delta: float) -> dt.datetime:
        """Move forward by ``timedelta(**delta)`` and return the new time."""
        with self._lock:
            self._current = self._current + dt.timedelta(**delta)
            return self._current
