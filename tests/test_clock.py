"""Timestamp sources and identity locks."""

from __future__ import annotations

import datetime as dt

import pytest

from conftest import T0
from versionic.clock import RESOLUTION, ManualClock, SystemClock
from versionic.errors import ConcurrentModification
from versionic.persistence.locks import IdentityLocks


def test_system_clock_is_strictly_increasing_and_utc():
    clock = SystemClock()

    stamps = [clock.now() for _ in range(500)]

    assert all(s.tzinfo is dt.timezone.utc for s in stamps)
    assert all(a < b for a, b in zip(stamps, stamps[1:]))


def test_system_clock_survives_wall_clock_step_back(monkeypatch):
    clock = SystemClock()
    first = clock.now()
    monkeypatch.setattr("versionic.clock.now_utc", lambda: first - dt.timedelta(hours=1))

    assert clock.now() == first + RESOLUTION


def test_manual_clock_steps_and_advances():
    clock = ManualClock(start=T0, step=dt.timedelta(seconds=2))

    assert clock.now() == T0
    assert clock.now() == T0 + dt.timedelta(seconds=2)
    assert clock.advance(minutes=1) == T0 + dt.timedelta(seconds=4, minutes=1)

    frozen = ManualClock(start=T0)
    assert frozen.now() == frozen.now() == T0


def test_locks_are_dropped_once_released():
    locks = IdentityLocks(timeout=0.01)

    with locks.hold(1):
        assert len(locks) == 1
        with pytest.raises(ConcurrentModification):
            with locks.hold(1):
                pass  # pragma: no cover
        assert len(locks) == 1

    assert len(locks) == 0
