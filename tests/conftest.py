"""Shared fixtures: a throwaway SQLite catalog and a stepping clock."""

from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy import create_engine

from versionic.clock import ManualClock
from versionic.persistence.models import BOOKS, Base
from versionic.persistence.store import VersionedStore

T0 = dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.timezone.utc)
STEP = dt.timedelta(seconds=1)


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'catalog.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def clock() -> ManualClock:
    """Answers T0, T0+1s, T0+2s, ... one tick per mutation."""
    return ManualClock(start=T0, step=STEP)


@pytest.fixture
def store(engine, clock) -> VersionedStore:
    return VersionedStore(engine, BOOKS, clock=clock)


def tick(n: int) -> dt.datetime:
    """Timestamp handed out by the ``clock`` fixture on its n-th call (0-based)."""
    return T0 + n * STEP


def assert_version_invariants(store: VersionedStore, rec_id: int) -> None:
    """At most one active version; intervals ordered and non-overlapping."""
    versions = store.timeline(rec_id)
    active = [v for v in versions if v.is_active]
    assert len(active) <= 1
    if active:
        assert versions[-1].is_active
    for earlier, later in zip(versions, versions[1:]):
        assert earlier.valid_to is not None
        assert earlier.valid_from < earlier.valid_to
        assert earlier.valid_to <= later.valid_from
