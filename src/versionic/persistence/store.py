"""
Versioned data-access layer around the current/history table pair.

Every mutation runs inside one transaction, under the identity's lock, with
a single ``now()`` shared by the archived row and the new row.
"""

from __future__ import annotations

import datetime as dt
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Mapping

from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..clock import Clock, SystemClock
from ..core.record import Record
from ..errors import ClockSkew, ConcurrentModification, DuplicateKey, NotFound
from ..errors import ProtectedField, UnknownField
from .locks import IdentityLocks
from .models import BOOKS, VersionedEntity

logger = logging.getLogger(__name__)


class UpdatePolicy(str, Enum):
    """What happens to ``valid_from`` when an active record is updated."""

    REFRESH = "refresh"  # new version starts at the update instant
    PRESERVE = "preserve"  # version keeps its original start


class DeletePolicy(str, Enum):
    SOFT = "soft"  # close the interval, keep history
    HARD = "hard"  # erase the active row and every archived version


class _StaleRow(Exception):
    """Compare-and-swap on ``version`` matched no row."""


class VersionedStore:
    """Current table + append-only history table for one entity type."""

    def __init__(
        self,
        engine: Engine,
        entity: VersionedEntity = BOOKS,
        *,
        clock: Clock | None = None,
        update_policy: UpdatePolicy = UpdatePolicy.REFRESH,
        delete_policy: DeletePolicy = DeletePolicy.SOFT,
        lock_timeout: float = 5.0,
        max_attempts: int = 3,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.engine = engine
        self.entity = entity
        self.clock = clock or SystemClock()
        self.update_policy = UpdatePolicy(update_policy)
        self.delete_policy = DeletePolicy(delete_policy)
        self.max_attempts = max_attempts
        self.locks = IdentityLocks(timeout=lock_timeout)

    @property
    def record_type(self) -> type[Record]:
        return self.entity.record_type

    def _new_session(self) -> Session:  # separate to keep pylint happy
        return Session(bind=self.engine, future=True)

    # ---- writes ---------------------------------------------------------
    def insert(self, rec_id: int, fields: Mapping[str, Any]) -> Record:
        """Create the first active version of ``rec_id``."""
        self._check_fields(fields)
        current = self.entity.current
        with self.locks.hold(rec_id):
            try:
                with self._new_session() as s, s.begin():
                    if s.get(current, rec_id) is not None:
                        raise DuplicateKey(self._label(rec_id) + " is already active", id=rec_id)
                    now = self.clock.now()
                    self._check_clock(s, rec_id, now)
                    record = self.record_type(
                        ID=rec_id, valid_from=now, valid_to=None, version=1, **fields
                    )
                    s.add(current(**self._row_values(record)))
            except IntegrityError as exc:
                # lost an insert race against another process
                raise DuplicateKey(self._label(rec_id) + " is already active", id=rec_id) from exc
        logger.info("Inserted %s v%d", self._label(rec_id), record.version)
        return record

    def update(self, rec_id: int, fields: Mapping[str, Any]) -> Record:
        """Archive the active version of ``rec_id`` and apply ``fields``.

        Attributes missing from ``fields`` keep their current value.
        """
        self._check_fields(fields)
        with self.locks.hold(rec_id):
            record = self._retry(rec_id, lambda: self._update_once(rec_id, fields))
        logger.info("Updated %s to v%d", self._label(rec_id), record.version)
        return record

    def delete(self, rec_id: int) -> Record:
        """End the active version of ``rec_id``; returns it with ``valid_to`` set."""
        with self.locks.hold(rec_id):
            record = self._retry(rec_id, lambda: self._delete_once(rec_id))
        logger.info(
            "Deleted %s (%s delete)", self._label(rec_id), self.delete_policy.value
        )
        return record

    def _retry(self, rec_id: int, attempt_fn: Callable[[], Record]) -> Record:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return attempt_fn()
            except _StaleRow:
                logger.warning(
                    "%s changed underneath us (attempt %d/%d)",
                    self._label(rec_id),
                    attempt,
                    self.max_attempts,
                )
        raise ConcurrentModification(
            f"{self._label(rec_id)} kept changing; gave up after {self.max_attempts} attempts",
            id=rec_id,
        )

    def _update_once(self, rec_id: int, fields: Mapping[str, Any]) -> Record:
        current = self.entity.current
        with self._new_session() as s, s.begin():
            before = self._active(s, rec_id)
            now = self.clock.now()
            self._check_clock(s, rec_id, now, before)

            valid_from = now
            if self.update_policy is UpdatePolicy.PRESERVE:
                valid_from = before.valid_from
            after = self.record_type(
                ID=rec_id,
                valid_from=valid_from,
                valid_to=None,
                version=before.version + 1,
                **{**before.business_data(), **fields},
            )

            self._archive(s, before, now, "UPDATE")
            result = s.execute(
                update(current)
                .where(current.id == rec_id, current.version == before.version)
                .values(**self._row_values(after))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise _StaleRow()
        return after

    def _delete_once(self, rec_id: int) -> Record:
        current, history = self.entity.current, self.entity.history
        with self._new_session() as s, s.begin():
            before = self._active(s, rec_id)
            now = self.clock.now()
            self._check_clock(s, rec_id, now, before)

            if self.delete_policy is DeletePolicy.HARD:
                s.execute(
                    delete(history)
                    .where(history.id == rec_id)
                    .execution_options(synchronize_session=False)
                )
            else:
                self._archive(s, before, now, "DELETE")
            result = s.execute(
                delete(current)
                .where(current.id == rec_id, current.version == before.version)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise _StaleRow()
        return before.closed(now)

    def _archive(self, s: Session, record: Record, at: dt.datetime, operation: str) -> None:
        history = self.entity.history
        s.add(history(**self._row_values(record.closed(at)), operation=operation))
        logger.debug("Archived %s v%d (%s)", self._label(record.ID), record.version, operation)

    # ---- reads ----------------------------------------------------------
    def get(self, rec_id: int) -> Record:
        """Return the active version of ``rec_id``."""
        with self._new_session() as s:
            return self._active(s, rec_id)

    def read_active(
        self, predicate: Callable[[Record], bool] | None = None, **filters: Any
    ) -> Iterator[Record]:
        """Yield active records matching ``filters`` (SQL) and ``predicate`` (Python)."""
        current = self.entity.current
        q = select(current).where(current.valid_to.is_(None))
        for name, value in filters.items():
            q = q.where(self._column(current, name) == value)
        q = q.order_by(current.id)
        with self._new_session() as s:
            for (row,) in s.execute(q):
                record = self._to_record(row)
                if predicate is None or predicate(record):
                    yield record

    def read_as_of(self, rec_id: int, at: dt.datetime) -> Record:
        """Return the version of ``rec_id`` whose interval contains ``at``.

        Naive ``at`` values are taken to be UTC.
        """
        if at.tzinfo is None:
            at = at.replace(tzinfo=dt.timezone.utc)
        current, history = self.entity.current, self.entity.history
        with self._new_session() as s:
            # under PRESERVE archived versions share a start, so the earliest
            # end after ``at`` is the version that was active then
            q = (
                select(history)
                .where(history.id == rec_id, history.valid_from <= at, history.valid_to > at)
                .order_by(history.valid_to, history.history_id)
                .limit(1)
            )
            row = s.execute(q).scalars().first()
            if row is not None:
                return self._to_record(row)
            row = s.get(current, rec_id)
            if row is not None:
                record = self._to_record(row)
                if record.covers(at):
                    return record
        raise NotFound(
            f"no version of {self._label(rec_id)} covers {at.isoformat()}", id=rec_id
        )

    def history(self, rec_id: int | None = None) -> List[Record]:
        """Audit view: archived versions, oldest first per identity."""
        history = self.entity.history
        q = select(history)
        if rec_id is not None:
            q = q.where(history.id == rec_id)
        q = q.order_by(history.id, history.valid_from, history.history_id)
        with self._new_session() as s:
            return [self._to_record(row) for (row,) in s.execute(q)]

    def timeline(self, rec_id: int) -> List[Record]:
        """Every known version of ``rec_id``, archived ones first."""
        versions = self.history(rec_id)
        try:
            versions.append(self.get(rec_id))
        except NotFound:
            if not versions:
                raise
        return versions

    # ---- helpers --------------------------------------------------------
    def _label(self, rec_id: Any) -> str:
        return f"{self.entity.name} {rec_id}"

    def _active(self, s: Session, rec_id: int) -> Record:
        row = s.get(self.entity.current, rec_id)
        if row is None:
            raise NotFound(f"{self._label(rec_id)} has no active version", id=rec_id)
        return self._to_record(row)

    def _check_fields(self, fields: Mapping[str, Any]) -> None:
        protected = self.record_type.protected_keys()
        allowed = set(self.record_type.business_fields())
        for name in fields:
            if name in protected:
                raise ProtectedField(f"{name!r} is system-managed", field=name)
            if name not in allowed:
                raise UnknownField(
                    f"{self.entity.name} has no writable attribute {name!r}", field=name
                )

    def _column(self, table: type, name: str):
        if name == "ID":
            return table.id
        if name not in self.record_type.business_fields():
            raise UnknownField(f"cannot filter {self.entity.name} by {name!r}", field=name)
        return getattr(table, name)

    def _check_clock(
        self, s: Session, rec_id: int, now: dt.datetime, before: Record | None = None
    ) -> None:
        """Reject a ``now`` that does not move past the identity's last instant."""
        history = self.entity.history
        last_closed = s.execute(
            select(func.max(history.valid_to)).where(history.id == rec_id)
        ).scalar()
        instants = [t for t in (last_closed, before and before.valid_from) if t]
        if instants and now <= max(instants):
            raise ClockSkew(
                f"clock returned {now.isoformat()} but {self._label(rec_id)} "
                f"already has an interval bound at {max(instants).isoformat()}",
                id=rec_id,
            )

    def _row_values(self, record: Record) -> Dict[str, Any]:
        return {
            "id": record.ID,
            "version": record.version,
            "valid_from": record.valid_from,
            "valid_to": record.valid_to,
            **record.business_data(),
        }

    def _to_record(self, row: Any) -> Record:
        data = {
            "ID": row.id,
            "version": row.version,
            "valid_from": row.valid_from,
            "valid_to": row.valid_to,
        }
        for name in self.record_type.business_fields():
            data[name] = getattr(row, name)
        return self.record_type.model_validate(data)
