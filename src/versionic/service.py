"""
Entry point for the versioned ``Books`` entity.

The transport layer calls these methods directly. Writes pass through the
field guard, which keeps ``validFrom`` / ``validTo`` out of caller control:
with the default ``FieldPolicy.STRIP`` they are silently discarded (clients
are told via the read-only schema), with ``FieldPolicy.REJECT`` the request
fails with ``ProtectedField``.
"""

from __future__ import annotations

import datetime as dt
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping

from pydantic import TypeAdapter

from .core.record import Record
from .errors import ProtectedField
from .events import EventRegistry
from .persistence.store import VersionedStore

logger = logging.getLogger(__name__)

GUARDED_FIELDS = ("validFrom", "validTo", "valid_from", "valid_to")

_ID = TypeAdapter(int)


class FieldPolicy(str, Enum):
    STRIP = "strip"
    REJECT = "reject"


class CatalogService:
    """Create/update/delete/read operations over one versioned entity."""

    def __init__(
        self,
        store: VersionedStore,
        *,
        field_policy: FieldPolicy = FieldPolicy.STRIP,
        events: EventRegistry | None = None,
    ):
        self.store = store
        self.field_policy = FieldPolicy(field_policy)
        self.events = events or EventRegistry()

    @property
    def entity_name(self) -> str:
        return self.store.record_type.entity_name

    # ---- field guard ----------------------------------------------------
    def guard(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Return ``payload`` without the system-managed timestamp fields."""
        present = [name for name in GUARDED_FIELDS if name in payload]
        if present and self.field_policy is FieldPolicy.REJECT:
            raise ProtectedField(
                f"{', '.join(present)} cannot be set by the caller", fields=present
            )
        if present:
            logger.debug("Dropping caller-supplied %s from %s payload", present, self.entity_name)
        return {k: v for k, v in payload.items() if k not in GUARDED_FIELDS}

    def _business(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        # anything else the caller sent along is ignored
        names = self.store.record_type.business_fields()
        return {name: payload[name] for name in names if name in payload}

    # ---- writes ---------------------------------------------------------
    def handle_create(self, payload: Mapping[str, Any]) -> Record:
        data = self.guard(payload)
        rec_id = _ID.validate_python(data.get("ID"))
        record = self.store.insert(rec_id, self._business(data))
        self.events.emit("create", record)
        return record

    def handle_update(self, rec_id: int, payload: Mapping[str, Any]) -> Record:
        data = self.guard(payload)
        record = self.store.update(rec_id, self._business(data))
        self.events.emit("update", record)
        return record

    def handle_delete(self, rec_id: int) -> Record:
        record = self.store.delete(rec_id)
        self.events.emit("delete", record)
        return record

    # ---- reads ----------------------------------------------------------
    def read(self, rec_id: int) -> Record:
        return self.store.get(rec_id)

    def list(self, **filters: Any) -> List[Record]:
        return list(self.store.read_active(**filters))

    def as_of(self, rec_id: int, at: dt.datetime) -> Record:
        return self.store.read_as_of(rec_id, at)

    def history(self, rec_id: int | None = None) -> List[Record]:
        return self.store.history(rec_id)

    def timeline(self, rec_id: int) -> List[Record]:
        return self.store.timeline(rec_id)
