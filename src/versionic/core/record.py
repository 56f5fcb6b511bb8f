"""
Record kernel – *pure Pydantic* (no SQLAlchemy imports).

* A Record is one version of a keyed entity: stable ``ID``, business
  attributes and the system-managed validity interval.
* ``valid_to is None`` ➜ active version; otherwise the row is history.
* System fields are read-only on the wire and never accepted from callers.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, ClassVar, Dict, Tuple, TypeVar

from pydantic import BaseModel, Field

T_Record = TypeVar("T_Record", bound="Record")

_READ_ONLY = {"readOnly": True}


class Record(BaseModel):
    """Base class – subclasses declare the business attributes."""

    ID: int
    valid_from: dt.datetime = Field(alias="validFrom", json_schema_extra=_READ_ONLY)
    valid_to: dt.datetime | None = Field(
        default=None, alias="validTo", json_schema_extra=_READ_ONLY
    )
    version: int = Field(default=1, json_schema_extra=_READ_ONLY)

    entity_name: ClassVar[str] = "Record"
    system_fields: ClassVar[frozenset[str]] = frozenset(
        {"valid_from", "valid_to", "version"}
    )
    model_config = {"frozen": True, "populate_by_name": True}

    # ---- field metadata -------------------------------------------------
    @classmethod
    def business_fields(cls) -> Tuple[str, ...]:
        """Attribute names a caller may write (everything but key + system)."""
        return tuple(
            name
            for name in cls.model_fields
            if name != "ID" and name not in cls.system_fields
        )

    @classmethod
    def protected_keys(cls) -> frozenset[str]:
        """System field names in both python and wire spelling."""
        keys = set(cls.system_fields)
        for name in cls.system_fields:
            alias = cls.model_fields[name].alias
            if alias:
                keys.add(alias)
        return frozenset(keys)

    # ---- state ----------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self.valid_to is None

    def business_data(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.business_fields()}

    def closed(self: T_Record, at: dt.datetime) -> T_Record:
        """Copy of this version with its interval closed at ``at``."""
        return self.model_copy(update={"valid_to": at})

    def covers(self, at: dt.datetime) -> bool:
        """True when ``at`` falls inside ``[valid_from, valid_to)``."""
        if at < self.valid_from:
            return False
        return self.valid_to is None or at < self.valid_to


class Book(Record):
    """Catalog entry with change history."""

    entity_name: ClassVar[str] = "Books"

    title: str | None = None
    stock: int | None = None

