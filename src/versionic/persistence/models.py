"""
Two-table schema per versioned entity:

* ``books``          – active versions only (``valid_to`` always NULL)
* ``books_history``  – closed versions, append-only
"""

import datetime as dt
from dataclasses import dataclass
from typing import Type

from sqlalchemy import Column, DateTime, Integer, String, TypeDecorator
from sqlalchemy.orm import declarative_base

from ..core.record import Book, Record

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps, also on engines that drop the offset."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime cannot be stored as a validity bound")
        value = value.astimezone(dt.timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value.astimezone(dt.timezone.utc)


class TemporalColumns:
    """Columns every current and history row carries."""

    version = Column(Integer, nullable=False, default=1)
    valid_from = Column(UTCDateTime, nullable=False)


class BookRow(TemporalColumns, Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=False)
    valid_to = Column(UTCDateTime, nullable=True)
    title = Column(String, nullable=True)
    stock = Column(Integer, nullable=True)


class BookHistoryRow(TemporalColumns, Base):
    __tablename__ = "books_history"

    history_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Integer, nullable=False, index=True)
    valid_to = Column(UTCDateTime, nullable=False)
    operation = Column(String(10), nullable=False)  # 'UPDATE' | 'DELETE'
    title = Column(String, nullable=True)
    stock = Column(Integer, nullable=True)


@dataclass(frozen=True)
class VersionedEntity:
    """Binds a record model to its current and history tables."""

    record_type: Type[Record]
    current: type
    history: type

    @property
    def name(self) -> str:
        return self.record_type.entity_name


BOOKS = VersionedEntity(record_type=Book, current=BookRow, history=BookHistoryRow)
