"""
Public surface for versionic.
Importing this module does **not** touch the database; call
`versionic.init_versionic(engine)` (or `versionic.runtime.create_app`)
during application start-up.
"""

from .bootstrap import init_versionic
from .clock import ManualClock, SystemClock
from .config import Settings
from .core.record import Book, Record
from .errors import (
    ClockSkew,
    ConcurrentModification,
    DuplicateKey,
    NotFound,
    ProtectedField,
    UnknownField,
    VersioningError,
)
from .persistence.store import DeletePolicy, UpdatePolicy, VersionedStore
from .service import CatalogService, FieldPolicy

__all__ = [
    "Book",
    "CatalogService",
    "ClockSkew",
    "ConcurrentModification",
    "DeletePolicy",
    "DuplicateKey",
    "FieldPolicy",
    "ManualClock",
    "NotFound",
    "ProtectedField",
    "Record",
    "Settings",
    "SystemClock",
    "UnknownField",
    "UpdatePolicy",
    "VersionedStore",
    "VersioningError",
    "init_versionic",
]
