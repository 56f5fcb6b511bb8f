"""
Error taxonomy for the versioned store and its entry point.

Every error carries a stable ``code`` and a ``retryable`` flag so the
transport layer can report it without knowing the concrete class.
"""

from __future__ import annotations

from typing import Any


class VersioningError(Exception):
    """Base class – recoverable, reportable to the caller."""

    code: str = "VERSIONING_ERROR"
    retryable: bool = False

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            **self.details,
        }


class DuplicateKey(VersioningError):
    """Insert on an identity that already has an active record."""

    code = "DUPLICATE_KEY"


class NotFound(VersioningError):
    """No active record (or no version covering the instant) for an identity."""

    code = "NOT_FOUND"


class ConcurrentModification(VersioningError):
    """A conflicting mutation on the same identity won; retry the call."""

    code = "CONCURRENT_MODIFICATION"
    retryable = True


class ClockSkew(VersioningError):
    """``now()`` did not move past the identity's last recorded timestamp."""

    code = "CLOCK_SKEW"
    retryable = True


class ProtectedField(VersioningError):
    """Caller tried to write a system-managed field."""

    code = "PROTECTED_FIELD"


class UnknownField(VersioningError):
    """Field name is not a business attribute of the entity."""

    code = "UNKNOWN_FIELD"
