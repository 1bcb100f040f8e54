"""
Lock information model.

LockInfo is the read-only snapshot returned by lock introspection. It
describes who holds (or last held) the migration lock as far as the backend
is able to tell.
"""

from dataclasses import dataclass
from datetime import datetime

UNKNOWN_HOLDER = "UNKNOWN"


@dataclass(frozen=True)
class LockInfo:
    """
    Information about an observed lock.

    All fields are best-effort. Several backends cannot report when the lock
    was granted and substitute the holder's session start, login time, or the
    time of the query.

    Attributes:
        id: Backend-specific lock handle. Backends without distinguishable
            handles always report ``1``.
        granted_at: When the lock was granted (approximation), if known
        locked_by: Human-readable owner description (host, session, user)

    Example:
        >>> info = LockInfo(id=1, granted_at=None, locked_by="db-host (idle)")
        >>> info.describe()
        'db-host (idle)'
    """

    id: int
    granted_at: datetime | None
    locked_by: str

    def describe(self) -> str:
        """Holder description with the grant time appended when known."""
        if self.granted_at is None:
            return self.locked_by
        return f"{self.locked_by} since {self.granted_at:%Y-%m-%d %H:%M}"

    def __str__(self) -> str:
        """Human-readable string representation."""
        return f"LockInfo(#{self.id}, {self.describe()})"


__all__ = [
    "UNKNOWN_HOLDER",
    "LockInfo",
]
