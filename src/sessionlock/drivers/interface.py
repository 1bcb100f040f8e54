"""
Backend lock driver interface.

A lock driver speaks one database engine's native session-level locking
protocol. Drivers are stateless between calls: everything they need is
derived from the connection and the LockTarget passed to each call. They
borrow the connection, never close it, and never commit or roll back; the
primitives they use survive both.

Every acquire/release is a three-outcome exchange (granted, contended, or
protocol error) which drivers collapse to ``bool`` or ``LockError``:

- ``acquire`` returns True when granted, False when another session holds
  the lock, and raises LockError on any unexpected status code
- ``release`` returns None on success and raises LockError otherwise
- ``introspect`` returns the current holder, or None when there is none

SQLAlchemy exceptions are left to propagate; the lock service wraps them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection

    from sessionlock.keys import LockTarget
    from sessionlock.models import LockInfo

PRIORITY_DEFAULT = 1
"""Priority of the baseline lock-table-row mechanism every driver outranks."""

PRIORITY_SESSION = PRIORITY_DEFAULT + 1
"""Priority reported by the session-level drivers in this package."""

DEFAULT_REQUEST_TIMEOUT = 5.0
"""Server-side wait, in seconds, for a single lock request."""


@runtime_checkable
class LockDriver(Protocol):
    """
    Protocol for backend lock drivers.

    Attributes:
        name: Short driver name used in logs and span attributes
        priority: Selection priority; strictly above PRIORITY_DEFAULT

    Example:
        >>> class MyDriver:
        ...     name = "mydb"
        ...     priority = PRIORITY_SESSION
        ...
        ...     def supports(self, dialect: Dialect) -> bool:
        ...         return dialect.name == "mydb"
        ...
        ...     async def acquire(self, conn, target) -> bool: ...
        ...     async def release(self, conn, target) -> None: ...
        ...     async def introspect(self, conn, target) -> LockInfo | None: ...
    """

    name: str
    priority: int

    def supports(self, dialect: Dialect) -> bool:
        """Whether this driver can lock databases of ``dialect``. Never raises."""
        ...

    async def acquire(self, conn: AsyncConnection, target: LockTarget) -> bool:
        """Try to take the lock for ``target`` on the session behind ``conn``."""
        ...

    async def release(self, conn: AsyncConnection, target: LockTarget) -> None:
        """Release the lock for ``target`` held by the session behind ``conn``."""
        ...

    async def introspect(self, conn: AsyncConnection, target: LockTarget) -> LockInfo | None:
        """Describe the current holder of the lock for ``target``, if any."""
        ...


def format_status(value: object) -> str:
    """Render a backend status value for error messages (None as NULL)."""
    return "NULL" if value is None else str(value)


def validate_timeout(timeout: float) -> float:
    """Check a driver request timeout, returning it unchanged."""
    if timeout <= 0:
        raise ValueError(
            f"timeout must be positive, got {timeout}. "
            f"Use a short value like {DEFAULT_REQUEST_TIMEOUT} (default); "
            "longer waits belong in SessionLockService.wait_for_lock()."
        )
    return timeout


__all__ = [
    "DEFAULT_REQUEST_TIMEOUT",
    "PRIORITY_DEFAULT",
    "PRIORITY_SESSION",
    "LockDriver",
    "format_status",
    "validate_timeout",
]
