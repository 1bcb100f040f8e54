"""
PostgreSQL advisory lock driver.

Uses the two-key form of session-level advisory locks:
- Independent of table/row locks
- Held until explicitly released or the session ends
- Not released by COMMIT or ROLLBACK
- Acquired without blocking via ``pg_try_advisory_lock``

The two keys are derived from the lock table and schema names, so several
schemas in one database each get their own lock.

See:
    https://www.postgresql.org/docs/current/explicit-locking.html#ADVISORY-LOCKS
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import text

from sessionlock.drivers.interface import PRIORITY_SESSION, format_status
from sessionlock.exceptions import LockError
from sessionlock.keys import advisory_key_pair, to_oid
from sessionlock.models import LockInfo

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection

    from sessionlock.keys import LockTarget

logger = logging.getLogger(__name__)

# Two-key advisory locks appeared in pg_locks with objsubid = 2 from 9.1 on
MIN_SERVER_VERSION = (9, 1)

SQL_TRY_LOCK = "SELECT pg_try_advisory_lock(:key1, :key2)"
SQL_UNLOCK = "SELECT pg_advisory_unlock(:key1, :key2)"
SQL_LOCK_INFO = (
    "SELECT l.pid AS pid,"
    " a.client_hostname AS client_hostname,"
    " a.backend_start AS backend_start,"
    " a.state AS state"
    " FROM pg_locks l"
    " LEFT JOIN pg_stat_activity a ON l.pid = a.pid"
    " WHERE l.locktype = 'advisory'"
    " AND l.classid = :classid"
    " AND l.objid = :objid"
    " AND l.objsubid = 2"
    " AND l.granted"
)


class PostgreSQLLockDriver:
    """
    Lock driver using PostgreSQL two-key advisory locks.

    Example:
        >>> driver = PostgreSQLLockDriver()
        >>> async with engine.connect() as conn:
        ...     service = SessionLockService(driver, conn, "public")
        ...     async with service.locked():
        ...         await run_migrations(conn)
    """

    name = "postgresql"
    priority = PRIORITY_SESSION

    def supports(self, dialect: Dialect) -> bool:
        if dialect.name != "postgresql":
            return False
        try:
            version = tuple(dialect.server_version_info[:2])  # type: ignore[index]
            return version >= MIN_SERVER_VERSION
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Problem querying database version: %s", e)
            return False

    async def acquire(self, conn: AsyncConnection, target: LockTarget) -> bool:
        key1, key2 = advisory_key_pair(target)
        result = await conn.execute(text(SQL_TRY_LOCK), {"key1": key1, "key2": key2})
        locked = result.scalar()
        logger.debug("pg_try_advisory_lock(%d, %d) returned %s", key1, key2, locked)
        if locked is None:
            raise LockError(
                "pg_try_advisory_lock() returned NULL",
                lock_name=target.qualified_name,
            )
        return bool(locked)

    async def release(self, conn: AsyncConnection, target: LockTarget) -> None:
        key1, key2 = advisory_key_pair(target)
        result = await conn.execute(text(SQL_UNLOCK), {"key1": key1, "key2": key2})
        unlocked = result.scalar()
        logger.debug("pg_advisory_unlock(%d, %d) returned %s", key1, key2, unlocked)
        if unlocked is not True:
            raise LockError(
                f"pg_advisory_unlock() returned {format_status(unlocked)}",
                lock_name=target.qualified_name,
            )

    async def introspect(self, conn: AsyncConnection, target: LockTarget) -> LockInfo | None:
        """
        Look the lock up in ``pg_locks``.

        ``pg_locks`` stores the two keys as unsigned oids. The holder's backend
        start is reported as the grant time.
        """
        key1, key2 = advisory_key_pair(target)
        result = await conn.execute(
            text(SQL_LOCK_INFO),
            {"classid": to_oid(key1), "objid": to_oid(key2)},
        )
        row = result.mappings().first()
        if row is None:
            return None

        hostname = row["client_hostname"]
        if hostname is None:
            locked_by = f"pid#{row['pid']}"
        else:
            locked_by = f"{hostname} ({row['state']})"
        return LockInfo(id=1, granted_at=row["backend_start"], locked_by=locked_by)


__all__ = [
    "MIN_SERVER_VERSION",
    "PostgreSQLLockDriver",
]
