"""
SQLite exclusive-mode lock driver.

SQLite has no advisory locks. This driver switches the connection to
``locking_mode = EXCLUSIVE`` and runs an empty exclusive transaction, after
which the connection keeps the database file's exclusive lock until the
locking mode is set back to NORMAL and the file is touched again. Closing the
connection drops the lock as well.

When the connection already has a transaction open (sqlite3 opens one
implicitly before the first INSERT, UPDATE or DELETE), no new transaction can
be started. The driver then only switches to exclusive mode and reads the
schema; the open transaction keeps its locks and its first write (or its
commit) escalates to the exclusive lock, which exclusive mode keeps after the
commit. A transaction that has not written yet holds only a shared lock, so
the lock is fully exclusive from the first write onwards.

This blocks every other connection to the same database file, readers
included, for as long as the lock is held. It is meant for single-process
and test setups and is not production grade. Introspection cannot tell who
holds the lock and reports a placeholder.

See:
    https://www.sqlite.org/pragma.html#pragma_locking_mode
    https://www.sqlite.org/lang_transaction.html
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from sessionlock.drivers.interface import (
    DEFAULT_REQUEST_TIMEOUT,
    PRIORITY_SESSION,
    validate_timeout,
)
from sessionlock.models import LockInfo

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection

    from sessionlock.keys import LockTarget

logger = logging.getLogger(__name__)

SQL_EXCLUSIVE_MODE = "PRAGMA locking_mode = EXCLUSIVE"
SQL_NORMAL_MODE = "PRAGMA locking_mode = NORMAL"
SQL_BEGIN_EXCLUSIVE = "BEGIN EXCLUSIVE"
SQL_COMMIT = "COMMIT"
# any read makes SQLite drop the lock kept by the exclusive locking mode
SQL_TOUCH = "SELECT count(*) FROM sqlite_master"

PLACEHOLDER_HOLDER = "sessionlock"

_CONTENTION_MESSAGES = ("database is locked", "database is busy")


class SQLiteLockDriver:
    """
    Lock driver holding SQLite's file-level exclusive lock.

    The lock covers the whole database file; the schema and lock table names
    do not partition it.
    """

    name = "sqlite"
    priority = PRIORITY_SESSION

    def __init__(self, *, timeout: float = DEFAULT_REQUEST_TIMEOUT) -> None:
        self._timeout = validate_timeout(timeout)

    def supports(self, dialect: Dialect) -> bool:
        return dialect.name == "sqlite"

    async def acquire(self, conn: AsyncConnection, target: LockTarget) -> bool:
        in_transaction = await _in_transaction(conn)
        busy_timeout_ms = math.ceil(self._timeout * 1000)
        await conn.execute(text(f"PRAGMA busy_timeout = {busy_timeout_ms:d}"))
        await conn.execute(text(SQL_EXCLUSIVE_MODE))
        try:
            if in_transaction:
                await conn.execute(text(SQL_TOUCH))
            else:
                await conn.execute(text(SQL_BEGIN_EXCLUSIVE))
                await conn.execute(text(SQL_COMMIT))
        except OperationalError as e:
            if not _is_contention(e):
                raise
            logger.debug("Exclusive lock for %s not granted: %s", target.qualified_name, e.orig)
            await conn.execute(text(SQL_NORMAL_MODE))
            return False
        logger.debug("Holding exclusive lock for %s", target.qualified_name)
        return True

    async def release(self, conn: AsyncConnection, target: LockTarget) -> None:
        await conn.execute(text(SQL_NORMAL_MODE))
        await conn.execute(text(SQL_TOUCH))
        logger.debug("Dropped exclusive lock for %s", target.qualified_name)

    async def introspect(self, conn: AsyncConnection, target: LockTarget) -> LockInfo | None:
        return LockInfo(id=1, granted_at=datetime.now(UTC), locked_by=PLACEHOLDER_HOLDER)


async def _in_transaction(conn: AsyncConnection) -> bool:
    raw = await conn.get_raw_connection()
    return bool(getattr(raw.driver_connection, "in_transaction", False))


def _is_contention(error: OperationalError) -> bool:
    message = str(error.orig).lower()
    return any(fragment in message for fragment in _CONTENTION_MESSAGES)


__all__ = [
    "PLACEHOLDER_HOLDER",
    "SQLiteLockDriver",
]
