"""
MySQL and MariaDB user-level lock drivers.

A lock obtained with ``GET_LOCK()`` is released explicitly by executing
``RELEASE_LOCK()`` or implicitly when the session terminates, normally or
abnormally. Such locks are not released when transactions commit or roll
back.

See:
    https://dev.mysql.com/doc/refman/8.0/en/locking-functions.html
    https://mariadb.com/kb/en/get_lock/
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from sessionlock.drivers.interface import (
    DEFAULT_REQUEST_TIMEOUT,
    PRIORITY_SESSION,
    format_status,
    validate_timeout,
)
from sessionlock.exceptions import LockError
from sessionlock.keys import lock_name
from sessionlock.models import LockInfo

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection

    from sessionlock.keys import LockTarget

logger = logging.getLogger(__name__)

SQL_GET_LOCK = "SELECT GET_LOCK(:lock_name, :timeout)"
SQL_RELEASE_LOCK = "SELECT RELEASE_LOCK(:lock_name)"
SQL_LOCK_INFO = (
    "SELECT l.processlist_id AS processlist_id,"
    " p.host AS host,"
    " p.time AS time,"
    " p.state AS state"
    " FROM (SELECT IS_USED_LOCK(:lock_name) AS processlist_id) AS l"
    " LEFT JOIN information_schema.processlist p"
    " ON p.id = l.processlist_id"
)

# MySQL 5.7 and later reject lock names longer than 64 characters.
MAX_LOCK_NAME_LENGTH = 64


class MySQLLockDriver:
    """
    Lock driver using MySQL ``GET_LOCK()`` / ``RELEASE_LOCK()``.

    The lock name is ``SCHEMA.TABLE`` upper-cased and cut to 64 characters.
    Long schema names can therefore collide; the engine's name limit is the
    bottleneck there.

    Example:
        >>> driver = MySQLLockDriver(timeout=5.0)
        >>> service = SessionLockService(driver, conn, "app_schema")
    """

    name = "mysql"
    priority = PRIORITY_SESSION

    def __init__(self, *, timeout: float = DEFAULT_REQUEST_TIMEOUT) -> None:
        """
        Initialize the driver.

        Args:
            timeout: Seconds GET_LOCK() waits for a contended lock before
                reporting it as held by another session
        """
        self._timeout = validate_timeout(timeout)

    def supports(self, dialect: Dialect) -> bool:
        return dialect.name == "mysql" and not getattr(dialect, "is_mariadb", False)

    def lock_name(self, target: LockTarget) -> str:
        """Lock name for ``target`` as passed to the locking functions."""
        return lock_name(target, MAX_LOCK_NAME_LENGTH)

    async def acquire(self, conn: AsyncConnection, target: LockTarget) -> bool:
        name = self.lock_name(target)
        result = await conn.execute(
            text(SQL_GET_LOCK),
            {"lock_name": name, "timeout": math.ceil(self._timeout)},
        )
        locked = _as_int(result.scalar())
        logger.debug("GET_LOCK(%s) returned %s", name, locked)

        if locked is None:
            raise LockError("GET_LOCK() returned NULL", lock_name=name)
        if locked == 0:
            return False
        if locked != 1:
            raise LockError(f"GET_LOCK() returned {locked}", lock_name=name, code=locked)
        return True

    async def release(self, conn: AsyncConnection, target: LockTarget) -> None:
        name = self.lock_name(target)
        result = await conn.execute(text(SQL_RELEASE_LOCK), {"lock_name": name})
        unlocked = _as_int(result.scalar())
        logger.debug("RELEASE_LOCK(%s) returned %s", name, unlocked)

        if unlocked != 1:
            raise LockError(
                f"RELEASE_LOCK() returned {format_status(unlocked)}",
                lock_name=name,
                code=unlocked,
            )

    async def introspect(self, conn: AsyncConnection, target: LockTarget) -> LockInfo | None:
        """
        Describe the session holding the lock.

        ``IS_USED_LOCK()`` yields the holder's connection id, which is joined
        against the process list for host and state. The grant time is
        approximated as "now minus the time the holder has spent in its
        current state"; the server does not record when the lock was taken.
        """
        name = self.lock_name(target)
        result = await conn.execute(text(SQL_LOCK_INFO), {"lock_name": name})
        row = result.mappings().first()
        if row is None or row["processlist_id"] is None:
            return None

        granted_at = datetime.now(UTC)
        busy_seconds = row["time"]
        if busy_seconds:
            granted_at -= timedelta(seconds=int(busy_seconds))
        return LockInfo(id=1, granted_at=granted_at, locked_by=_locked_by(row))


class MariaDBLockDriver(MySQLLockDriver):
    """
    Lock driver using MariaDB ``GET_LOCK()`` / ``RELEASE_LOCK()``.

    MariaDB speaks the same user-lock protocol as MySQL; only dialect
    detection differs. SQLAlchemy reports MariaDB either as the ``mariadb``
    dialect or as ``mysql`` with ``is_mariadb`` set after connecting.

    See:
        https://mariadb.com/kb/en/miscellaneous-functions/
    """

    name = "mariadb"

    def supports(self, dialect: Dialect) -> bool:
        if dialect.name == "mariadb":
            return True
        return dialect.name == "mysql" and bool(getattr(dialect, "is_mariadb", False))


def _as_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _locked_by(row: Mapping[str, Any]) -> str:
    host = row["host"]
    if host is None:
        return f"connection_id#{row['processlist_id']}"

    # processlist reports client hosts as "host:port"
    colon_index = host.rfind(":")
    if colon_index > 0:
        host = host[:colon_index]
    return f"{host} ({row['state']})"


__all__ = [
    "MAX_LOCK_NAME_LENGTH",
    "MariaDBLockDriver",
    "MySQLLockDriver",
]
