"""
Oracle user lock driver based on the DBMS_LOCK package.

Oracle user locks are addressed through a numeric handle that
``DBMS_LOCK.ALLOCATE_UNIQUE`` derives from the lock name. The handle belongs
to Oracle's lock namespace, not to this process, so it is allocated again
before every request, release and lookup.

Locks requested with ``release_on_commit => FALSE`` stay with the session
until released or until the session ends.

See:
    https://docs.oracle.com/en/database/oracle/oracle-database/19/arpls/DBMS_LOCK.html
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import Integer, String, outparam, text
from sqlalchemy.exc import DBAPIError

from sessionlock.drivers.interface import (
    DEFAULT_REQUEST_TIMEOUT,
    PRIORITY_SESSION,
    validate_timeout,
)
from sessionlock.exceptions import LockError
from sessionlock.keys import lock_name
from sessionlock.models import LockInfo

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection

    from sessionlock.keys import LockTarget

logger = logging.getLogger(__name__)

X_MODE = 6
"""DBMS_LOCK.X_MODE, exclusive lock mode."""

SQL_ALLOCATE_LOCK = text(
    "BEGIN DBMS_LOCK.ALLOCATE_UNIQUE(lockname => :lock_name, lockhandle => :lock_handle); END;"
).bindparams(outparam("lock_handle", String))

SQL_GET_LOCK = text(
    "BEGIN :rc := DBMS_LOCK.REQUEST("
    "lockhandle => :lock_handle, lockmode => :lock_mode, "
    "timeout => :timeout, release_on_commit => FALSE); END;"
).bindparams(outparam("rc", Integer))

SQL_RELEASE_LOCK = text(
    "BEGIN :rc := DBMS_LOCK.RELEASE(lockhandle => :lock_handle); END;"
).bindparams(outparam("rc", Integer))

# Needs SELECT on v$lock and v$session
SQL_LOCK_INFO = text(
    "SELECT s.sid AS session_id,"
    " l.ctime AS held_seconds,"
    " s.username AS db_user,"
    " s.osuser AS os_user,"
    " s.machine AS host"
    " FROM v$lock l"
    " JOIN v$session s ON s.sid = l.sid"
    " WHERE l.type = 'UL' AND l.id1 = :lock_id AND l.lmode = :lock_mode"
)

SQL_SESSION_INFO = text(
    "SELECT SYS_CONTEXT('USERENV', 'SESSIONID') AS session_id,"
    " SYS_CONTEXT('USERENV', 'CURRENT_USER') AS db_user,"
    " SYS_CONTEXT('USERENV', 'INSTANCE_NAME') AS instance_name,"
    " SYS_CONTEXT('USERENV', 'HOST') AS host,"
    " SYS_CONTEXT('USERENV', 'OS_USER') AS os_user"
    " FROM DUAL"
)

REQUEST_ERRORS = {
    2: "deadlock",
    3: "parameter error",
    4: "already own lock specified by lockHandle",
    5: "illegal lock handle",
}
RELEASE_ERRORS = {
    3: "parameter error",
    4: "do not own lock specified by lockHandle",
    5: "illegal lock handle",
}

# ORA-00942: table or view does not exist, ORA-01031: insufficient privileges
_PRIVILEGE_ERRORS = ("ORA-00942", "ORA-01031")

# Allocated handles start with the 10-digit lock id (1073741824 - 1999999999)
_LOCK_ID_DIGITS = 10


class OracleLockDriver:
    """
    Lock driver using ``DBMS_LOCK.REQUEST`` / ``DBMS_LOCK.RELEASE``.

    The schema user needs EXECUTE on DBMS_LOCK. Reporting the actual lock
    holder additionally needs SELECT on ``v$lock`` and ``v$session``; without
    those grants, introspection describes the current session instead.

    Example:
        >>> driver = OracleLockDriver(privileged_introspection=False)
        >>> service = SessionLockService(driver, conn, "APP")
    """

    name = "oracle"
    priority = PRIORITY_SESSION

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        privileged_introspection: bool = True,
    ) -> None:
        """
        Initialize the driver.

        Args:
            timeout: Seconds DBMS_LOCK.REQUEST waits for a contended lock
            privileged_introspection: Query v$lock/v$session for the holder.
                When False, or when the views are not accessible, only the
                current session's context is reported.
        """
        self._timeout = validate_timeout(timeout)
        self._privileged_introspection = privileged_introspection

    def supports(self, dialect: Dialect) -> bool:
        return dialect.name == "oracle"

    async def allocate(self, conn: AsyncConnection, target: LockTarget) -> str:
        """Allocate (or look up) the lock handle for ``target``."""
        result = await conn.execute(SQL_ALLOCATE_LOCK, {"lock_name": lock_name(target)})
        return result.out_parameters["lock_handle"]

    async def acquire(self, conn: AsyncConnection, target: LockTarget) -> bool:
        name = lock_name(target)
        handle = await self.allocate(conn, target)
        result = await conn.execute(
            SQL_GET_LOCK,
            {
                "lock_handle": handle,
                "lock_mode": X_MODE,
                "timeout": math.ceil(self._timeout),
            },
        )
        rc = result.out_parameters["rc"]
        logger.debug("dbms_lock.request() for lock %s returned %s", name, rc)

        if rc == 0:
            return True
        if rc == 1:
            # timeout, lock held by another session
            return False
        reason = REQUEST_ERRORS.get(rc, f"unknown status {rc}")
        raise LockError(
            f"dbms_lock.request() for lock {name} returned {reason}",
            lock_name=name,
            code=rc,
        )

    async def release(self, conn: AsyncConnection, target: LockTarget) -> None:
        name = lock_name(target)
        handle = await self.allocate(conn, target)
        result = await conn.execute(SQL_RELEASE_LOCK, {"lock_handle": handle})
        rc = result.out_parameters["rc"]
        logger.debug("dbms_lock.release() for lock %s returned %s", name, rc)

        if rc != 0:
            reason = RELEASE_ERRORS.get(rc, f"unknown status {rc}")
            raise LockError(
                f"dbms_lock.release() for lock {name} returned {reason}",
                lock_name=name,
                code=rc,
            )

    async def introspect(self, conn: AsyncConnection, target: LockTarget) -> LockInfo | None:
        """
        Describe the lock holder.

        With access to ``v$lock``/``v$session`` the session holding the lock
        in exclusive mode is reported. Otherwise Oracle offers no way to see
        another session's user locks, and the current session's context is
        reported with the query time as grant time. That fallback is
        incomplete by nature.
        """
        handle = await self.allocate(conn, target)
        lock_id = _lock_id(handle)

        if self._privileged_introspection:
            try:
                return await self._holder_info(conn, lock_id)
            except DBAPIError as e:
                if not _is_privilege_error(e):
                    raise
                logger.warning(
                    "Cannot read v$lock/v$session, describing current session instead: %s",
                    e.orig,
                )

        return await self._session_info(conn, lock_id)

    async def _holder_info(self, conn: AsyncConnection, lock_id: int) -> LockInfo | None:
        result = await conn.execute(SQL_LOCK_INFO, {"lock_id": lock_id, "lock_mode": X_MODE})
        row = result.mappings().first()
        if row is None:
            return None

        granted_at = datetime.now(UTC)
        if row["held_seconds"]:
            granted_at -= timedelta(seconds=int(row["held_seconds"]))
        locked_by = (
            f"(session_id={row['session_id']})"
            f"(current_user={row['db_user']})"
            f"(os_user={row['os_user']})"
            f"(host={row['host']})"
        )
        return LockInfo(id=lock_id, granted_at=granted_at, locked_by=locked_by)

    async def _session_info(self, conn: AsyncConnection, lock_id: int) -> LockInfo | None:
        result = await conn.execute(SQL_SESSION_INFO)
        row = result.mappings().first()
        if row is None:
            return None

        locked_by = (
            f"(session_id={row['session_id']})"
            f"(current_user={row['db_user']})"
            f"(instance_name={row['instance_name']})"
            f"(os_user={row['os_user']})"
            f"(host={row['host']})"
        )
        return LockInfo(id=lock_id, granted_at=datetime.now(UTC), locked_by=locked_by)


def _lock_id(handle: Any) -> int:
    handle = str(handle) if handle is not None else ""
    if len(handle) >= _LOCK_ID_DIGITS:
        try:
            return int(handle[:_LOCK_ID_DIGITS])
        except ValueError:
            pass
    logger.warning("Could not parse lock handle %s", handle)
    return 1


def _is_privilege_error(error: DBAPIError) -> bool:
    message = str(error.orig)
    return any(code in message for code in _PRIVILEGE_ERRORS)


__all__ = [
    "REQUEST_ERRORS",
    "RELEASE_ERRORS",
    "X_MODE",
    "OracleLockDriver",
]
