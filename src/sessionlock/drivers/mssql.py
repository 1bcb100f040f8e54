"""
SQL Server application lock driver.

A lock obtained with ``sp_getapplock`` and ``@LockOwner = 'Session'`` is
released explicitly with ``sp_releaseapplock`` or implicitly when the session
terminates. It is not released when transactions commit or roll back.

See:
    https://learn.microsoft.com/sql/relational-databases/system-stored-procedures/sp-getapplock-transact-sql
    https://learn.microsoft.com/sql/relational-databases/system-stored-procedures/sp-releaseapplock-transact-sql
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

from sessionlock.drivers.interface import (
    DEFAULT_REQUEST_TIMEOUT,
    PRIORITY_SESSION,
    format_status,
    validate_timeout,
)
from sessionlock.exceptions import LockError
from sessionlock.keys import lock_name, truncate
from sessionlock.models import LockInfo

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection

    from sessionlock.keys import LockTarget

logger = logging.getLogger(__name__)

# NOCOUNT keeps the EXEC row counts from hiding the final SELECT
SQL_GET_LOCK = (
    "SET NOCOUNT ON;"
    " DECLARE @lockResult int;"
    " EXEC @lockResult = sp_getapplock"
    " @Resource = :lock_name,"
    " @LockMode = 'Exclusive',"
    " @LockOwner = 'Session',"
    " @LockTimeout = :timeout_ms;"
    " SELECT @lockResult AS lock_result;"
)
SQL_RELEASE_LOCK = (
    "SET NOCOUNT ON;"
    " DECLARE @releaseLockResult int;"
    " EXEC @releaseLockResult = sp_releaseapplock"
    " @Resource = :lock_name,"
    " @LockOwner = 'Session';"
    " SELECT @releaseLockResult AS release_result;"
)
SQL_LOCK_INFO = (
    "SELECT SP.spid AS spid,"
    " SP.hostname AS hostname,"
    " SP.login_time AS login_time,"
    " SP.status AS status"
    " FROM sys.dm_tran_locks DTL"
    " INNER JOIN sys.sysprocesses SP ON DTL.request_session_id = SP.spid"
    " WHERE DTL.resource_type = 'APPLICATION'"
    " AND DTL.request_status = 'GRANT'"
    " AND DTL.resource_description LIKE :pattern"
)

GRANTED = (0, 1)
"""sp_getapplock: granted synchronously, or granted after waiting."""

NOT_GRANTED = (-1, -2, -3)
"""sp_getapplock: timed out, canceled, chosen as deadlock victim."""

CALL_ERROR = -999
"""Parameter validation or other call error."""

# dm_tran_locks shows only the first 32 characters of the resource name
RESOURCE_DESCRIPTION_LENGTH = 32


class MSSQLLockDriver:
    """
    Lock driver using SQL Server ``sp_getapplock`` / ``sp_releaseapplock``.

    Example:
        >>> driver = MSSQLLockDriver(timeout=2.0)
        >>> service = SessionLockService(driver, conn, "dbo")
    """

    name = "mssql"
    priority = PRIORITY_SESSION

    def __init__(self, *, timeout: float = DEFAULT_REQUEST_TIMEOUT) -> None:
        """
        Initialize the driver.

        Args:
            timeout: Seconds sp_getapplock waits for a contended lock
        """
        self._timeout = validate_timeout(timeout)

    def supports(self, dialect: Dialect) -> bool:
        return dialect.name == "mssql"

    async def acquire(self, conn: AsyncConnection, target: LockTarget) -> bool:
        name = lock_name(target)
        result = await conn.execute(
            text(SQL_GET_LOCK),
            {"lock_name": name, "timeout_ms": math.ceil(self._timeout * 1000)},
        )
        locked = _as_int(result.scalar())
        logger.debug("sp_getapplock(%s) returned %s", name, locked)

        if locked is None:
            raise LockError("GET_LOCK() returned NULL", lock_name=name)
        if locked == CALL_ERROR:
            raise LockError(
                f"GET_LOCK() returned {locked}. "
                "Indicates a parameter validation or other call error.",
                lock_name=name,
                code=locked,
            )
        if locked in NOT_GRANTED:
            return False
        if locked not in GRANTED:
            raise LockError(f"GET_LOCK() returned {locked}", lock_name=name, code=locked)
        return True

    async def release(self, conn: AsyncConnection, target: LockTarget) -> None:
        name = lock_name(target)
        result = await conn.execute(text(SQL_RELEASE_LOCK), {"lock_name": name})
        unlocked = _as_int(result.scalar())
        logger.debug("sp_releaseapplock(%s) returned %s", name, unlocked)

        if unlocked != 0:
            raise LockError(
                f"RELEASE_LOCK() returned {format_status(unlocked)}",
                lock_name=name,
                code=unlocked,
            )

    async def introspect(self, conn: AsyncConnection, target: LockTarget) -> LockInfo | None:
        """
        Find the session holding the application lock.

        The session's login time stands in for the grant time, which SQL
        Server does not expose.
        """
        prefix = truncate(lock_name(target), RESOURCE_DESCRIPTION_LENGTH)
        result = await conn.execute(text(SQL_LOCK_INFO), {"pattern": f"%{prefix}%"})
        row = result.mappings().first()
        if row is None:
            return None
        return LockInfo(id=1, granted_at=row["login_time"], locked_by=_locked_by(row))


def _as_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _locked_by(row: Mapping[str, Any]) -> str:
    # sysprocesses pads hostname; system processes have none
    host = (row["hostname"] or "").strip()
    if not host:
        return f"system_process_id#{row['spid']}"
    status = (row["status"] or "").strip()
    return f"{host} ({status})"


__all__ = [
    "CALL_ERROR",
    "GRANTED",
    "NOT_GRANTED",
    "MSSQLLockDriver",
]
