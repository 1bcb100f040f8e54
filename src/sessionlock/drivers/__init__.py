"""
Backend lock drivers.

One driver per database engine, each speaking that engine's native
session-level locking protocol behind the LockDriver interface:

- MySQLLockDriver / MariaDBLockDriver: GET_LOCK() / RELEASE_LOCK()
- PostgreSQLLockDriver: two-key advisory locks
- OracleLockDriver: DBMS_LOCK.REQUEST / DBMS_LOCK.RELEASE
- MSSQLLockDriver: sp_getapplock / sp_releaseapplock
- SQLiteLockDriver: exclusive locking mode (single-process use only)

Example:
    >>> from sessionlock.drivers import PostgreSQLLockDriver
    >>>
    >>> driver = PostgreSQLLockDriver()
    >>> driver.supports(conn.dialect)
    True
"""

from sessionlock.drivers.interface import (
    DEFAULT_REQUEST_TIMEOUT,
    PRIORITY_DEFAULT,
    PRIORITY_SESSION,
    LockDriver,
)
from sessionlock.drivers.mssql import MSSQLLockDriver
from sessionlock.drivers.mysql import MariaDBLockDriver, MySQLLockDriver
from sessionlock.drivers.oracle import OracleLockDriver
from sessionlock.drivers.postgresql import PostgreSQLLockDriver
from sessionlock.drivers.sqlite import SQLiteLockDriver

__all__ = [
    # Interface
    "DEFAULT_REQUEST_TIMEOUT",
    "PRIORITY_DEFAULT",
    "PRIORITY_SESSION",
    "LockDriver",
    # Drivers
    "MariaDBLockDriver",
    "MySQLLockDriver",
    "PostgreSQLLockDriver",
    "OracleLockDriver",
    "MSSQLLockDriver",
    "SQLiteLockDriver",
]
