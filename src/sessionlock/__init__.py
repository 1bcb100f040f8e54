"""
sessionlock - Database-native migration locks for Python.

This library provides:
- A lock service guarding schema migrations with session-scoped locks
- Drivers for MySQL, MariaDB, PostgreSQL, Oracle, SQL Server and SQLite
- Automatic driver selection from the connection's SQLAlchemy dialect
- Lock holder introspection for diagnostics

Locks belong to the database session: when a process dies, the server ends
its session and releases the lock. No lock table is used.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sessionlock-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from sessionlock.config import (
    DEFAULT_LOCK_TABLE_NAME,
    DEFAULT_RECHECK_TIME_SECONDS,
    DEFAULT_WAIT_TIME_SECONDS,
    LockServiceConfig,
)

# Drivers
from sessionlock.drivers import (
    PRIORITY_DEFAULT,
    PRIORITY_SESSION,
    LockDriver,
    MariaDBLockDriver,
    MSSQLLockDriver,
    MySQLLockDriver,
    OracleLockDriver,
    PostgreSQLLockDriver,
    SQLiteLockDriver,
)
from sessionlock.exceptions import LockError, SessionLockError

# Lock identity
from sessionlock.keys import (
    LockTarget,
    advisory_key_pair,
    lock_name,
    string_hash32,
)
from sessionlock.models import UNKNOWN_HOLDER, LockInfo

# Backend selection
from sessionlock.registry import (
    LockDriverRegistry,
    create_default_registry,
    create_lock_service,
    default_registry,
)
from sessionlock.service import SessionLockService

__all__ = [
    "__version__",
    # Service
    "SessionLockService",
    "LockServiceConfig",
    "DEFAULT_LOCK_TABLE_NAME",
    "DEFAULT_WAIT_TIME_SECONDS",
    "DEFAULT_RECHECK_TIME_SECONDS",
    # Models
    "LockInfo",
    "UNKNOWN_HOLDER",
    # Exceptions
    "SessionLockError",
    "LockError",
    # Lock identity
    "LockTarget",
    "lock_name",
    "string_hash32",
    "advisory_key_pair",
    # Drivers
    "LockDriver",
    "PRIORITY_DEFAULT",
    "PRIORITY_SESSION",
    "MariaDBLockDriver",
    "MySQLLockDriver",
    "PostgreSQLLockDriver",
    "OracleLockDriver",
    "MSSQLLockDriver",
    "SQLiteLockDriver",
    # Registry
    "LockDriverRegistry",
    "create_default_registry",
    "create_lock_service",
    "default_registry",
]
