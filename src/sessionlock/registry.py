"""
Lock driver registry and backend selection.

Picks the driver for a database by asking every registered driver whether it
supports the connection's SQLAlchemy dialect. Among the drivers that do, the
one with the highest priority wins; ties go to the driver registered first.

Usage:
    # Default registry with every built-in driver
    service = create_lock_service(conn, "public")

    # Custom registry
    registry = LockDriverRegistry()
    registry.register(PostgreSQLLockDriver())
    driver = registry.select_or_raise(conn.dialect)
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from sessionlock.drivers import (
    MariaDBLockDriver,
    MSSQLLockDriver,
    MySQLLockDriver,
    OracleLockDriver,
    PostgreSQLLockDriver,
    SQLiteLockDriver,
)
from sessionlock.drivers.interface import LockDriver
from sessionlock.exceptions import LockError
from sessionlock.service import SessionLockService

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection

logger = logging.getLogger(__name__)


class LockDriverRegistry:
    """
    Ordered collection of lock drivers.

    This registry can be used through the module-level ``default_registry``
    or instantiated for isolated testing.

    Thread-Safety:
        Registration and selection use an internal lock.

    Example:
        >>> registry = LockDriverRegistry()
        >>> registry.register(MySQLLockDriver())
        >>> registry.select(conn.dialect)
        <sessionlock.drivers.mysql.MySQLLockDriver object at ...>
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._drivers: list[LockDriver] = []
        self._lock = threading.RLock()

    def register(self, driver: LockDriver) -> LockDriver:
        """
        Add a driver at the end of the selection order.

        Args:
            driver: Driver instance to register

        Returns:
            The registered driver

        Raises:
            TypeError: If ``driver`` does not implement LockDriver
            ValueError: If a driver with the same name is already registered
        """
        if not isinstance(driver, LockDriver):
            raise TypeError(f"{driver!r} does not implement the LockDriver protocol")

        with self._lock:
            if any(existing.name == driver.name for existing in self._drivers):
                raise ValueError(f"Lock driver '{driver.name}' is already registered")
            self._drivers.append(driver)

        logger.debug("Registered lock driver %s (priority %d)", driver.name, driver.priority)
        return driver

    def unregister(self, name: str) -> bool:
        """
        Remove the driver registered under ``name``.

        Returns:
            True if a driver was removed, False if none had that name
        """
        with self._lock:
            for index, driver in enumerate(self._drivers):
                if driver.name == name:
                    del self._drivers[index]
                    return True
        return False

    @property
    def drivers(self) -> tuple[LockDriver, ...]:
        """Registered drivers in registration order."""
        with self._lock:
            return tuple(self._drivers)

    def select(self, dialect: Dialect) -> LockDriver | None:
        """
        Pick the driver for ``dialect``.

        Returns:
            Highest-priority supporting driver, or None if there is none
        """
        selected: LockDriver | None = None
        for driver in self.drivers:
            if not _supports(driver, dialect):
                continue
            if selected is None or driver.priority > selected.priority:
                selected = driver
        return selected

    def select_or_raise(self, dialect: Dialect) -> LockDriver:
        """
        Pick the driver for ``dialect``.

        Raises:
            LockError: If no registered driver supports the dialect
        """
        driver = self.select(dialect)
        if driver is None:
            available = ", ".join(d.name for d in self.drivers) or "none"
            raise LockError(
                f"No lock driver supports database dialect '{dialect.name}'. "
                f"Registered drivers: {available}"
            )
        return driver

    def __len__(self) -> int:
        with self._lock:
            return len(self._drivers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return any(driver.name == name for driver in self._drivers)


def _supports(driver: LockDriver, dialect: Dialect) -> bool:
    try:
        return bool(driver.supports(dialect))
    except Exception as e:
        logger.warning("Lock driver %s failed support check: %s", driver.name, e)
        return False


def create_default_registry() -> LockDriverRegistry:
    """Build a registry holding one instance of every built-in driver."""
    registry = LockDriverRegistry()
    # MariaDB before MySQL: both report the "mysql" dialect name
    registry.register(MariaDBLockDriver())
    registry.register(MySQLLockDriver())
    registry.register(PostgreSQLLockDriver())
    registry.register(OracleLockDriver())
    registry.register(MSSQLLockDriver())
    registry.register(SQLiteLockDriver())
    return registry


default_registry = create_default_registry()


def create_lock_service(
    connection: AsyncConnection,
    schema_name: str | None,
    *,
    registry: LockDriverRegistry | None = None,
    **kwargs: Any,
) -> SessionLockService:
    """
    Create a SessionLockService with the driver matching ``connection``.

    Args:
        connection: Live connection whose session will own the lock
        schema_name: Default schema of the connection
        registry: Registry to select from (default_registry if None)
        **kwargs: Passed on to SessionLockService (config, logger, tracer, ...)

    Raises:
        LockError: If no driver supports the connection's dialect

    Example:
        >>> async with engine.connect() as conn:
        ...     service = create_lock_service(conn, "public")
        ...     await service.wait_for_lock()
    """
    registry = registry if registry is not None else default_registry
    driver = registry.select_or_raise(connection.dialect)
    return SessionLockService(driver, connection, schema_name, **kwargs)


__all__ = [
    "LockDriverRegistry",
    "create_default_registry",
    "create_lock_service",
    "default_registry",
]
