"""
Session lock service.

SessionLockService guards a migration run with a database-native,
session-scoped lock. It tracks whether this process believes it holds the
lock and delegates the actual locking to a backend LockDriver:

    UNLOCKED --acquire_lock()--> LOCKED --release_lock()--> UNLOCKED

The lock lives as long as the database session behind the connection. If the
process dies, the server ends the session and the lock goes with it; there
is no stale lock row to clean up.

Example:
    >>> from sessionlock import SessionLockService
    >>> from sessionlock.drivers import PostgreSQLLockDriver
    >>>
    >>> async with engine.connect() as conn:
    ...     service = SessionLockService(PostgreSQLLockDriver(), conn, "public")
    ...     async with service.locked(max_wait_seconds=60):
    ...         await run_migrations(conn)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, NoReturn

from sessionlock.config import LockServiceConfig
from sessionlock.exceptions import LockError
from sessionlock.keys import LockTarget
from sessionlock.models import UNKNOWN_HOLDER, LockInfo
from sessionlock.observability import (
    ATTR_DB_SYSTEM,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_COUNT,
    ATTR_LOCK_DRIVER,
    ATTR_LOCK_NAME,
    ATTR_LOCK_TIMEOUT,
    Tracer,
    create_tracer,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection

    from sessionlock.drivers.interface import LockDriver


class SessionLockService:
    """
    Acquires and releases the migration lock for one database connection.

    One instance serves one task. The service holds no locks of its own;
    exclusion between processes is entirely up to the database. The
    connection is borrowed: the service never opens, commits, rolls back or
    closes it.

    Attributes are read-only; see ``config``, ``driver`` and ``target``.

    Example:
        >>> service = SessionLockService(MySQLLockDriver(), conn, "app")
        >>> if await service.acquire_lock():
        ...     try:
        ...         await run_migrations(conn)
        ...     finally:
        ...         await service.release_lock()
    """

    def __init__(
        self,
        driver: LockDriver,
        connection: AsyncConnection,
        schema_name: str | None,
        *,
        config: LockServiceConfig | None = None,
        logger: logging.Logger | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the lock service.

        Args:
            driver: Backend lock driver matching the connection's database
            connection: Live connection whose session will own the lock
            schema_name: Default schema of the connection; part of the lock key
            config: Wait timings and lock table name (defaults apply if None)
            logger: Logger for lock state transitions (module logger if None)
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: Whether to enable OpenTelemetry tracing.
                          Ignored if tracer is explicitly provided.
        """
        self._driver = driver
        self._connection = connection
        self._config = config or LockServiceConfig()
        self._target = LockTarget(schema_name, self._config.lock_table_name)
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._held = False

    @property
    def config(self) -> LockServiceConfig:
        """Configuration in effect for this service."""
        return self._config

    @property
    def driver(self) -> LockDriver:
        """Backend driver performing the native lock calls."""
        return self._driver

    @property
    def target(self) -> LockTarget:
        """Schema and lock table the lock key is derived from."""
        return self._target

    @property
    def _lock_label(self) -> str:
        return f"{self._target.schema_name}.{self._target.lock_table_name}"

    def _span_attributes(self, **extra: Any) -> dict[str, Any]:
        attributes: dict[str, Any] = {
            ATTR_LOCK_NAME: self._lock_label,
            ATTR_LOCK_DRIVER: self._driver.name,
            ATTR_DB_SYSTEM: self._connection.dialect.name,
        }
        attributes.update(extra)
        return attributes

    def supports(self, dialect: Dialect) -> bool:
        """Whether the driver can lock databases of ``dialect``. Never raises."""
        try:
            return bool(self._driver.supports(dialect))
        except Exception as e:
            self._logger.warning("Lock driver %s failed support check: %s", self._driver.name, e)
            return False

    def get_priority(self) -> int:
        """Selection priority of the underlying driver."""
        return self._driver.priority

    def has_change_log_lock(self) -> bool:
        """Whether this service currently believes it holds the lock. No I/O."""
        return self._held

    async def acquire_lock(self) -> bool:
        """
        Try once to acquire the lock.

        Returns True immediately, without a database call, when the lock is
        already held by this service. A single attempt may block for the
        driver's request timeout (5 seconds by default).

        Returns:
            True if the lock is held after the call, False if another
            session holds it

        Raises:
            LockError: On protocol or database errors
        """
        if self._held:
            return True

        with self._tracer.span(
            "sessionlock.acquire",
            self._span_attributes(),
        ) as span:
            try:
                acquired = await self._driver.acquire(self._connection, self._target)
            except LockError:
                raise
            except Exception as e:
                raise LockError(
                    f"Could not acquire change log lock: {e}",
                    lock_name=self._lock_label,
                ) from e

            if span is not None:
                span.set_attribute(ATTR_LOCK_ACQUIRED, acquired)

        if not acquired:
            self._logger.debug("Change log lock %s is held by another session", self._lock_label)
            return False

        self._held = True
        self._logger.info("Successfully acquired change log lock")
        return True

    async def release_lock(self) -> None:
        """
        Release the lock.

        Local state is reset whatever the outcome, so a failed release never
        leaves this service believing it still holds the lock.

        Raises:
            LockError: If the backend reports a failure (after the reset)
        """
        with self._tracer.span("sessionlock.release", self._span_attributes()):
            try:
                await self._driver.release(self._connection, self._target)
            except LockError:
                raise
            except Exception as e:
                raise LockError(
                    f"Could not release change log lock: {e}",
                    lock_name=self._lock_label,
                ) from e
            finally:
                self._held = False

        self._logger.info("Successfully released change log lock")

    async def wait_for_lock(
        self,
        max_wait_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
    ) -> None:
        """
        Poll until the lock is acquired or the wait time runs out.

        At least one attempt is made, and one more once the deadline is
        reached. Cancelling the awaiting task interrupts the pause between
        attempts and propagates ``asyncio.CancelledError``.

        Args:
            max_wait_seconds: Give up after this long
                (default: config.wait_time_seconds)
            poll_interval_seconds: Pause between attempts
                (default: config.recheck_time_seconds)

        Raises:
            LockError: When the deadline passes; the message names the
                current holder, or UNKNOWN
            ValueError: On a negative wait or non-positive poll interval
        """
        max_wait = self._config.wait_time_seconds if max_wait_seconds is None else max_wait_seconds
        poll_interval = (
            self._config.recheck_time_seconds
            if poll_interval_seconds is None
            else poll_interval_seconds
        )
        if max_wait < 0:
            raise ValueError(f"max_wait_seconds must be non-negative, got {max_wait}")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval_seconds must be positive, got {poll_interval}")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_wait

        with self._tracer.span(
            "sessionlock.wait",
            self._span_attributes(**{ATTR_LOCK_TIMEOUT: max_wait}),
        ):
            while not await self.acquire_lock():
                remaining = deadline - loop.time()
                if remaining <= 0:
                    await self._raise_wait_timeout()
                self._logger.info("Waiting for changelog lock....")
                await asyncio.sleep(min(poll_interval, remaining))

    async def _raise_wait_timeout(self) -> NoReturn:
        try:
            locks = await self.list_locks()
        except LockError as e:
            raise self._wait_timeout_error(UNKNOWN_HOLDER) from e
        holder = locks[0].describe() if locks else UNKNOWN_HOLDER
        raise self._wait_timeout_error(holder)

    def _wait_timeout_error(self, holder: str) -> LockError:
        return LockError(
            f"Could not acquire change log lock.  Currently locked by {holder}",
            lock_name=self._lock_label,
        )

    async def list_locks(self) -> list[LockInfo]:
        """
        Describe the current lock holder.

        Returns:
            A list with the holder's LockInfo, or an empty list when the
            lock is free. Never more than one entry.

        Raises:
            LockError: If introspection fails
        """
        with self._tracer.span("sessionlock.list_locks", self._span_attributes()) as span:
            try:
                info = await self._driver.introspect(self._connection, self._target)
            except LockError:
                raise
            except Exception as e:
                raise LockError(
                    f"Could not read change log lock: {e}",
                    lock_name=self._lock_label,
                ) from e

            locks = [] if info is None else [info]
            if span is not None:
                span.set_attribute(ATTR_LOCK_COUNT, len(locks))
            return locks

    async def force_release_lock(self) -> None:
        """Forget local state, then release the lock on the backend."""
        self.init()
        await self.release_lock()

    def init(self) -> None:
        """Reset local state. No lock table is created."""
        self._held = False

    def reset(self) -> None:
        """Reset local state."""
        self._held = False

    def destroy(self) -> None:
        """Reset local state. There is no lock table to drop."""
        self._held = False

    @asynccontextmanager
    async def locked(
        self,
        max_wait_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
    ) -> AsyncIterator[SessionLockService]:
        """
        Hold the lock for the duration of an ``async with`` block.

        Waits like wait_for_lock() and releases on exit, whether the block
        completes normally or raises.

        Example:
            >>> async with service.locked(max_wait_seconds=30):
            ...     await run_migrations(conn)
        """
        await self.wait_for_lock(max_wait_seconds, poll_interval_seconds)
        try:
            yield self
        finally:
            await self.release_lock()

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"SessionLockService("
            f"driver={self._driver.name}, "
            f"lock={self._lock_label}, "
            f"held={self._held}, "
            f"tracing={'enabled' if self._enable_tracing else 'disabled'})"
        )


__all__ = [
    "SessionLockService",
]
