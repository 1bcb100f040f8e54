"""
Unit tests for the Oracle DBMS_LOCK driver.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import DBAPIError

from sessionlock.drivers import oracle
from sessionlock.drivers.oracle import OracleLockDriver
from sessionlock.exceptions import LockError
from tests.fixtures import empty_result, out_result, row_result, sql_key

LOCK_NAME = "TEST_SCHEMA.DATABASECHANGELOGLOCK"
LOCK_HANDLE = "10737418241073741824185"
LOCK_ID = 1073741824


def ora_error(message: str) -> DBAPIError:
    return DBAPIError("SELECT ...", {}, Exception(message))


@pytest.fixture
def driver() -> OracleLockDriver:
    return OracleLockDriver()


@pytest.fixture
def conn(oracle_conn):
    """Oracle connection that hands out LOCK_HANDLE."""
    return oracle_conn.on(oracle.SQL_ALLOCATE_LOCK, out_result(lock_handle=LOCK_HANDLE))


class TestSupports:
    def test_supports_oracle(self, driver):
        assert driver.supports(SimpleNamespace(name="oracle"))

    @pytest.mark.parametrize("name", ["postgresql", "mysql", "mariadb", "mssql", "sqlite"])
    def test_rejects_other_databases(self, driver, name):
        assert not driver.supports(SimpleNamespace(name=name))


class TestAcquire:
    """Tests for DBMS_LOCK.REQUEST return codes."""

    async def test_acquire_success(self, driver, conn, target):
        conn.on(oracle.SQL_GET_LOCK, out_result(rc=0))

        assert await driver.acquire(conn, target) is True

        assert conn.statements == [sql_key(oracle.SQL_ALLOCATE_LOCK), sql_key(oracle.SQL_GET_LOCK)]
        assert conn.parameters_for(oracle.SQL_ALLOCATE_LOCK) == [{"lock_name": LOCK_NAME}]
        assert conn.parameters_for(oracle.SQL_GET_LOCK) == [
            {"lock_handle": LOCK_HANDLE, "lock_mode": 6, "timeout": 5}
        ]

    async def test_acquire_timeout_is_contention(self, driver, conn, target):
        conn.on(oracle.SQL_GET_LOCK, out_result(rc=1))

        assert await driver.acquire(conn, target) is False

    @pytest.mark.parametrize(
        ("rc", "reason"),
        [
            (2, "deadlock"),
            (3, "parameter error"),
            (4, "already own lock"),
            (5, "illegal lock handle"),
            (9, "unknown status 9"),
        ],
    )
    async def test_acquire_error_codes(self, driver, conn, target, rc, reason):
        conn.on(oracle.SQL_GET_LOCK, out_result(rc=rc))

        with pytest.raises(LockError, match=reason) as exc_info:
            await driver.acquire(conn, target)

        assert exc_info.value.code == rc
        assert LOCK_NAME in str(exc_info.value)

    async def test_handle_allocated_on_every_call(self, driver, conn, target):
        conn.on(oracle.SQL_GET_LOCK, out_result(rc=1))

        await driver.acquire(conn, target)
        await driver.acquire(conn, target)

        assert len(conn.parameters_for(oracle.SQL_ALLOCATE_LOCK)) == 2


class TestRelease:
    """Tests for DBMS_LOCK.RELEASE return codes."""

    async def test_release_success(self, driver, conn, target):
        conn.on(oracle.SQL_RELEASE_LOCK, out_result(rc=0))

        await driver.release(conn, target)

        assert conn.parameters_for(oracle.SQL_RELEASE_LOCK) == [{"lock_handle": LOCK_HANDLE}]
        assert len(conn.parameters_for(oracle.SQL_ALLOCATE_LOCK)) == 1

    @pytest.mark.parametrize(
        ("rc", "reason"),
        [
            (3, "parameter error"),
            (4, "do not own lock"),
            (5, "illegal lock handle"),
        ],
    )
    async def test_release_error_codes(self, driver, conn, target, rc, reason):
        conn.on(oracle.SQL_RELEASE_LOCK, out_result(rc=rc))

        with pytest.raises(LockError, match=reason):
            await driver.release(conn, target)


class TestIntrospect:
    """Tests for v$lock lookup and the SYS_CONTEXT fallback."""

    async def test_privileged_lock_info(self, driver, conn, target):
        conn.on(
            oracle.SQL_LOCK_INFO,
            row_result(
                session_id=123,
                held_seconds=30,
                db_user="dbuser",
                os_user="osuser",
                host="host",
            ),
        )

        before = datetime.now(UTC)
        info = await driver.introspect(conn, target)

        assert info.id == LOCK_ID
        assert info.locked_by == "(session_id=123)(current_user=dbuser)(os_user=osuser)(host=host)"
        assert before - timedelta(seconds=35) <= info.granted_at <= datetime.now(UTC)
        assert conn.parameters_for(oracle.SQL_LOCK_INFO) == [{"lock_id": LOCK_ID, "lock_mode": 6}]

    async def test_privileged_no_holder_returns_none(self, driver, conn, target):
        conn.on(oracle.SQL_LOCK_INFO, empty_result())

        assert await driver.introspect(conn, target) is None
        assert sql_key(oracle.SQL_SESSION_INFO) not in conn.statements

    @pytest.mark.parametrize(
        "message",
        [
            "ORA-00942: table or view does not exist",
            "ORA-01031: insufficient privileges",
        ],
    )
    async def test_falls_back_without_privileges(self, driver, conn, target, message, caplog):
        conn.on(oracle.SQL_LOCK_INFO, ora_error(message))
        conn.on(
            oracle.SQL_SESSION_INFO,
            row_result(
                session_id=123,
                db_user="dbuser",
                instance_name="XE",
                host="host",
                os_user="osuser",
            ),
        )

        with caplog.at_level(logging.WARNING, logger="sessionlock.drivers.oracle"):
            info = await driver.introspect(conn, target)

        assert info.id == LOCK_ID
        assert info.locked_by == (
            "(session_id=123)(current_user=dbuser)(instance_name=XE)(os_user=osuser)(host=host)"
        )
        assert info.granted_at is not None
        assert "describing current session" in caplog.text

    async def test_other_database_errors_propagate(self, driver, conn, target):
        conn.on(oracle.SQL_LOCK_INFO, ora_error("ORA-03113: end-of-file on communication channel"))

        with pytest.raises(DBAPIError):
            await driver.introspect(conn, target)

    async def test_unprivileged_driver_skips_views(self, conn, target):
        driver = OracleLockDriver(privileged_introspection=False)
        conn.on(
            oracle.SQL_SESSION_INFO,
            row_result(session_id=1, db_user="u", instance_name="i", host="h", os_user="o"),
        )

        info = await driver.introspect(conn, target)

        assert info is not None
        assert sql_key(oracle.SQL_LOCK_INFO) not in conn.statements

    async def test_unparsable_handle_uses_id_1(self, driver, oracle_conn, target, caplog):
        oracle_conn.on(oracle.SQL_ALLOCATE_LOCK, out_result(lock_handle="short"))
        oracle_conn.on(
            oracle.SQL_LOCK_INFO,
            row_result(session_id=1, held_seconds=0, db_user="u", os_user="o", host="h"),
        )

        with caplog.at_level(logging.WARNING, logger="sessionlock.drivers.oracle"):
            info = await driver.introspect(oracle_conn, target)

        assert info.id == 1
        assert "Could not parse lock handle short" in caplog.text
