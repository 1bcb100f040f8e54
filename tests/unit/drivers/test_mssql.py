"""
Unit tests for the SQL Server application lock driver.
"""

from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

import pytest

from sessionlock.drivers import mssql
from sessionlock.drivers.mssql import MSSQLLockDriver
from sessionlock.exceptions import LockError
from sessionlock.keys import LockTarget
from tests.fixtures import empty_result, row_result, scalar_result

LOCK_NAME = "TEST_SCHEMA.DATABASECHANGELOGLOCK"


@pytest.fixture
def driver() -> MSSQLLockDriver:
    return MSSQLLockDriver()


class TestSupports:
    def test_supports_mssql(self, driver):
        assert driver.supports(SimpleNamespace(name="mssql"))

    @pytest.mark.parametrize("name", ["postgresql", "mysql", "mariadb", "oracle", "sqlite"])
    def test_rejects_other_databases(self, driver, name):
        assert not driver.supports(SimpleNamespace(name=name))


class TestAcquire:
    """Tests for sp_getapplock return codes."""

    @pytest.mark.parametrize("code", [0, 1])
    async def test_granted(self, driver, mssql_conn, target, code):
        mssql_conn.on(mssql.SQL_GET_LOCK, scalar_result(code))

        assert await driver.acquire(mssql_conn, target) is True
        assert mssql_conn.parameters_for(mssql.SQL_GET_LOCK) == [
            {"lock_name": LOCK_NAME, "timeout_ms": 5000}
        ]

    @pytest.mark.parametrize("code", [-1, -2, -3])
    async def test_not_granted(self, driver, mssql_conn, target, code):
        mssql_conn.on(mssql.SQL_GET_LOCK, scalar_result(code))

        assert await driver.acquire(mssql_conn, target) is False

    async def test_call_error_raises(self, driver, mssql_conn, target):
        mssql_conn.on(mssql.SQL_GET_LOCK, scalar_result(-999))

        with pytest.raises(LockError, match="parameter validation or other call error") as exc_info:
            await driver.acquire(mssql_conn, target)

        assert exc_info.value.code == -999

    async def test_null_raises(self, driver, mssql_conn, target):
        mssql_conn.on(mssql.SQL_GET_LOCK, scalar_result(None))

        with pytest.raises(LockError, match=r"GET_LOCK\(\) returned NULL"):
            await driver.acquire(mssql_conn, target)

    async def test_unknown_code_raises(self, driver, mssql_conn, target):
        mssql_conn.on(mssql.SQL_GET_LOCK, scalar_result(42))

        with pytest.raises(LockError, match="returned 42"):
            await driver.acquire(mssql_conn, target)

    async def test_lock_name_not_truncated(self, driver, mssql_conn):
        schema = "a_rather_long_schema_name_that_exceeds_sixty_four_characters_easily"
        mssql_conn.on(mssql.SQL_GET_LOCK, scalar_result(0))

        await driver.acquire(mssql_conn, LockTarget(schema))

        sent = mssql_conn.parameters_for(mssql.SQL_GET_LOCK)[0]["lock_name"]
        assert sent == f"{schema.upper()}.DATABASECHANGELOGLOCK"


class TestRelease:
    """Tests for sp_releaseapplock return codes."""

    async def test_release_success(self, driver, mssql_conn, target):
        mssql_conn.on(mssql.SQL_RELEASE_LOCK, scalar_result(0))

        await driver.release(mssql_conn, target)

        assert mssql_conn.parameters_for(mssql.SQL_RELEASE_LOCK) == [{"lock_name": LOCK_NAME}]

    @pytest.mark.parametrize(("code", "shown"), [(-999, "-999"), (None, "NULL")])
    async def test_release_failure(self, driver, mssql_conn, target, code, shown):
        mssql_conn.on(mssql.SQL_RELEASE_LOCK, scalar_result(code))

        with pytest.raises(LockError, match=rf"RELEASE_LOCK\(\) returned {shown}"):
            await driver.release(mssql_conn, target)


class TestIntrospect:
    """Tests for dm_tran_locks lookup."""

    async def test_lock_info(self, driver, mssql_conn, target):
        login_time = datetime(2024, 2, 3, 4, 5)
        mssql_conn.on(
            mssql.SQL_LOCK_INFO,
            row_result(
                spid=57,
                hostname="BUILD-AGENT-7   ",
                login_time=login_time,
                status="sleeping                      ",
            ),
        )

        info = await driver.introspect(mssql_conn, target)

        assert info.id == 1
        assert info.granted_at == login_time
        assert info.locked_by == "BUILD-AGENT-7 (sleeping)"

    async def test_pattern_uses_resource_prefix(self, driver, mssql_conn, target):
        await driver.introspect(mssql_conn, target)

        assert mssql_conn.parameters_for(mssql.SQL_LOCK_INFO) == [
            {"pattern": "%TEST_SCHEMA.DATABASECHANGELOGLOC%"}
        ]

    @pytest.mark.parametrize("hostname", [None, "    "])
    async def test_system_process(self, driver, mssql_conn, target, hostname):
        mssql_conn.on(
            mssql.SQL_LOCK_INFO,
            row_result(spid=12, hostname=hostname, login_time=None, status="background"),
        )

        info = await driver.introspect(mssql_conn, target)

        assert info.locked_by == "system_process_id#12"

    async def test_free_lock_returns_none(self, driver, mssql_conn, target):
        mssql_conn.on(mssql.SQL_LOCK_INFO, empty_result())

        assert await driver.introspect(mssql_conn, target) is None
