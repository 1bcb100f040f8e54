"""
Shared pytest fixtures for the sessionlock library tests.

This module provides:
- Lock target fixtures (schema/table pairs used across driver tests)
- Scripted connection fixtures for each supported dialect
- Tracer fixtures (mock_tracer)
"""

from __future__ import annotations

import pytest

from sessionlock.keys import LockTarget
from sessionlock.observability import MockTracer
from tests.fixtures import ScriptedConnection

# ============================================================================
# Lock Target Fixtures
# ============================================================================


@pytest.fixture
def target() -> LockTarget:
    """Lock target for the default lock table in ``test_schema``."""
    return LockTarget("test_schema", "DATABASECHANGELOGLOCK")


@pytest.fixture
def target_without_schema() -> LockTarget:
    """Lock target for a connection with no default schema."""
    return LockTarget(None)


# ============================================================================
# Connection Fixtures
# ============================================================================


@pytest.fixture
def mysql_conn() -> ScriptedConnection:
    return ScriptedConnection("mysql")


@pytest.fixture
def postgresql_conn() -> ScriptedConnection:
    return ScriptedConnection("postgresql", server_version_info=(15, 4))


@pytest.fixture
def oracle_conn() -> ScriptedConnection:
    return ScriptedConnection("oracle")


@pytest.fixture
def mssql_conn() -> ScriptedConnection:
    return ScriptedConnection("mssql")


@pytest.fixture
def sqlite_conn() -> ScriptedConnection:
    return ScriptedConnection("sqlite")


# ============================================================================
# Observability Fixtures
# ============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Tracer recording span names and attributes."""
    return MockTracer()
