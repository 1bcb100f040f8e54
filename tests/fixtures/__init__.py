"""
Shared test fixtures for the sessionlock library.

Usage:
    from tests.fixtures import (
        ScriptedConnection,
        scalar_result,
        row_result,
        out_result,
    )
"""

from tests.fixtures.connections import (
    FakeResult,
    ScriptedConnection,
    empty_result,
    out_result,
    row_result,
    scalar_result,
    sql_key,
)

__all__ = [
    "FakeResult",
    "ScriptedConnection",
    "empty_result",
    "out_result",
    "row_result",
    "scalar_result",
    "sql_key",
]
