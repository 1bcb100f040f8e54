"""
Lock identity derivation.

Every backend names the migration lock after the target schema and the lock
table name, shaped to that backend's key space:

- a string name (MySQL, MariaDB, Oracle, SQL Server), upper-cased and
  optionally truncated to the engine's length limit
- a pair of signed 32-bit integers (PostgreSQL two-key advisory locks)

Derivation is deterministic: the same (schema, table) pair yields the same key
in every process and on every interpreter version. Python's built-in ``hash()``
is salted per process and is therefore never used.

Example:
    >>> target = LockTarget("test_schema", "databasechangeloglock")
    >>> lock_name(target)
    'TEST_SCHEMA.DATABASECHANGELOGLOCK'
    >>> advisory_key_pair(target)
    (-1497367772, -256768530)
"""

from __future__ import annotations

from dataclasses import dataclass

from sessionlock.config import DEFAULT_LOCK_TABLE_NAME
from sessionlock.exceptions import LockError

_UINT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


@dataclass(frozen=True)
class LockTarget:
    """
    The (schema, lock table) pair a lock key is derived from.

    Attributes:
        schema_name: Default schema of the connection the lock protects
        lock_table_name: Lock table name; used as an identity only
    """

    schema_name: str | None
    lock_table_name: str = DEFAULT_LOCK_TABLE_NAME

    def require_schema(self) -> str:
        """Return the schema name, failing when it is not set."""
        if not self.schema_name:
            raise LockError("Default schema name is not set for current DB user/connection")
        return self.schema_name

    @property
    def qualified_name(self) -> str:
        """``schema.table`` as given, without case folding."""
        return f"{self.require_schema()}.{self.lock_table_name}"


def truncate(value: str | None, max_length: int) -> str | None:
    """Cut ``value`` down to ``max_length`` characters (None passes through)."""
    if value is None or len(value) <= max_length:
        return value
    return value[:max_length]


def lock_name(target: LockTarget, max_length: int | None = None) -> str:
    """
    Derive the string lock name for ``target``.

    Args:
        target: Schema/table pair to name the lock after
        max_length: Engine limit on lock names, if it has one

    Returns:
        ``SCHEMA.TABLE`` upper-cased, truncated to ``max_length``
    """
    name = target.qualified_name.upper()
    if max_length is not None:
        # truncate() only returns None for None input
        return truncate(name, max_length)  # type: ignore[return-value]
    return name


def string_hash32(value: str) -> int:
    """
    Stable 32-bit hash of a string.

    Computes ``s[0]*31^(n-1) + s[1]*31^(n-2) + ... + s[n-1]`` over the UTF-16
    code units of ``value`` and wraps the result to a signed 32-bit integer.
    Tools on other runtimes that hash lock names the same way end up with the
    same PostgreSQL keys, so they exclude each other correctly.

    Args:
        value: String to hash

    Returns:
        Signed integer in ``[-2**31, 2**31 - 1]``
    """
    units = value.encode("utf-16-be", errors="surrogatepass")
    result = 0
    for offset in range(0, len(units), 2):
        result = (31 * result + int.from_bytes(units[offset : offset + 2], "big")) & _UINT32_MASK
    if result & _INT32_SIGN:
        return result - (_UINT32_MASK + 1)
    return result


def advisory_key_pair(target: LockTarget) -> tuple[int, int]:
    """
    Derive the two-key advisory lock id for ``target``.

    The first key partitions by lock table, the second by schema. Both names
    are folded to lower case, the way PostgreSQL folds unquoted identifiers.

    Returns:
        ``(table_key, schema_key)`` as signed 32-bit integers
    """
    schema_name = target.require_schema()
    return (
        string_hash32(target.lock_table_name.lower()),
        string_hash32(schema_name.lower()),
    )


def to_oid(key: int) -> int:
    """Reinterpret a signed 32-bit key as the unsigned value PostgreSQL stores."""
    return key & _UINT32_MASK


__all__ = [
    "LockTarget",
    "advisory_key_pair",
    "lock_name",
    "string_hash32",
    "to_oid",
    "truncate",
]
