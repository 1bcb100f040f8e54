"""
Configuration for the session lock service.

This module provides:
- LockServiceConfig: Wait/recheck timings and the lock table name
- DEFAULT_LOCK_TABLE_NAME: Name the lock key is derived from by default
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_LOCK_TABLE_NAME = "DATABASECHANGELOGLOCK"
"""Lock table name used when none is configured. No such table is created."""

DEFAULT_WAIT_TIME_SECONDS = 300.0
DEFAULT_RECHECK_TIME_SECONDS = 5.0


@dataclass(frozen=True)
class LockServiceConfig:
    """
    Configuration for a SessionLockService.

    Attributes:
        wait_time_seconds: Maximum time wait_for_lock() keeps polling before
            giving up (default: 5 minutes)
        recheck_time_seconds: Pause between two acquisition attempts in
            wait_for_lock() (default: 5 seconds)
        lock_table_name: Name combined with the schema name to derive the
            lock key. Only used as an identity; the table is never read,
            written or created.

    Example:
        >>> config = LockServiceConfig(
        ...     wait_time_seconds=60.0,
        ...     recheck_time_seconds=2.0,
        ... )
    """

    wait_time_seconds: float = DEFAULT_WAIT_TIME_SECONDS
    recheck_time_seconds: float = DEFAULT_RECHECK_TIME_SECONDS
    lock_table_name: str = DEFAULT_LOCK_TABLE_NAME

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.wait_time_seconds < 0:
            raise ValueError(
                f"wait_time_seconds must be non-negative, got {self.wait_time_seconds}. "
                "Use 0 to make wait_for_lock() try exactly once."
            )

        if self.recheck_time_seconds <= 0:
            raise ValueError(
                f"recheck_time_seconds must be positive, got {self.recheck_time_seconds}. "
                "Use a value like 5.0 (default) to avoid hammering the database."
            )

        if not self.lock_table_name:
            raise ValueError(
                "lock_table_name must not be empty. "
                f"Use {DEFAULT_LOCK_TABLE_NAME!r} (default) unless several "
                "independent migration locks share one schema."
            )


__all__ = [
    "DEFAULT_LOCK_TABLE_NAME",
    "DEFAULT_RECHECK_TIME_SECONDS",
    "DEFAULT_WAIT_TIME_SECONDS",
    "LockServiceConfig",
]
