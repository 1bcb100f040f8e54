"""
Standard span attributes for sessionlock.

Attribute constants used by the lock service for consistent span
attributes. Database attributes follow OpenTelemetry semantic conventions.

Example:
    >>> from sessionlock.observability.attributes import (
    ...     ATTR_LOCK_NAME,
    ...     ATTR_LOCK_DRIVER,
    ... )
    >>>
    >>> with tracer.span(
    ...     "sessionlock.acquire",
    ...     {ATTR_LOCK_NAME: "PUBLIC.DATABASECHANGELOGLOCK", ATTR_LOCK_DRIVER: "postgresql"},
    ... ):
    ...     pass
"""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_LOCK_NAME = "sessionlock.lock.name"
"""Qualified lock name the key is derived from (string, schema.table)."""

ATTR_LOCK_DRIVER = "sessionlock.lock.driver"
"""Name of the backend lock driver (string)."""

ATTR_LOCK_ACQUIRED = "sessionlock.lock.acquired"
"""Whether the lock was acquired (boolean)."""

ATTR_LOCK_TIMEOUT = "sessionlock.lock.timeout"
"""Maximum wait for the lock in seconds (float)."""

ATTR_LOCK_COUNT = "sessionlock.lock.count"
"""Number of locks reported by introspection (integer, 0 or 1)."""

# =============================================================================
# Database Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'mysql')."""

# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "ATTR_LOCK_NAME",
    "ATTR_LOCK_DRIVER",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_TIMEOUT",
    "ATTR_LOCK_COUNT",
    "ATTR_DB_SYSTEM",
]
