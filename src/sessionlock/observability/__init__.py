"""
Tracing for sessionlock.

Span attribute names and the tracers the lock service accepts. Everything
here works without OpenTelemetry installed; tracing then turns into no-ops.

Example:
    >>> from sessionlock.observability import MockTracer
    >>>
    >>> tracer = MockTracer()
    >>> service = SessionLockService(driver, conn, "public", tracer=tracer)
"""

from sessionlock.observability.attributes import (
    ATTR_DB_SYSTEM,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_COUNT,
    ATTR_LOCK_DRIVER,
    ATTR_LOCK_NAME,
    ATTR_LOCK_TIMEOUT,
)
from sessionlock.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    RecordedSpan,
    Tracer,
    create_tracer,
)
from sessionlock.observability.tracing import (
    OTEL_AVAILABLE,
    get_tracer,
    should_trace,
)

__all__ = [
    # OpenTelemetry detection
    "OTEL_AVAILABLE",
    "get_tracer",
    "should_trace",
    # Tracers
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "RecordedSpan",
    "create_tracer",
    # Attributes
    "ATTR_LOCK_NAME",
    "ATTR_LOCK_DRIVER",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_TIMEOUT",
    "ATTR_LOCK_COUNT",
    "ATTR_DB_SYSTEM",
]
