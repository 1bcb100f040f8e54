"""
Tracers for the lock service.

SessionLockService opens one span per lock operation through an injected
tracer. Three implementations are provided:

- NullTracer: default without OpenTelemetry; spans cost nothing
- OpenTelemetryTracer: real spans on the global tracer provider
- MockTracer: records spans and late attributes for test assertions

Example:
    >>> tracer = create_tracer("sessionlock.service", enable_tracing=True)
    >>> with tracer.span("sessionlock.acquire", {ATTR_LOCK_NAME: "public.LOCK"}) as span:
    ...     acquired = await driver.acquire(conn, target)
    ...     if span is not None:
    ...         span.set_attribute(ATTR_LOCK_ACQUIRED, acquired)
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sessionlock.observability.tracing import get_tracer, should_trace

if TYPE_CHECKING:
    from opentelemetry.trace import Span


@runtime_checkable
class Tracer(Protocol):
    """
    Anything that can open a span around a lock operation.

    ``span()`` yields an object with ``set_attribute(key, value)``, or None
    when nothing is recorded. Callers check for None before setting
    attributes that are only known once the operation finished.
    """

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Any]:
        """Open a span named ``name`` with the given start attributes."""
        ...

    @property
    def enabled(self) -> bool:
        """Whether spans are actually recorded."""
        ...


class NullTracer:
    """Tracer that records nothing; ``span()`` yields None."""

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Iterator[None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer backed by OpenTelemetry.

    Spans become children of whatever span is current when the lock service
    is called, so a migration run traced by the caller shows its lock waits.

    Raises:
        ImportError: If OpenTelemetry is not installed
    """

    def __init__(self, tracer_name: str) -> None:
        tracer = get_tracer(tracer_name)
        if tracer is None:
            raise ImportError(
                "OpenTelemetry is not installed. "
                "Install it with: pip install sessionlock-py[telemetry]"
            )
        self._tracer = tracer

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span]:
        return self._tracer.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True


@dataclass
class RecordedSpan:
    """A span captured by MockTracer, including attributes set while open."""

    name: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value


class MockTracer:
    """
    Tracer for tests.

    ``spans`` holds ``(name, start_attributes)`` pairs in the order the spans
    were opened; ``recorded`` holds the RecordedSpan objects yielded to the
    code under test, with attributes added through ``set_attribute``.

    Example:
        >>> tracer = MockTracer()
        >>> service = SessionLockService(driver, conn, "public", tracer=tracer)
        >>> await service.acquire_lock()
        >>> tracer.span_names
        ['sessionlock.acquire']
        >>> tracer.recorded[0].attributes[ATTR_LOCK_ACQUIRED]
        True
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any] | None]] = []
        self.recorded: list[RecordedSpan] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Iterator[RecordedSpan]:
        self.spans.append((name, attributes))
        recorded = RecordedSpan(name, dict(attributes or {}))
        self.recorded.append(recorded)
        yield recorded

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()
        self.recorded.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """
    Pick the tracer for a component.

    Returns:
        OpenTelemetryTracer when tracing is enabled and OpenTelemetry is
        installed, NullTracer otherwise
    """
    if should_trace(enable_tracing):
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "RecordedSpan",
    "Tracer",
    "create_tracer",
]
