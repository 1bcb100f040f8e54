"""
OpenTelemetry detection.

OpenTelemetry is optional (``pip install sessionlock-py[telemetry]``). The
import is attempted once, here, and every other module reads OTEL_AVAILABLE.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

try:
    from opentelemetry import trace

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False
    trace = None  # type: ignore[assignment]


def get_tracer(name: str) -> Tracer | None:
    """Return the OpenTelemetry tracer called ``name``, or None without OpenTelemetry."""
    if not OTEL_AVAILABLE or trace is None:
        return None
    return trace.get_tracer(name)


def should_trace(enable_tracing: bool) -> bool:
    """Whether a component asking for ``enable_tracing`` will get real spans."""
    return enable_tracing and OTEL_AVAILABLE


__all__ = [
    "OTEL_AVAILABLE",
    "get_tracer",
    "should_trace",
]
