"""
Observability utilities for advisory_locking.

Note:
    OpenTelemetry is an optional dependency (``pip install advisory-locking[telemetry]``).
    Everything in this module works without it; spans are simply not created.
"""

from advisory_locking.observability.attributes import (
    ATTR_DB_SYSTEM,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_ID,
    ATTR_LOCK_KEY,
    ATTR_LOCK_NON_BLOCKING,
    ATTR_LOCK_SHARED,
    SPAN_LOCK_ACQUIRE,
    SPAN_LOCK_RELEASE,
)
from advisory_locking.observability.tracer import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    "OTEL_AVAILABLE",
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "Tracer",
    "create_tracer",
    "SPAN_LOCK_ACQUIRE",
    "SPAN_LOCK_RELEASE",
    "ATTR_DB_SYSTEM",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_ID",
    "ATTR_LOCK_KEY",
    "ATTR_LOCK_NON_BLOCKING",
    "ATTR_LOCK_SHARED",
]
