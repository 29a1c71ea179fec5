"""
Observability utilities for pglock.

Provides the composition-based Tracer API and the span attribute names used
by the lock coordinator. OpenTelemetry is an optional dependency; without it
every tracer created by ``create_tracer`` is a no-op.
"""

from pglock.observability.attributes import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ERROR_TYPE,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_HOLDER,
    ATTR_LOCK_ID,
    ATTR_LOCK_KEY,
    ATTR_LOCK_TIMEOUT,
    ATTR_LOCK_WAIT,
    ATTR_MAX_RETRIES,
    ATTR_RETRY_COUNT,
)
from pglock.observability.tracer import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    "OTEL_AVAILABLE",
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_LOCK_KEY",
    "ATTR_LOCK_ID",
    "ATTR_LOCK_TIMEOUT",
    "ATTR_LOCK_WAIT",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_HOLDER",
    "ATTR_RETRY_COUNT",
    "ATTR_MAX_RETRIES",
    "ATTR_ERROR_TYPE",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
]
