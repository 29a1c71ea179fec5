"""
Standard span attributes for pglock.

Attribute names follow OpenTelemetry semantic conventions where one exists
(``db.*``) and use a ``pglock.`` prefix otherwise.

Example:
    >>> from pglock.observability.attributes import ATTR_LOCK_KEY, ATTR_LOCK_ID
    >>>
    >>> with tracer.span(
    ...     "pglock.lock.acquire",
    ...     {ATTR_LOCK_KEY: key, ATTR_LOCK_ID: lock_id},
    ... ):
    ...     pass
"""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_LOCK_KEY = "pglock.lock.key"
"""String key identifying the lock (e.g., 'order:123')."""

ATTR_LOCK_ID = "pglock.lock.id"
"""Numeric advisory lock id derived from the key (integer)."""

ATTR_LOCK_TIMEOUT = "pglock.lock.timeout"
"""Advisory timeout for the acquisition in seconds (float)."""

ATTR_LOCK_WAIT = "pglock.lock.wait"
"""Whether the acquisition blocks for the grant (boolean)."""

ATTR_LOCK_ACQUIRED = "pglock.lock.acquired"
"""Whether the lock was granted (boolean)."""

ATTR_LOCK_HOLDER = "pglock.lock.holder"
"""Identifier of the lock holder, if configured."""

# =============================================================================
# Retry Attributes
# =============================================================================

ATTR_RETRY_COUNT = "pglock.retry.count"
"""Zero-based attempt number within one acquisition (integer)."""

ATTR_MAX_RETRIES = "pglock.retry.max"
"""Retries allowed after the first attempt (integer)."""

ATTR_ERROR_TYPE = "error.type"
"""Exception class name of a failed attempt."""

# =============================================================================
# Database Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (always 'postgresql')."""

ATTR_DB_OPERATION = "db.operation"
"""Database function invoked (e.g., 'pg_advisory_lock')."""


__all__ = [
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
