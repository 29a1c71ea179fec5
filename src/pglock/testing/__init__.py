"""
Test utilities for pglock.

Components:
    InMemoryAdvisoryLockEngine: Fake PostgreSQL lock table whose
        ``session_factory`` can replace an ``async_sessionmaker``, so code
        using LockCoordinator can be tested without a database.

Example:
    >>> from pglock import LockCoordinator
    >>> from pglock.testing import InMemoryAdvisoryLockEngine
    >>>
    >>> engine = InMemoryAdvisoryLockEngine()
    >>> coordinator = LockCoordinator(engine.session_factory, enable_tracing=False)

Note:
    This module is optional and intended for test code only. It should not
    be imported in production code paths.
"""

from pglock.testing.engine import (
    InMemoryAdvisoryLockEngine,
    InMemoryResult,
    InMemorySession,
    LockNotAvailable,
)

__all__ = [
    "InMemoryAdvisoryLockEngine",
    "InMemoryResult",
    "InMemorySession",
    "LockNotAvailable",
]
