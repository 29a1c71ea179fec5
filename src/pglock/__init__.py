"""
pglock - Distributed locks for Python services backed by PostgreSQL.

Serializes work on a logical resource (``order:123``) across processes and
machines that share one PostgreSQL database, using session-scoped advisory
locks as the single source of truth. No separate lock service is needed.

This library provides:
- LockCoordinator: acquire/retry/release state machine
- LockHandle: token owning the database session that holds a lock
- ``@locked``: decorator wrapping async functions in a lock
- A closed exception taxonomy for contention, timeout and failures

Example:
    >>> from pglock import LockCoordinator, LockAlreadyHeldError
    >>>
    >>> coordinator = LockCoordinator(session_factory)
    >>>
    >>> # Scoped acquisition
    >>> await coordinator.with_lock("order:123", process_order)
    >>>
    >>> # Manual acquisition
    >>> handle = await coordinator.acquire("order:123", wait=False)
    >>> try:
    ...     await process_order()
    ... finally:
    ...     await handle.release()
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pglock-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from pglock.config import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    LockOptions,
    LockSettings,
    ResolvedLockOptions,
)
from pglock.coordinator import LockCoordinator
from pglock.decorators import locked
from pglock.exceptions import (
    LockAcquireTimeoutError,
    LockAlreadyHeldError,
    LockConnectionError,
    LockError,
    LockNotHeldError,
)
from pglock.handle import LockHandle, LockInfo
from pglock.hashing import key_to_lock_id, lock_key
from pglock.registry import configure, get_coordinator, reset_coordinator
from pglock.session import LockSession

__all__ = [
    "__version__",
    # Coordinator
    "LockCoordinator",
    "LockHandle",
    "LockInfo",
    "LockSession",
    # Configuration
    "LockOptions",
    "LockSettings",
    "ResolvedLockOptions",
    "DEFAULT_TIMEOUT",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY",
    # Keys
    "key_to_lock_id",
    "lock_key",
    # Decorator and default coordinator
    "locked",
    "configure",
    "get_coordinator",
    "reset_coordinator",
    # Exceptions
    "LockError",
    "LockAcquireTimeoutError",
    "LockAlreadyHeldError",
    "LockNotHeldError",
    "LockConnectionError",
]
