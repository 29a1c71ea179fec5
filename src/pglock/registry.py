"""
Process-wide default coordinator.

Applications usually build one LockCoordinator at startup and share it.
Registering it here lets ``@locked`` find it without threading the
coordinator through every call site.

Example:
    >>> from pglock import LockCoordinator, configure
    >>>
    >>> configure(LockCoordinator(session_factory))
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from pglock.exceptions import LockError

if TYPE_CHECKING:
    from pglock.coordinator import LockCoordinator

_default_coordinator: LockCoordinator | None = None
_registry_lock = threading.Lock()


def configure(coordinator: LockCoordinator) -> LockCoordinator:
    """
    Register ``coordinator`` as the process-wide default.

    Returns:
        The registered coordinator, for chaining
    """
    global _default_coordinator
    with _registry_lock:
        _default_coordinator = coordinator
    return coordinator


def get_coordinator() -> LockCoordinator:
    """
    Return the process-wide default coordinator.

    Raises:
        LockError: If no coordinator has been configured
    """
    with _registry_lock:
        coordinator = _default_coordinator
    if coordinator is None:
        raise LockError(
            "No default LockCoordinator configured. "
            "Call pglock.configure(LockCoordinator(session_factory)) at startup."
        )
    return coordinator


def reset_coordinator() -> None:
    """Forget the default coordinator (mainly for tests)."""
    global _default_coordinator
    with _registry_lock:
        _default_coordinator = None


__all__ = [
    "configure",
    "get_coordinator",
    "reset_coordinator",
]
