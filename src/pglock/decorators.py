"""
Lock decorator for async functions and methods.

``@locked`` wraps every call of the decorated coroutine function in
``LockCoordinator.with_lock``. The lock key is either fixed, derived from
the call's arguments, or defaults to the function's qualified name.

Example:
    >>> from pglock import locked
    >>>
    >>> class OrderService:
    ...     def __init__(self, coordinator: LockCoordinator):
    ...         self._lock_coordinator = coordinator
    ...
    ...     @locked(lambda self, order_id: f"order:{order_id}", retry_delay=0.5)
    ...     async def process_order(self, order_id: str) -> None:
    ...         ...
    ...
    ...     @locked("inventory", wait=False)
    ...     async def rebuild_inventory(self) -> None:
    ...         ...
"""

import functools
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pglock.config import LockOptions
from pglock.coordinator import LockCoordinator
from pglock.registry import get_coordinator

# Preserves the exact type of the decorated function
F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

KeySource = str | Callable[..., str] | None

COORDINATOR_ATTRIBUTE = "_lock_coordinator"


def locked(
    key: KeySource = None,
    *,
    coordinator: LockCoordinator | None = None,
    options: LockOptions | None = None,
    **overrides: Any,
) -> Callable[[F], F]:
    """
    Decorator that runs an async function while holding an advisory lock.

    Args:
        key: Lock key. A string is used as-is. A callable is called with the
            decorated function's arguments (including ``self`` for methods)
            and must return the key. None uses the function's
            ``__qualname__`` (e.g. "OrderService.process_order").
        coordinator: Coordinator to use. When omitted, the first positional
            argument's ``_lock_coordinator`` attribute is used if present,
            then the process-wide default from ``pglock.configure``.
        options: Per-call LockOptions (optional)
        **overrides: Individual LockOptions fields (wait, max_retries, ...)

    Returns:
        A decorator preserving the wrapped function's signature

    Raises:
        TypeError: If an override is not a LockOptions field, or the
            decorated function is not a coroutine function
    """
    # Fail at decoration time rather than on first call
    (options or LockOptions()).merge(**overrides)

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(
                f"@locked requires an async function, got {func.__qualname__}. "
                "Use LockCoordinator.with_lock for synchronous callables."
            )

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            lock_key = _resolve_key(key, func, args, kwargs)
            target = coordinator or _resolve_coordinator(args)
            return await target.with_lock(
                lock_key,
                lambda: func(*args, **kwargs),
                options,
                **overrides,
            )

        return wrapper  # type: ignore[return-value]

    return decorator


def _resolve_key(
    key: KeySource,
    func: Callable[..., Any],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> str:
    if key is None:
        return func.__qualname__
    if isinstance(key, str):
        return key
    derived = key(*args, **kwargs)
    if not isinstance(derived, str):
        raise TypeError(
            f"Lock key function for {func.__qualname__} must return str, "
            f"got {type(derived).__name__}"
        )
    return derived


def _resolve_coordinator(args: tuple[Any, ...]) -> LockCoordinator:
    if args:
        candidate = getattr(args[0], COORDINATOR_ATTRIBUTE, None)
        if isinstance(candidate, LockCoordinator):
            return candidate
    return get_coordinator()


__all__ = [
    "COORDINATOR_ATTRIBUTE",
    "KeySource",
    "locked",
]
