"""
PostgreSQL advisory lock coordinator.

Advisory locks are application-level locks that:
- Are independent of table/row locks
- Persist for session duration (until released or disconnected)
- Support non-blocking acquisition attempts
- Are automatically released on connection close

The database is the only arbiter of who holds a lock. Coordinators in
different processes share no state; each one only remembers the handles it
handed out itself so that ``release(key)`` can find the owning session.

Usage:
    >>> coordinator = LockCoordinator(session_factory)
    >>> result = await coordinator.with_lock("order:123", process_order)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pglock.config import LockOptions, LockSettings, ResolvedLockOptions
from pglock.exceptions import (
    LockAcquireTimeoutError,
    LockAlreadyHeldError,
    LockConnectionError,
    LockNotHeldError,
)
from pglock.handle import LockHandle, LockInfo
from pglock.hashing import key_to_lock_id
from pglock.observability import (
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
    Tracer,
    create_tracer,
)
from pglock.queries import (
    ADVISORY_LOCK,
    HELD_LOCK,
    SET_LOCK_TIMEOUT,
    TRY_ADVISORY_LOCK,
)
from pglock.session import LockSession, is_lock_not_available

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Single-attempt results
# =============================================================================


@dataclass(frozen=True)
class Granted:
    """The lock was granted on ``session``, which now holds it."""

    session: LockSession


@dataclass(frozen=True)
class Busy:
    """Another session holds the lock."""


@dataclass(frozen=True)
class Failed:
    """The attempt could not reach a decision because the database failed."""

    cause: LockConnectionError


AttemptResult = Granted | Busy | Failed

BUSY = Busy()


class LockCoordinator:
    """
    Acquires and releases PostgreSQL advisory locks keyed by strings.

    Each acquisition runs up to ``max_retries + 1`` attempts. An attempt
    opens a dedicated session and asks for the grant, blocking
    (``pg_advisory_lock``) or not (``pg_try_advisory_lock``) depending on
    ``wait``. A granted session is handed to the returned LockHandle and
    stays checked out until release, because advisory locks belong to the
    session that took them.

    Outcomes per attempt:
    - granted: return a LockHandle
    - refused with ``wait=False``: raise LockAlreadyHeldError at once
    - refused with ``wait=True`` (only possible with ``attempt_timeout``)
      or database failure: sleep ``retry_delay`` and try again, raising
      LockAcquireTimeoutError once attempts run out

    Retries use a fixed delay without jitter. Callers with many contending
    processes should randomize ``retry_delay`` themselves.

    Example:
        >>> coordinator = LockCoordinator(session_factory)
        >>>
        >>> handle = await coordinator.acquire("order:123")
        >>> try:
        ...     await process_order()
        ... finally:
        ...     await handle.release()
        >>>
        >>> # Non-blocking probe that holds the lock when granted
        >>> try:
        ...     handle = await coordinator.acquire("order:123", wait=False)
        ... except LockAlreadyHeldError:
        ...     print("Another instance is processing the order")

    Note:
        Each held lock pins one pooled connection. Size the pool for the
        number of locks held concurrently plus ordinary traffic.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: LockSettings | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the coordinator.

        Args:
            session_factory: SQLAlchemy async session factory for database access
            settings: Process-wide defaults for acquisitions (optional)
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: Whether to enable OpenTelemetry tracing.
                          Ignored if tracer is explicitly provided.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._session_factory = session_factory
        self._settings = settings or LockSettings()
        self._held_locks: dict[str, LockHandle] = {}
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> LockSettings:
        """The defaults applied to every acquisition."""
        return self._settings

    async def acquire(
        self,
        key: str,
        options: LockOptions | None = None,
        **overrides: Any,
    ) -> LockHandle:
        """
        Acquire the advisory lock for ``key``.

        Args:
            key: String key identifying the lock (e.g., "order:123")
            options: Per-call options (optional)
            **overrides: Individual LockOptions fields (timeout, wait,
                max_retries, retry_delay, attempt_timeout)

        Returns:
            LockHandle that must be released by the caller

        Raises:
            LockAlreadyHeldError: ``wait=False`` and the lock is taken
            LockAcquireTimeoutError: All attempts were used up
            LockConnectionError: A database failure occurred and
                ``retry_on_connection_error`` is disabled
        """
        resolved = self._settings.resolve(options, **overrides)
        lock_id = key_to_lock_id(key)

        with self._tracer.span(
            "pglock.lock.acquire",
            {
                ATTR_LOCK_KEY: key,
                ATTR_LOCK_ID: lock_id,
                ATTR_LOCK_TIMEOUT: resolved.timeout,
                ATTR_LOCK_WAIT: resolved.wait,
                ATTR_MAX_RETRIES: resolved.max_retries,
                ATTR_LOCK_HOLDER: self._settings.holder_id or "",
            },
        ) as span:
            last_failure: LockConnectionError | None = None

            for attempt in range(resolved.max_attempts):
                result = await self._attempt(key, lock_id, resolved, attempt)

                if isinstance(result, Granted):
                    try:
                        handle = await self._register(key, lock_id, result.session)
                    except BaseException:
                        # No handle owns the granted session yet
                        await result.session.discard()
                        raise
                    if span is not None:
                        span.set_attribute(ATTR_LOCK_ACQUIRED, True)
                        span.set_attribute(ATTR_RETRY_COUNT, attempt)
                    logger.debug(
                        "Acquired advisory lock: key=%s, lock_id=%d, attempt=%d",
                        key,
                        lock_id,
                        attempt + 1,
                    )
                    return handle

                if isinstance(result, Failed):
                    last_failure = result.cause
                    logger.warning(
                        "Advisory lock attempt failed: key=%s, attempt=%d/%d, error=%s",
                        key,
                        attempt + 1,
                        resolved.max_attempts,
                        result.cause,
                    )
                    if not resolved.retry_on_connection_error:
                        raise result.cause
                elif not resolved.wait:
                    if span is not None:
                        span.set_attribute(ATTR_LOCK_ACQUIRED, False)
                    raise LockAlreadyHeldError(key)
                else:
                    logger.debug(
                        "Advisory lock busy: key=%s, attempt=%d/%d",
                        key,
                        attempt + 1,
                        resolved.max_attempts,
                    )

                if attempt < resolved.max_retries:
                    await asyncio.sleep(resolved.retry_delay)

            if span is not None:
                span.set_attribute(ATTR_LOCK_ACQUIRED, False)
            raise LockAcquireTimeoutError(
                key,
                resolved.timeout,
                attempts=resolved.max_attempts,
            ) from last_failure

    async def _attempt(
        self,
        key: str,
        lock_id: int,
        options: ResolvedLockOptions,
        attempt: int,
    ) -> AttemptResult:
        """
        Run one grant request on a fresh session.

        The session is closed on every path except Granted, where ownership
        passes to the caller.
        """
        operation = "pg_advisory_lock" if options.wait else "pg_try_advisory_lock"

        with self._tracer.span(
            "pglock.lock.attempt",
            {
                ATTR_LOCK_KEY: key,
                ATTR_LOCK_ID: lock_id,
                ATTR_RETRY_COUNT: attempt,
                ATTR_DB_SYSTEM: "postgresql",
                ATTR_DB_OPERATION: operation,
            },
        ) as span:
            try:
                session = LockSession.open(key, self._session_factory)
            except LockConnectionError as e:
                return self._failed(span, e)

            try:
                if options.wait:
                    if options.attempt_timeout is not None:
                        await session.scalar(
                            SET_LOCK_TIMEOUT,
                            {"lock_timeout": _as_milliseconds(options.attempt_timeout)},
                        )
                    await session.scalar(ADVISORY_LOCK, {"lock_id": lock_id})
                    return Granted(session)

                granted = await session.scalar(TRY_ADVISORY_LOCK, {"lock_id": lock_id})
            except LockConnectionError as e:
                if is_lock_not_available(e.__cause__):
                    # lock_timeout expired: contention, and nothing is held
                    await self._close_quietly(session)
                    return BUSY
                await session.discard()
                return self._failed(span, e)
            except BaseException:
                # Cancelled mid-grant; the server may still grant to this connection
                await session.discard()
                raise

            if granted:
                return Granted(session)

            await self._close_quietly(session)
            return BUSY

    @staticmethod
    def _failed(span: Any, error: LockConnectionError) -> Failed:
        if span is not None:
            span.set_attribute(ATTR_ERROR_TYPE, type(error.__cause__ or error).__name__)
        return Failed(error)

    async def _register(
        self,
        key: str,
        lock_id: int,
        session: LockSession,
    ) -> LockHandle:
        handle = LockHandle(
            LockInfo(
                key=key,
                lock_id=lock_id,
                acquired_at=datetime.now(UTC),
                holder_id=self._settings.holder_id,
            ),
            session,
            tracer=self._tracer,
            on_release=self._forget,
        )
        async with self._lock:
            self._held_locks[key] = handle
        return handle

    async def _forget(self, handle: LockHandle) -> None:
        async with self._lock:
            # A newer handle for the same key may already be registered
            if self._held_locks.get(handle.key) is handle:
                del self._held_locks[handle.key]

    @staticmethod
    async def _close_quietly(session: LockSession) -> None:
        try:
            await session.close()
        except LockConnectionError as e:
            logger.warning(
                "Error closing lock session: key=%s, error=%s",
                session.key,
                e,
            )

    async def release(self, key: str) -> None:
        """
        Release a lock previously acquired through this coordinator.

        The unlock runs on the session bound to the lock's handle. Releasing
        a key this coordinator does not hold is logged and otherwise ignored,
        since PostgreSQL may already have dropped the lock with its session.

        Args:
            key: String key identifying the lock

        Raises:
            LockConnectionError: If the unlock query fails
        """
        async with self._lock:
            handle = self._held_locks.get(key)

        if handle is None:
            logger.warning(
                "%s; nothing to release (lock_id=%d)",
                LockNotHeldError(key),
                key_to_lock_id(key),
            )
            return

        await handle.release()

    async def is_locked(self, key: str) -> bool:
        """
        Check whether any session currently holds the lock for ``key``.

        Fails open: database errors are logged and reported as False, so the
        result is a hint for monitoring, not a correctness check.

        Args:
            key: String key identifying the lock

        Returns:
            True if some session holds the lock
        """
        lock_id = key_to_lock_id(key)

        with self._tracer.span(
            "pglock.lock.is_locked",
            {
                ATTR_LOCK_KEY: key,
                ATTR_LOCK_ID: lock_id,
                ATTR_DB_SYSTEM: "postgresql",
                ATTR_DB_OPERATION: "pg_locks",
            },
        ):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(HELD_LOCK, {"lock_id": lock_id})
                    return result.scalar() is not None
            except Exception as e:
                logger.error(
                    "Error checking advisory lock: key=%s, error=%s",
                    key,
                    e,
                )
                return False

    async def with_lock(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]] | Callable[[], T],
        options: LockOptions | None = None,
        **overrides: Any,
    ) -> T:
        """
        Run ``fn`` while holding the lock for ``key``.

        The lock is released on every exit path. Acquisition errors and
        errors raised by ``fn`` propagate; release errors are only logged.

        Args:
            key: String key identifying the lock
            fn: Zero-argument callable, sync or async
            options: Per-call options (optional)
            **overrides: Individual LockOptions fields

        Returns:
            Whatever ``fn`` returns (awaited if it is awaitable)

        Example:
            >>> total = await coordinator.with_lock(
            ...     "order:123",
            ...     lambda: recalculate_total(order_id),
            ...     retry_delay=0.5,
            ... )
        """
        handle = await self.acquire(key, options, **overrides)
        try:
            result = fn()
            if inspect.isawaitable(result):
                return await result  # type: ignore[no-any-return]
            return result  # type: ignore[return-value]
        finally:
            await self._release_quietly(handle)

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        options: LockOptions | None = None,
        **overrides: Any,
    ) -> AsyncIterator[LockInfo]:
        """
        Acquire the lock as a context manager.

        The lock is automatically released when the context exits, whether
        normally or due to an exception. Release errors are logged only.

        Yields:
            LockInfo with lock details

        Example:
            >>> async with coordinator.lock("cutover:tenant-123", wait=False):
            ...     await perform_cutover()
        """
        handle = await self.acquire(key, options, **overrides)
        try:
            yield handle.info
        finally:
            await self._release_quietly(handle)

    async def _release_quietly(self, handle: LockHandle) -> None:
        try:
            await handle.release()
        except Exception as e:
            logger.warning(
                "Error releasing advisory lock: key=%s, error=%s",
                handle.key,
                e,
            )

    async def is_held(self, key: str) -> bool:
        """
        Check if a lock is currently held by this coordinator.

        Unlike ``is_locked`` this only consults local bookkeeping.
        """
        async with self._lock:
            return key in self._held_locks

    async def release_all(self) -> int:
        """
        Release all locks held by this coordinator.

        Useful for cleanup on shutdown or error recovery.

        Returns:
            Number of locks released
        """
        async with self._lock:
            handles = list(self._held_locks.values())

        released = 0
        for handle in handles:
            try:
                await handle.release()
                released += 1
            except Exception as e:
                logger.warning(
                    "Error releasing lock during release_all: key=%s, error=%s",
                    handle.key,
                    e,
                )

        return released

    @property
    def held_lock_count(self) -> int:
        """
        Get the number of locks currently held by this coordinator.

        Note:
            This property is not async-safe; use with caution in
            concurrent code.
        """
        return len(self._held_locks)


def _as_milliseconds(seconds: float) -> str:
    # lock_timeout = 0 means "no limit", so never round down to it
    return f"{max(1, round(seconds * 1000))}ms"


__all__ = [
    "AttemptResult",
    "Busy",
    "Failed",
    "Granted",
    "LockCoordinator",
]
