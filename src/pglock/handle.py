"""
Handles for acquired advisory locks.

A LockHandle is the only owner of the LockSession that was granted the
lock. Releasing through the handle runs the unlock on that same session and
then closes it, which is the only way to release a session-scoped advisory
lock early.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from types import TracebackType

from pglock.exceptions import LockError, LockNotHeldError
from pglock.observability import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_LOCK_ID,
    ATTR_LOCK_KEY,
    NullTracer,
    Tracer,
)
from pglock.queries import ADVISORY_UNLOCK
from pglock.session import LockSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockInfo:
    """
    Information about an acquired lock.

    Attributes:
        key: The string key used to identify the lock
        lock_id: The numeric PostgreSQL lock ID (derived from key hash)
        acquired_at: When the lock was acquired
        holder_id: Optional identifier for the lock holder (for debugging)
    """

    key: str
    lock_id: int
    acquired_at: datetime
    holder_id: str | None = None


class LockHandle:
    """
    Token for one granted advisory lock.

    Produced only by ``LockCoordinator.acquire``. The handle is single use:
    the first ``release()`` unlocks and closes the session, later calls are
    no-ops. Usable as an async context manager.

    Example:
        >>> handle = await coordinator.acquire("order:123")
        >>> try:
        ...     await process_order()
        ... finally:
        ...     await handle.release()
        >>>
        >>> async with await coordinator.acquire("order:123"):
        ...     await process_order()
    """

    def __init__(
        self,
        info: LockInfo,
        session: LockSession,
        *,
        tracer: Tracer | None = None,
        on_release: Callable[[LockHandle], Awaitable[None]] | None = None,
    ) -> None:
        self._info = info
        self._session = session
        self._tracer = tracer or NullTracer()
        self._on_release = on_release
        self._released = False

    @property
    def info(self) -> LockInfo:
        """Snapshot of the lock's identity."""
        return self._info

    @property
    def key(self) -> str:
        return self._info.key

    @property
    def lock_id(self) -> int:
        return self._info.lock_id

    @property
    def acquired_at(self) -> datetime:
        return self._info.acquired_at

    @property
    def holder_id(self) -> str | None:
        return self._info.holder_id

    @property
    def released(self) -> bool:
        """True once ``release()`` has been called."""
        return self._released

    async def release(self) -> None:
        """
        Release the lock on the session that acquired it.

        If PostgreSQL reports that nothing was held (the session already
        ended, for example) the condition is logged and the call returns
        normally.

        Raises:
            LockConnectionError: If the unlock query fails. The session is
                invalidated first, so the server drops the lock anyway.
        """
        if self._released:
            logger.debug("Advisory lock handle already released: key=%s", self.key)
            return
        self._released = True

        try:
            with self._tracer.span(
                "pglock.lock.release",
                {
                    ATTR_LOCK_KEY: self.key,
                    ATTR_LOCK_ID: self.lock_id,
                    ATTR_DB_SYSTEM: "postgresql",
                    ATTR_DB_OPERATION: "pg_advisory_unlock",
                },
            ):
                try:
                    unlocked = await self._session.scalar(
                        ADVISORY_UNLOCK,
                        {"lock_id": self.lock_id},
                    )
                except BaseException:
                    # Unknown lock state on this connection; let the server drop it
                    await self._session.discard()
                    raise

                if unlocked:
                    logger.debug(
                        "Released advisory lock: key=%s, lock_id=%d",
                        self.key,
                        self.lock_id,
                    )
                else:
                    logger.warning(
                        "%s; ignoring release (lock_id=%d)",
                        LockNotHeldError(self.key),
                        self.lock_id,
                    )

                await self._session.close()
        finally:
            if self._on_release is not None:
                await self._on_release(self)

    async def __aenter__(self) -> LockHandle:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            await self.release()
        except LockError as e:
            if exc_type is None:
                raise
            # Keep the body's exception as the one the caller sees
            logger.warning(
                "Error releasing advisory lock: key=%s, error=%s",
                self.key,
                e,
            )

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"LockHandle(key={self.key!r}, lock_id={self.lock_id}, {state})"


__all__ = [
    "LockHandle",
    "LockInfo",
]
