"""
Exclusive database sessions backing advisory locks.

PostgreSQL advisory locks taken with ``pg_advisory_lock`` belong to the
database session that took them. Releasing from any other connection is a
no-op as far as the server is concerned, and the lock stays held until the
original connection goes away. A LockSession therefore wraps exactly one
``AsyncSession`` for the whole life of one lock: grant, hold, release.

The wrapped session keeps its transaction open while the lock is held.
Committing would hand the connection back to the pool and break affinity.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import TextClause

from pglock.exceptions import LockConnectionError
from pglock.queries import LOCK_NOT_AVAILABLE

logger = logging.getLogger(__name__)

DATABASE_ERRORS: tuple[type[BaseException], ...] = (SQLAlchemyError, OSError)


def is_lock_not_available(error: BaseException | None) -> bool:
    """
    Check whether an error is PostgreSQL's ``lock_not_available`` (55P03).

    Walks the SQLAlchemy wrapper (``.orig``) and the driver's own cause
    chain, since asyncpg exposes ``sqlstate`` and psycopg exposes ``pgcode``.
    """
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        code = getattr(error, "sqlstate", None) or getattr(error, "pgcode", None)
        if code == LOCK_NOT_AVAILABLE:
            return True
        error = getattr(error, "orig", None) or error.__cause__
    return False


class LockSession:
    """
    One exclusively-owned database session for one advisory lock.

    The session is closed exactly once: ``close()`` and ``discard()`` are
    no-ops after the first call to either.

    Example:
        >>> session = LockSession.open("order:123", session_factory)
        >>> try:
        ...     granted = await session.scalar(TRY_ADVISORY_LOCK, {"lock_id": 42})
        ... finally:
        ...     await session.close()
    """

    def __init__(self, key: str, session: AsyncSession) -> None:
        self._key = key
        self._session = session
        self._closed = False

    @classmethod
    def open(
        cls,
        key: str,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> LockSession:
        """
        Create a new exclusive session for ``key``.

        The connection is checked out of the pool lazily, on the first query.

        Raises:
            LockConnectionError: If the session cannot be created
        """
        try:
            return cls(key, session_factory())
        except DATABASE_ERRORS as e:
            raise LockConnectionError(key, f"could not open session: {e}") from e

    @property
    def key(self) -> str:
        """The lock key this session serves."""
        return self._key

    @property
    def closed(self) -> bool:
        """True once the session has been closed or discarded."""
        return self._closed

    async def scalar(
        self,
        statement: TextClause,
        params: dict[str, Any],
    ) -> Any:
        """
        Execute one statement and return the first column of the first row.

        Raises:
            LockConnectionError: If the session is closed or the query fails
        """
        if self._closed:
            raise LockConnectionError(self._key, "session is closed")
        try:
            result = await self._session.execute(statement, params)
            return result.scalar()
        except DATABASE_ERRORS as e:
            raise LockConnectionError(self._key, str(e)) from e

    async def close(self) -> None:
        """
        Return the connection to the pool.

        Only call this once the session holds no advisory lock, since the
        pool does not reset session-level locks on check-in.

        Raises:
            LockConnectionError: If closing fails
        """
        if self._closed:
            return
        self._closed = True
        try:
            await self._session.close()
        except DATABASE_ERRORS as e:
            raise LockConnectionError(self._key, f"could not close session: {e}") from e

    async def discard(self) -> None:
        """
        Close the session and invalidate its connection.

        The DBAPI connection is closed instead of being pooled, so the server
        drops any advisory lock the session may still hold. Used when the
        lock state of the connection is unknown. Never raises.
        """
        if self._closed:
            return
        self._closed = True
        try:
            await self._session.invalidate()
        except DATABASE_ERRORS as e:
            logger.warning(
                "Error invalidating lock session: key=%s, error=%s",
                self._key,
                e,
            )


__all__ = [
    "DATABASE_ERRORS",
    "LockSession",
    "is_lock_not_available",
]
