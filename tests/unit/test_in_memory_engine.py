"""
Tests for the in-memory advisory lock engine.

The engine stands in for PostgreSQL in the behaviour tests, so these tests
pin down the server rules it reproduces.
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ResourceClosedError

from pglock.queries import (
    ADVISORY_LOCK,
    ADVISORY_UNLOCK,
    HELD_LOCK,
    SET_LOCK_TIMEOUT,
    TRY_ADVISORY_LOCK,
)
from pglock.session import is_lock_not_available
from pglock.testing import InMemoryAdvisoryLockEngine, InMemorySession


async def _scalar(session: InMemorySession, statement, **params):
    result = await session.execute(statement, params)
    return result.scalar()


class TestOwnership:
    """Tests for per-session ownership."""

    async def test_try_lock_grants_free_lock(self, lock_engine: InMemoryAdvisoryLockEngine):
        session = lock_engine.session_factory()

        assert await _scalar(session, TRY_ADVISORY_LOCK, lock_id=1) is True
        assert lock_engine.is_held(1)

    async def test_try_lock_refuses_other_session(self, lock_engine: InMemoryAdvisoryLockEngine):
        first = lock_engine.session_factory()
        second = lock_engine.session_factory()
        await _scalar(first, TRY_ADVISORY_LOCK, lock_id=1)

        assert await _scalar(second, TRY_ADVISORY_LOCK, lock_id=1) is False

    async def test_reentrant_within_session(self, lock_engine: InMemoryAdvisoryLockEngine):
        session = lock_engine.session_factory()
        await _scalar(session, ADVISORY_LOCK, lock_id=1)
        await _scalar(session, TRY_ADVISORY_LOCK, lock_id=1)

        assert await _scalar(session, ADVISORY_UNLOCK, lock_id=1) is True
        assert lock_engine.is_held(1)
        assert await _scalar(session, ADVISORY_UNLOCK, lock_id=1) is True
        assert not lock_engine.is_held(1)

    async def test_unlock_from_other_session_is_noop(
        self,
        lock_engine: InMemoryAdvisoryLockEngine,
    ):
        owner = lock_engine.session_factory()
        other = lock_engine.session_factory()
        await _scalar(owner, ADVISORY_LOCK, lock_id=1)

        assert await _scalar(other, ADVISORY_UNLOCK, lock_id=1) is False
        assert lock_engine.is_held(1)

    async def test_close_drops_locks(self, lock_engine: InMemoryAdvisoryLockEngine):
        session = lock_engine.session_factory()
        await _scalar(session, ADVISORY_LOCK, lock_id=1)
        await _scalar(session, ADVISORY_LOCK, lock_id=2)

        await session.close()

        assert lock_engine.held_lock_ids == set()
        assert lock_engine.open_sessions == 0

    async def test_invalidate_drops_locks(self, lock_engine: InMemoryAdvisoryLockEngine):
        session = lock_engine.session_factory()
        await _scalar(session, ADVISORY_LOCK, lock_id=1)

        await session.invalidate()

        assert session.invalidated is True
        assert not lock_engine.is_held(1)

    async def test_closed_session_rejects_statements(
        self,
        lock_engine: InMemoryAdvisoryLockEngine,
    ):
        session = lock_engine.session_factory()
        await session.close()

        with pytest.raises(ResourceClosedError):
            await _scalar(session, TRY_ADVISORY_LOCK, lock_id=1)

    async def test_held_lock_query(self, lock_engine: InMemoryAdvisoryLockEngine):
        owner = lock_engine.session_factory()
        async with lock_engine.session_factory() as observer:
            assert await _scalar(observer, HELD_LOCK, lock_id=1) is None
            await _scalar(owner, ADVISORY_LOCK, lock_id=1)
            assert await _scalar(observer, HELD_LOCK, lock_id=1) == 1


class TestBlocking:
    """Tests for pg_advisory_lock waiting."""

    async def test_waits_until_released(self, lock_engine: InMemoryAdvisoryLockEngine):
        owner = lock_engine.session_factory()
        waiter = lock_engine.session_factory()
        await _scalar(owner, ADVISORY_LOCK, lock_id=1)

        pending = asyncio.create_task(_scalar(waiter, ADVISORY_LOCK, lock_id=1))
        await asyncio.sleep(0.01)
        assert not pending.done()

        await _scalar(owner, ADVISORY_UNLOCK, lock_id=1)
        await asyncio.wait_for(pending, 1.0)

        assert await _scalar(waiter, ADVISORY_UNLOCK, lock_id=1) is True

    async def test_lock_timeout_raises_lock_not_available(
        self,
        lock_engine: InMemoryAdvisoryLockEngine,
    ):
        owner = lock_engine.session_factory()
        waiter = lock_engine.session_factory()
        await _scalar(owner, ADVISORY_LOCK, lock_id=1)
        await _scalar(waiter, SET_LOCK_TIMEOUT, lock_timeout="20ms")

        with pytest.raises(OperationalError) as exc_info:
            await _scalar(waiter, ADVISORY_LOCK, lock_id=1)

        assert is_lock_not_available(exc_info.value)
        assert lock_engine.is_held(1)

    async def test_terminate_backend_wakes_waiters(
        self,
        lock_engine: InMemoryAdvisoryLockEngine,
    ):
        owner = lock_engine.session_factory()
        waiter = lock_engine.session_factory()
        await _scalar(owner, ADVISORY_LOCK, lock_id=1)

        pending = asyncio.create_task(_scalar(waiter, ADVISORY_LOCK, lock_id=1))
        await asyncio.sleep(0.01)

        assert await lock_engine.terminate_backend(1) is True
        await asyncio.wait_for(pending, 1.0)
        assert await _scalar(owner, ADVISORY_UNLOCK, lock_id=1) is False


class TestHelpers:
    """Tests for failure injection and bookkeeping."""

    async def test_fail_next(self, lock_engine: InMemoryAdvisoryLockEngine):
        lock_engine.fail_next()
        session = lock_engine.session_factory()

        with pytest.raises(OperationalError):
            await _scalar(session, TRY_ADVISORY_LOCK, lock_id=1)

        assert await _scalar(session, TRY_ADVISORY_LOCK, lock_id=1) is True

    async def test_statement_history(self, lock_engine: InMemoryAdvisoryLockEngine):
        session = lock_engine.session_factory()
        await _scalar(session, TRY_ADVISORY_LOCK, lock_id=7)
        await _scalar(session, ADVISORY_UNLOCK, lock_id=7)

        assert lock_engine.statements == [
            ("pg_try_advisory_lock", {"lock_id": 7}),
            ("pg_advisory_unlock", {"lock_id": 7}),
        ]
        assert lock_engine.count("pg_try_advisory_lock") == 1

        lock_engine.reset()
        assert lock_engine.statements == []

    async def test_unsupported_statement(self, lock_engine: InMemoryAdvisoryLockEngine):
        session = lock_engine.session_factory()

        with pytest.raises(ValueError, match="Unsupported statement"):
            await session.execute(text("SELECT 1"))
