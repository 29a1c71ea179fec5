"""
Shared pytest fixtures for the pglock tests.

This module provides:
- In-memory lock engine fixtures (lock_engine, coordinator, second_coordinator)
- Mocked SQLAlchemy session fixtures (mock_session, mock_session_factory)
- Helpers for building mock query results
- Isolation of the process-wide default coordinator

All fixtures are function scoped so that each test gets a fresh lock table.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pglock import LockCoordinator, LockSettings, reset_coordinator
from pglock.testing import InMemoryAdvisoryLockEngine

# =============================================================================
# Settings
# =============================================================================

# Short delays keep retry tests fast while still measurable
FAST_SETTINGS = LockSettings(max_retries=3, retry_delay=0.01)


@pytest.fixture
def fast_settings() -> LockSettings:
    """Provide settings with a short retry delay."""
    return FAST_SETTINGS


# =============================================================================
# In-Memory Engine Fixtures
# =============================================================================


@pytest.fixture
def lock_engine() -> InMemoryAdvisoryLockEngine:
    """
    Provide a fresh in-memory advisory lock engine.

    Coordinators built on the same engine contend with each other like
    processes sharing one database.
    """
    return InMemoryAdvisoryLockEngine()


@pytest.fixture
def coordinator(
    lock_engine: InMemoryAdvisoryLockEngine,
    fast_settings: LockSettings,
) -> LockCoordinator:
    """Provide a LockCoordinator backed by the in-memory engine."""
    return LockCoordinator(
        lock_engine.session_factory,  # type: ignore[arg-type]
        fast_settings,
        enable_tracing=False,
    )


@pytest.fixture
def second_coordinator(
    lock_engine: InMemoryAdvisoryLockEngine,
    fast_settings: LockSettings,
) -> LockCoordinator:
    """Provide a second coordinator sharing the same engine."""
    return LockCoordinator(
        lock_engine.session_factory,  # type: ignore[arg-type]
        fast_settings,
        enable_tracing=False,
    )


# =============================================================================
# Mocked Session Fixtures
# =============================================================================


def create_scalar_result(value: Any) -> MagicMock:
    """Create a mock SQLAlchemy result whose scalar() returns ``value``."""
    result = MagicMock()
    result.scalar.return_value = value
    return result


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create a mock async session."""
    session = AsyncMock(spec=AsyncSession)
    session.execute.return_value = create_scalar_result(True)
    return session


@pytest.fixture
def mock_session_factory(mock_session: AsyncMock) -> MagicMock:
    """
    Create a mock session factory that returns the mock session.

    The session is returned both when called directly and when used as an
    async context manager.
    """
    factory = MagicMock(spec=async_sessionmaker)
    mock_session.__aenter__.return_value = mock_session
    mock_session.__aexit__.return_value = None
    factory.return_value = mock_session
    return factory


# =============================================================================
# Default Coordinator Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_default_coordinator() -> Generator[None, None, None]:
    """Make sure no test leaks a process-wide default coordinator."""
    reset_coordinator()
    yield
    reset_coordinator()
