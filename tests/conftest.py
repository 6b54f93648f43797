"""
Shared pytest fixtures for the advisory_locking library tests.

This module provides:
- Recording sessions (recording_session, async_recording_session)
- A fake advisory lock table and SQLite engines that expose
  PostgreSQL's advisory lock functions (sqlite_engine, async_sqlite_engine)
- AUTOCOMMIT variants of both engines
- A MockTracer for span assertions
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from advisory_locking.observability import MockTracer
from tests.fixtures import (
    AsyncRecordingLockSession,
    FakeAdvisoryLockTable,
    RecordingLockSession,
    install_fake_advisory_locks,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine

# ============================================================================
# aiosqlite Availability Check
# ============================================================================

AIOSQLITE_AVAILABLE = False
try:
    import aiosqlite  # noqa: F401

    AIOSQLITE_AVAILABLE = True
except ImportError:
    pass

skip_if_no_aiosqlite = pytest.mark.skipif(
    not AIOSQLITE_AVAILABLE, reason="aiosqlite not installed (pip install aiosqlite)"
)


# ============================================================================
# Recording Sessions
# ============================================================================


@pytest.fixture
def recording_session() -> RecordingLockSession:
    """Provide a synchronous in-memory recording session."""
    return RecordingLockSession()


@pytest.fixture
def async_recording_session() -> AsyncRecordingLockSession:
    """Provide an asynchronous in-memory recording session."""
    return AsyncRecordingLockSession()


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Provide a MockTracer that records spans."""
    return MockTracer()


# ============================================================================
# SQLite Fixtures
# ============================================================================


@pytest.fixture
def advisory_table() -> FakeAdvisoryLockTable:
    """Provide an empty fake advisory lock table."""
    return FakeAdvisoryLockTable()


@pytest.fixture
def sqlite_engine(
    tmp_path: Path,
    advisory_table: FakeAdvisoryLockTable,
) -> Generator[Engine, None, None]:
    """Provide a file-backed SQLite engine with fake advisory lock functions."""
    engine = create_engine(f"sqlite:///{tmp_path / 'locks.db'}")
    install_fake_advisory_locks(engine, advisory_table)

    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE items (name TEXT NOT NULL)")

    yield engine

    engine.dispose()


@pytest.fixture
async def async_sqlite_engine(
    tmp_path: Path,
    advisory_table: FakeAdvisoryLockTable,
) -> AsyncGenerator[AsyncEngine, None]:
    """Provide an aiosqlite engine with fake advisory lock functions."""
    if not AIOSQLITE_AVAILABLE:
        pytest.skip("aiosqlite not installed")

    from sqlalchemy.ext.asyncio import create_async_engine

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'locks.db'}")
    install_fake_advisory_locks(engine.sync_engine, advisory_table)

    async with engine.begin() as conn:
        await conn.exec_driver_sql("CREATE TABLE items (name TEXT NOT NULL)")

    yield engine

    await engine.dispose()


@pytest.fixture
def autocommit_sqlite_engine(
    tmp_path: Path,
    advisory_table: FakeAdvisoryLockTable,
) -> Generator[Engine, None, None]:
    """Provide a SQLite engine created with AUTOCOMMIT isolation."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'autocommit.db'}", isolation_level="AUTOCOMMIT"
    )
    install_fake_advisory_locks(engine, advisory_table, savepoints=False)

    yield engine

    engine.dispose()


@pytest.fixture
async def async_autocommit_sqlite_engine(
    tmp_path: Path,
    advisory_table: FakeAdvisoryLockTable,
) -> AsyncGenerator[AsyncEngine, None]:
    """Provide an aiosqlite engine created with AUTOCOMMIT isolation."""
    if not AIOSQLITE_AVAILABLE:
        pytest.skip("aiosqlite not installed")

    from sqlalchemy.ext.asyncio import create_async_engine

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'autocommit.db'}", isolation_level="AUTOCOMMIT"
    )
    install_fake_advisory_locks(engine.sync_engine, advisory_table, savepoints=False)

    yield engine

    await engine.dispose()
