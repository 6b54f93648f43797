"""
Shared test fixtures for the advisory_locking library.

Usage:
    from tests.fixtures import (
        AsyncRecordingLockSession,
        FakeAdvisoryLockTable,
        RecordingLockSession,
        install_fake_advisory_locks,
    )
"""

from tests.fixtures.postgres import MD5_LOCK_ID_SQL, async_held_lock_ids, held_lock_ids
from tests.fixtures.sessions import AsyncRecordingLockSession, RecordingLockSession
from tests.fixtures.sqlite import (
    FakeAdvisoryLockTable,
    install_fake_advisory_locks,
    record_statements,
)

__all__ = [
    "AsyncRecordingLockSession",
    "FakeAdvisoryLockTable",
    "MD5_LOCK_ID_SQL",
    "RecordingLockSession",
    "async_held_lock_ids",
    "held_lock_ids",
    "install_fake_advisory_locks",
    "record_statements",
]
