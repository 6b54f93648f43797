"""
PostgreSQL advisory lock coordination.

Advisory locks are application-level locks that:
- Are independent of table/row locks
- Belong to the database session that took them
- Support non-blocking acquisition attempts
- Come in exclusive and shared flavours

The lockers in this module take a lock for the duration of one call (or one
``with`` block), run the caller's work while it is held, and always release it
afterwards. When the session already has an open transaction the work runs
inside a savepoint, so a failing statement in the work rolls back only to the
savepoint and the connection stays usable for the unlock statement.

Usage:
    >>> locker = AdvisoryLocker(connection)
    >>> locker.with_lock("import:tenant-abc", run_import)
    >>>
    >>> with locker.hold("import:tenant-abc", non_blocking=True) as acquired:
    ...     if acquired:
    ...         run_import()
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from contextlib import (
    AbstractAsyncContextManager,
    AbstractContextManager,
    asynccontextmanager,
    contextmanager,
    nullcontext,
)
from typing import Any, TypeVar

from advisory_locking.config import DEFAULT_CONFIG, AdvisoryLockConfig
from advisory_locking.keys import LockKey, derive_key, lock_key
from advisory_locking.modes import (
    LOCK_ID_PARAM,
    LockMode,
    acquire_statement,
    release_statement,
)
from advisory_locking.observability import (
    ATTR_DB_SYSTEM,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_ID,
    ATTR_LOCK_KEY,
    ATTR_LOCK_NON_BLOCKING,
    ATTR_LOCK_SHARED,
    SPAN_LOCK_ACQUIRE,
    SPAN_LOCK_RELEASE,
    Tracer,
    create_tracer,
)
from advisory_locking.session import (
    AsyncLockSession,
    LockSession,
    as_async_lock_session,
    as_lock_session,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _span_attributes(key: LockKey, lock_id: int, mode: LockMode) -> dict[str, Any]:
    return {
        ATTR_DB_SYSTEM: "postgresql",
        ATTR_LOCK_KEY: str(key.value),
        ATTR_LOCK_ID: lock_id,
        ATTR_LOCK_SHARED: mode.shared,
        ATTR_LOCK_NON_BLOCKING: mode.non_blocking,
    }


def _interpret_acquire(mode: LockMode, result: Any) -> bool:
    # pg_advisory_lock returns void; returning at all means it was granted.
    if not mode.non_blocking:
        return True
    return bool(result)


def _log_release(key: LockKey, lock_id: int, mode: LockMode, released: Any) -> None:
    if released:
        logger.debug(
            "Released advisory lock: key=%s, lock_id=%d, mode=%s",
            key.annotation,
            lock_id,
            mode.label,
        )
    else:
        logger.warning(
            "Advisory lock was not held at release: key=%s, lock_id=%d, mode=%s",
            key.annotation,
            lock_id,
            mode.label,
        )


class AdvisoryLocker:
    """
    Takes PostgreSQL advisory locks through a synchronous session.

    Each call derives the lock id from the key, issues the acquire statement,
    runs the work if the lock was granted, and releases the lock on every
    exit path. The whole acquire -> work -> release span holds the session's
    statement mutex, so other threads sharing the session cannot interleave.

    Example:
        >>> with engine.connect() as conn:
        ...     locker = AdvisoryLocker(conn)
        ...     locker.with_lock("report:daily", build_report)
        ...
        ...     # Try once, skip the work if another process holds the lock
        ...     if locker.with_lock("report:daily", non_blocking=True) is False:
        ...         print("report is being built elsewhere")
    """

    def __init__(
        self,
        bind: Any,
        *,
        config: AdvisoryLockConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the locker.

        Args:
            bind: SQLAlchemy Session or Connection, or any LockSession
            config: Optional AdvisoryLockConfig (defaults apply if omitted)
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: Whether to enable OpenTelemetry tracing.
                          Ignored if tracer is explicitly provided.

        Raises:
            TypeError: If bind cannot be used as a LockSession
        """
        self._session: LockSession = as_lock_session(bind)
        self._config = config or DEFAULT_CONFIG
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def session(self) -> LockSession:
        return self._session

    @property
    def config(self) -> AdvisoryLockConfig:
        return self._config

    @staticmethod
    def derive_key(key: Any) -> int:
        """Return the signed 64-bit lock id for ``key``."""
        return derive_key(key)

    def with_lock(
        self,
        key: Any,
        work: Callable[[], T] | None = None,
        *,
        non_blocking: bool = False,
        shared: bool = False,
    ) -> T | bool:
        """
        Run ``work`` while holding the advisory lock for ``key``.

        Args:
            key: Integer or string lock key
            work: Zero-argument callable to run while the lock is held.
                  If omitted, the lock is taken and released immediately.
            non_blocking: Try once instead of waiting for the lock
            shared: Take a shared lock instead of an exclusive one

        Returns:
            The work's return value if the lock was acquired and work was
            given; otherwise whether the lock was acquired.

        Raises:
            InvalidLockKeyError: If key is neither an integer nor a string
            LockKeyOutOfRangeError: If an integer key does not fit in a bigint
        """
        mode = LockMode(non_blocking=non_blocking, shared=shared)
        if work is None:
            with self._locked(key, mode) as locked:
                return locked

        with self._locked(key, mode) as locked:
            if not locked:
                return False
            with self._work_scope():
                return work()

    @contextmanager
    def hold(
        self,
        key: Any,
        *,
        non_blocking: bool = False,
        shared: bool = False,
    ) -> Iterator[bool]:
        """
        Hold the advisory lock for ``key`` for the duration of a ``with`` block.

        Yields whether the lock was acquired. The block is the locked work: it
        runs inside a savepoint when a transaction is open and the lock was
        acquired, and the lock is released however the block exits.

        Example:
            >>> with locker.hold("sync:accounts", non_blocking=True) as acquired:
            ...     if not acquired:
            ...         return
            ...     sync_accounts()
        """
        mode = LockMode(non_blocking=non_blocking, shared=shared)
        with self._locked(key, mode) as locked:
            if not locked:
                yield False
                return
            with self._work_scope():
                yield True

    @contextmanager
    def _locked(self, key: Any, mode: LockMode) -> Iterator[bool]:
        lock = lock_key(key)
        lock_id = lock.derive()

        with self._session.serialized():
            locked = False
            try:
                locked = self._acquire(lock, lock_id, mode)
                yield locked
            finally:
                if locked:
                    self._release(lock, lock_id, mode)

    def _work_scope(self) -> AbstractContextManager[Any]:
        if self._config.guard_transactions and self._session.in_transaction():
            logger.debug("Running locked work inside a savepoint")
            return self._session.savepoint()
        return nullcontext()

    def _acquire(self, key: LockKey, lock_id: int, mode: LockMode) -> bool:
        with self._tracer.span(SPAN_LOCK_ACQUIRE, _span_attributes(key, lock_id, mode)) as span:
            result = self._session.execute_scalar(
                acquire_statement(mode, key, self._config),
                {LOCK_ID_PARAM: lock_id},
            )
            locked = _interpret_acquire(mode, result)
            if span is not None:
                span.set_attribute(ATTR_LOCK_ACQUIRED, locked)

        logger.debug(
            "%s advisory lock: key=%s, lock_id=%d, mode=%s",
            "Acquired" if locked else "Could not acquire",
            key.annotation,
            lock_id,
            mode.label,
        )
        return locked

    def _release(self, key: LockKey, lock_id: int, mode: LockMode) -> None:
        with self._tracer.span(SPAN_LOCK_RELEASE, _span_attributes(key, lock_id, mode)):
            released = self._session.execute_scalar(
                release_statement(mode, key, self._config),
                {LOCK_ID_PARAM: lock_id},
            )
        _log_release(key, lock_id, mode, released)


class AsyncAdvisoryLocker:
    """
    Takes PostgreSQL advisory locks through an asyncio session.

    Behaves like AdvisoryLocker, with awaitable work. If the task is
    cancelled while waiting in the acquire statement, the lock is treated
    as not acquired and no unlock is issued.

    Example:
        >>> async with engine.connect() as conn:
        ...     locker = AsyncAdvisoryLocker(conn)
        ...     await locker.with_lock("cutover:tenant-123", perform_cutover)
        ...
        ...     async with locker.hold("cutover:tenant-123") as acquired:
        ...         await perform_cutover()
    """

    def __init__(
        self,
        bind: Any,
        *,
        config: AdvisoryLockConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the locker.

        Args:
            bind: SQLAlchemy AsyncSession or AsyncConnection, or any AsyncLockSession
            config: Optional AdvisoryLockConfig (defaults apply if omitted)
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing.
                          Ignored if tracer is explicitly provided.
        """
        self._session: AsyncLockSession = as_async_lock_session(bind)
        self._config = config or DEFAULT_CONFIG
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def session(self) -> AsyncLockSession:
        return self._session

    @property
    def config(self) -> AdvisoryLockConfig:
        return self._config

    @staticmethod
    def derive_key(key: Any) -> int:
        """Return the signed 64-bit lock id for ``key``."""
        return derive_key(key)

    async def with_lock(
        self,
        key: Any,
        work: Callable[[], Awaitable[T]] | None = None,
        *,
        non_blocking: bool = False,
        shared: bool = False,
    ) -> T | bool:
        """
        Await ``work()`` while holding the advisory lock for ``key``.

        See AdvisoryLocker.with_lock for the return value and errors.
        """
        mode = LockMode(non_blocking=non_blocking, shared=shared)
        if work is None:
            async with self._locked(key, mode) as locked:
                return locked

        async with self._locked(key, mode) as locked:
            if not locked:
                return False
            async with await self._work_scope():
                return await work()

    @asynccontextmanager
    async def hold(
        self,
        key: Any,
        *,
        non_blocking: bool = False,
        shared: bool = False,
    ) -> AsyncIterator[bool]:
        """Hold the advisory lock for ``key`` for an ``async with`` block."""
        mode = LockMode(non_blocking=non_blocking, shared=shared)
        async with self._locked(key, mode) as locked:
            if not locked:
                yield False
                return
            async with await self._work_scope():
                yield True

    @asynccontextmanager
    async def _locked(self, key: Any, mode: LockMode) -> AsyncIterator[bool]:
        lock = lock_key(key)
        lock_id = lock.derive()

        async with self._session.serialized():
            locked = False
            try:
                locked = await self._acquire(lock, lock_id, mode)
                yield locked
            finally:
                if locked:
                    await self._release(lock, lock_id, mode)

    async def _work_scope(self) -> AbstractAsyncContextManager[Any]:
        if self._config.guard_transactions and await self._session.in_transaction():
            logger.debug("Running locked work inside a savepoint")
            return self._session.savepoint()
        return nullcontext()

    async def _acquire(self, key: LockKey, lock_id: int, mode: LockMode) -> bool:
        with self._tracer.span(SPAN_LOCK_ACQUIRE, _span_attributes(key, lock_id, mode)) as span:
            result = await self._session.execute_scalar(
                acquire_statement(mode, key, self._config),
                {LOCK_ID_PARAM: lock_id},
            )
            locked = _interpret_acquire(mode, result)
            if span is not None:
                span.set_attribute(ATTR_LOCK_ACQUIRED, locked)

        logger.debug(
            "%s advisory lock: key=%s, lock_id=%d, mode=%s",
            "Acquired" if locked else "Could not acquire",
            key.annotation,
            lock_id,
            mode.label,
        )
        return locked

    async def _release(self, key: LockKey, lock_id: int, mode: LockMode) -> None:
        with self._tracer.span(SPAN_LOCK_RELEASE, _span_attributes(key, lock_id, mode)):
            released = await self._session.execute_scalar(
                release_statement(mode, key, self._config),
                {LOCK_ID_PARAM: lock_id},
            )
        _log_release(key, lock_id, mode, released)


def advisory_lock(
    bind: Any,
    key: Any,
    work: Callable[[], T] | None = None,
    *,
    non_blocking: bool = False,
    shared: bool = False,
) -> T | bool:
    """
    Run ``work`` under the advisory lock for ``key`` on ``bind``.

    Shorthand for ``AdvisoryLocker(bind).with_lock(key, work, ...)``.

    Example:
        >>> with engine.connect() as conn:
        ...     advisory_lock(conn, "nightly-cleanup", cleanup, non_blocking=True)
    """
    return AdvisoryLocker(bind).with_lock(
        key, work, non_blocking=non_blocking, shared=shared
    )


async def async_advisory_lock(
    bind: Any,
    key: Any,
    work: Callable[[], Awaitable[T]] | None = None,
    *,
    non_blocking: bool = False,
    shared: bool = False,
) -> T | bool:
    """Shorthand for ``AsyncAdvisoryLocker(bind).with_lock(key, work, ...)``."""
    return await AsyncAdvisoryLocker(bind).with_lock(
        key, work, non_blocking=non_blocking, shared=shared
    )


__all__ = [
    "AdvisoryLocker",
    "AsyncAdvisoryLocker",
    "advisory_lock",
    "async_advisory_lock",
]
