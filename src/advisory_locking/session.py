"""
Session primitives consumed by the lockers.

A locker needs four things from the database session it runs against:

- ``execute_scalar``: run one statement and return its single value
- ``serialized``: exclusive use of the session's statement channel
- ``in_transaction``: whether a transaction is currently open
- ``savepoint``: a nested transaction that rolls back and re-raises on error

These are expressed as the LockSession / AsyncLockSession protocols, with
adapters for SQLAlchemy ``Session``/``Connection`` and their asyncio
counterparts. Any other object implementing a protocol can be passed to a
locker directly.

Note:
    Advisory locks belong to the database connection. When locking through
    an ORM ``Session``, the work must not commit the session: a commit
    returns the connection to the pool and the unlock would run on a
    different connection. Bind the locker to a ``Connection`` when the work
    needs to commit.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import (
    AbstractAsyncContextManager,
    AbstractContextManager,
    asynccontextmanager,
    contextmanager,
)
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession
from sqlalchemy.orm import Session
from sqlalchemy.sql import Executable

# Key under which the per-connection mutex is stored in ``bind.info``
MUTEX_INFO_KEY = "advisory_locking.mutex"

AUTOCOMMIT = "AUTOCOMMIT"


class TaskMutex:
    """
    asyncio mutex that the owning task may re-enter.

    Ownership is tied to the task object, so tasks spawned while the mutex is
    held still have to wait for it. A mutex belongs to the event loop that
    was running when it was created.
    """

    def __init__(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None
        self._depth = 0

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def owner(self) -> asyncio.Task[Any] | None:
        return self._owner

    def locked(self) -> bool:
        return self._lock.locked()

    async def acquire(self) -> None:
        task = asyncio.current_task()
        if task is None:
            raise RuntimeError("TaskMutex requires a running asyncio task")
        if self._owner is task:
            self._depth += 1
            return
        await self._lock.acquire()
        self._owner = task
        self._depth = 1

    def release(self) -> None:
        if self._owner is not asyncio.current_task():
            raise RuntimeError("TaskMutex released by a task that does not own it")
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
            self._lock.release()

    async def __aenter__(self) -> None:
        await self.acquire()

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()


@runtime_checkable
class LockSession(Protocol):
    """Synchronous session primitives required by AdvisoryLocker."""

    def execute_scalar(self, statement: Executable, params: Mapping[str, Any]) -> Any:
        """Execute a single statement and return the first column of the first row."""
        ...

    def serialized(self) -> AbstractContextManager[None]:
        """
        Hold exclusive access to the session's statement channel.

        Must be reentrant for the calling thread.
        """
        ...

    def in_transaction(self) -> bool:
        """Return True if a transaction is open on the session."""
        ...

    def savepoint(self) -> AbstractContextManager[Any]:
        """Open a savepoint; roll back to it and re-raise if the block fails."""
        ...


@runtime_checkable
class AsyncLockSession(Protocol):
    """Asynchronous session primitives required by AsyncAdvisoryLocker."""

    async def execute_scalar(self, statement: Executable, params: Mapping[str, Any]) -> Any:
        """Execute a single statement and return the first column of the first row."""
        ...

    def serialized(self) -> AbstractAsyncContextManager[None]:
        """
        Hold exclusive access to the session's statement channel.

        Must be reentrant for the calling task.
        """
        ...

    async def in_transaction(self) -> bool:
        """Return True if a transaction is open on the session."""
        ...

    def savepoint(self) -> AbstractAsyncContextManager[Any]:
        """Open a savepoint; roll back to it and re-raise if the block fails."""
        ...


def _is_autocommit(connection: Connection) -> bool:
    level = connection.get_execution_options().get("isolation_level")
    if level is None:
        # create_engine(isolation_level=...) is kept on the dialect, not in
        # the execution options
        level = connection.dialect._on_connect_isolation_level
    return level == AUTOCOMMIT


class SQLAlchemyLockSession:
    """
    LockSession backed by a SQLAlchemy ``Session`` or ``Connection``.

    Statement serialization uses a ``threading.RLock`` kept in ``bind.info``,
    so every adapter wrapping the same bind shares one mutex.

    Example:
        >>> with engine.connect() as conn:
        ...     locker = AdvisoryLocker(SQLAlchemyLockSession(conn))
    """

    def __init__(self, bind: Session | Connection) -> None:
        self._bind = bind

    @property
    def bind(self) -> Session | Connection:
        return self._bind

    def execute_scalar(self, statement: Executable, params: Mapping[str, Any]) -> Any:
        return self._bind.execute(statement, params).scalar()

    @contextmanager
    def serialized(self) -> Iterator[None]:
        mutex = self._bind.info.get(MUTEX_INFO_KEY)
        if mutex is None:
            mutex = self._bind.info.setdefault(MUTEX_INFO_KEY, threading.RLock())
        with mutex:
            yield

    def in_transaction(self) -> bool:
        """
        Return True if statements run inside a database transaction.

        SQLAlchemy begins a transaction implicitly on first execute, so this
        is also true after a plain statement, unless the connection runs
        with ``isolation_level="AUTOCOMMIT"``, set either on the engine or
        through execution options.
        """
        if not self._bind.in_transaction():
            return False
        if isinstance(self._bind, Session):
            return not _is_autocommit(self._bind.connection())
        return not _is_autocommit(self._bind)

    def savepoint(self) -> AbstractContextManager[Any]:
        return self._bind.begin_nested()


class AsyncSQLAlchemyLockSession:
    """
    AsyncLockSession backed by a SQLAlchemy ``AsyncSession`` or ``AsyncConnection``.

    Statement serialization uses a TaskMutex kept in ``bind.info``, replaced
    when the bind is next used from a different event loop.
    The lock is reentrant per task: a task already holding it (for example,
    nested locking of a second key inside locked work) passes straight through.

    Example:
        >>> async with engine.connect() as conn:
        ...     locker = AsyncAdvisoryLocker(AsyncSQLAlchemyLockSession(conn))
    """

    def __init__(self, bind: AsyncSession | AsyncConnection) -> None:
        self._bind = bind

    @property
    def bind(self) -> AsyncSession | AsyncConnection:
        return self._bind

    async def execute_scalar(self, statement: Executable, params: Mapping[str, Any]) -> Any:
        result = await self._bind.execute(statement, params)
        return result.scalar()

    @asynccontextmanager
    async def serialized(self) -> AsyncIterator[None]:
        # AsyncConnection.info lives on the pooled connection and outlives
        # the event loop that created the mutex
        mutex = self._bind.info.get(MUTEX_INFO_KEY)
        if mutex is None or mutex.loop is not asyncio.get_running_loop():
            mutex = TaskMutex()
            self._bind.info[MUTEX_INFO_KEY] = mutex
        async with mutex:
            yield

    async def in_transaction(self) -> bool:
        """See SQLAlchemyLockSession.in_transaction."""
        if not self._bind.in_transaction():
            return False
        if isinstance(self._bind, AsyncSession):
            connection = await self._bind.connection()
        else:
            connection = self._bind
        return not _is_autocommit(connection.sync_connection)

    def savepoint(self) -> AbstractAsyncContextManager[Any]:
        return self._bind.begin_nested()


def as_lock_session(bind: Any) -> LockSession:
    """
    Wrap a SQLAlchemy bind as a LockSession, or pass a LockSession through.

    Raises:
        TypeError: If bind is neither a Session, a Connection nor a LockSession
    """
    if isinstance(bind, Session | Connection):
        return SQLAlchemyLockSession(bind)
    if isinstance(bind, AsyncSession | AsyncConnection):
        raise TypeError(
            f"{type(bind).__name__} is asynchronous; use AsyncAdvisoryLocker instead"
        )
    if isinstance(bind, LockSession):
        return bind
    raise TypeError(f"cannot lock through {type(bind).__name__}; expected a Session or Connection")


def as_async_lock_session(bind: Any) -> AsyncLockSession:
    """
    Wrap an asyncio SQLAlchemy bind as an AsyncLockSession, or pass one through.

    Raises:
        TypeError: If bind is neither an AsyncSession, an AsyncConnection
            nor an AsyncLockSession
    """
    if isinstance(bind, AsyncSession | AsyncConnection):
        return AsyncSQLAlchemyLockSession(bind)
    if isinstance(bind, Session | Connection):
        raise TypeError(f"{type(bind).__name__} is synchronous; use AdvisoryLocker instead")
    if isinstance(bind, AsyncLockSession):
        return bind
    raise TypeError(
        f"cannot lock through {type(bind).__name__}; expected an AsyncSession or AsyncConnection"
    )


__all__ = [
    "AsyncLockSession",
    "AsyncSQLAlchemyLockSession",
    "LockSession",
    "MUTEX_INFO_KEY",
    "SQLAlchemyLockSession",
    "TaskMutex",
    "as_async_lock_session",
    "as_lock_session",
]
