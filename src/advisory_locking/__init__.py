"""
advisory_locking - PostgreSQL advisory locks for SQLAlchemy.

This library provides:
- Deterministic lock ids from string or integer keys, matching PostgreSQL's
  own ``md5``/``bit(64)::bigint`` derivation
- Blocking and non-blocking, exclusive and shared acquisition
- Guaranteed release on every exit path, with savepoint protection for work
  running inside an open transaction
- Sync (Session/Connection) and asyncio (AsyncSession/AsyncConnection) lockers

Example:
    >>> from advisory_locking import AdvisoryLocker
    >>>
    >>> with engine.connect() as conn:
    ...     locker = AdvisoryLocker(conn)
    ...     locker.with_lock("billing:run", run_billing)
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("advisory-locking")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from advisory_locking.config import AdvisoryLockConfig
from advisory_locking.exceptions import (
    AdvisoryLockError,
    InvalidLockKeyError,
    LockKeyOutOfRangeError,
    TransactionRollback,
)
from advisory_locking.keys import (
    SIGNED_BIGINT_MAXIMUM,
    SIGNED_BIGINT_MINIMUM,
    IntegerKey,
    LockKey,
    TextKey,
    derive_key,
    lock_key,
)
from advisory_locking.locker import (
    AdvisoryLocker,
    AsyncAdvisoryLocker,
    advisory_lock,
    async_advisory_lock,
)
from advisory_locking.modes import LockMode
from advisory_locking.session import (
    AsyncLockSession,
    AsyncSQLAlchemyLockSession,
    LockSession,
    SQLAlchemyLockSession,
)

__all__ = [
    "__version__",
    # Locking
    "AdvisoryLocker",
    "AsyncAdvisoryLocker",
    "advisory_lock",
    "async_advisory_lock",
    "LockMode",
    # Keys
    "IntegerKey",
    "LockKey",
    "TextKey",
    "derive_key",
    "lock_key",
    "SIGNED_BIGINT_MAXIMUM",
    "SIGNED_BIGINT_MINIMUM",
    # Sessions
    "AsyncLockSession",
    "AsyncSQLAlchemyLockSession",
    "LockSession",
    "SQLAlchemyLockSession",
    # Configuration
    "AdvisoryLockConfig",
    # Exceptions
    "AdvisoryLockError",
    "InvalidLockKeyError",
    "LockKeyOutOfRangeError",
    "TransactionRollback",
]
