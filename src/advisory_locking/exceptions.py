"""Library exceptions for the advisory_locking package."""

from typing import Any


class AdvisoryLockError(Exception):
    """Base exception for advisory_locking library."""

    pass


class InvalidLockKeyError(AdvisoryLockError, TypeError):
    """Raised when a lock key is neither an integer nor a string."""

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(f"passed an invalid key type ({type(key).__name__})")


class LockKeyOutOfRangeError(AdvisoryLockError, ValueError):
    """Raised when an integer lock key falls outside PostgreSQL's bigint range."""

    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(
            f"given advisory lock integer ({value}) falls outside Postgres' bigint range"
        )


class TransactionRollback(AdvisoryLockError):
    """
    Raise inside locked work to roll back the work's savepoint.

    When the work runs inside an open transaction, raising this exception
    rolls back to the savepoint taken around the work. The lock is still
    released and the exception propagates to the caller unchanged, so the
    outer transaction can decide whether to continue or roll back.

    Example:
        >>> def work():
        ...     session.add(row)
        ...     if not row.is_valid():
        ...         raise TransactionRollback("invalid row")
        >>> locker.with_lock("import:42", work)
    """

    pass


__all__ = [
    "AdvisoryLockError",
    "InvalidLockKeyError",
    "LockKeyOutOfRangeError",
    "TransactionRollback",
]
