"""
Lock modes and the SQL issued for each of them.

PostgreSQL offers four acquire functions (blocking or try, exclusive or
shared) and two release functions (exclusive or shared). A LockMode picks
one of each; the release side depends only on ``shared``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import BigInteger, bindparam, text
from sqlalchemy.sql.elements import TextClause

from advisory_locking.config import DEFAULT_CONFIG, AdvisoryLockConfig
from advisory_locking.keys import LockKey

LOCK_ID_PARAM = "lock_id"

_ACQUIRE_FUNCTIONS = {
    # (non_blocking, shared)
    (False, False): "pg_advisory_lock",
    (False, True): "pg_advisory_lock_shared",
    (True, False): "pg_try_advisory_lock",
    (True, True): "pg_try_advisory_lock_shared",
}

_RELEASE_FUNCTIONS = {
    False: "pg_advisory_unlock",
    True: "pg_advisory_unlock_shared",
}


@dataclass(frozen=True)
class LockMode:
    """
    How a lock is requested.

    Attributes:
        non_blocking: Try once and report failure instead of waiting
        shared: Take a shared lock instead of an exclusive one
    """

    non_blocking: bool = False
    shared: bool = False

    @property
    def acquire_function(self) -> str:
        return _ACQUIRE_FUNCTIONS[(self.non_blocking, self.shared)]

    @property
    def release_function(self) -> str:
        return _RELEASE_FUNCTIONS[self.shared]

    @property
    def label(self) -> str:
        """Short human-readable mode name for logs."""
        strategy = "try" if self.non_blocking else "blocking"
        kind = "shared" if self.shared else "exclusive"
        return f"{strategy}/{kind}"


def render_annotation(key: LockKey, max_length: int) -> str:
    """
    Render a key for use inside a trailing ``--`` SQL comment.

    Line breaks are never emitted (the text is a Python repr or a decimal
    integer), and colons are escaped so text() does not treat them as bind
    parameters.
    """
    annotation = key.annotation
    if len(annotation) > max_length:
        annotation = annotation[:max_length] + "..."
    return annotation.replace("\r", " ").replace("\n", " ").replace(":", "\\:")


def _statement(function: str, key: LockKey, config: AdvisoryLockConfig) -> TextClause:
    sql = f"SELECT {function}(:{LOCK_ID_PARAM})"
    if config.annotate_statements:
        # Add key to the end so that logs read easier.
        sql = f"{sql} -- {render_annotation(key, config.max_annotation_length)}"
    return text(sql).bindparams(bindparam(LOCK_ID_PARAM, type_=BigInteger))


def acquire_statement(
    mode: LockMode,
    key: LockKey,
    config: AdvisoryLockConfig = DEFAULT_CONFIG,
) -> TextClause:
    """Build the acquire statement for ``mode``, annotated with ``key``."""
    return _statement(mode.acquire_function, key, config)


def release_statement(
    mode: LockMode,
    key: LockKey,
    config: AdvisoryLockConfig = DEFAULT_CONFIG,
) -> TextClause:
    """Build the release statement matching ``mode``'s shared flag."""
    return _statement(mode.release_function, key, config)


__all__ = [
    "LOCK_ID_PARAM",
    "LockMode",
    "acquire_statement",
    "release_statement",
    "render_annotation",
]
