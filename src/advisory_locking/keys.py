"""
Lock key derivation.

PostgreSQL advisory locks are keyed by a signed 64-bit integer. This module
turns caller-supplied keys into that integer:

- Integer keys are used as-is after a range check.
- Text keys are hashed with MD5; the high-order 64 bits of the digest are
  reinterpreted as a signed bigint, exactly as PostgreSQL does for
  ``('x' || substr(md5(key), 1, 16))::bit(64)::bigint``.

Because the derivation is a pure function of the key, independent processes
agree on which lock they contend for without sharing any other state.

Example:
    >>> from advisory_locking.keys import derive_key
    >>> derive_key("key")
    4354430579665871434
    >>> derive_key(42)
    42
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any

from advisory_locking.exceptions import InvalidLockKeyError, LockKeyOutOfRangeError

HEX_DIGITS = 16
SIGNED_BIGINT_BOUND = 2**63
UNSIGNED_BIGINT_BOUND = 2**64

SIGNED_BIGINT_MAXIMUM = SIGNED_BIGINT_BOUND - 1
SIGNED_BIGINT_MINIMUM = -SIGNED_BIGINT_BOUND


def check_bigint_range(value: int) -> int:
    """
    Return ``value`` unchanged if it fits in a PostgreSQL bigint.

    Raises:
        LockKeyOutOfRangeError: If value is outside [-2**63, 2**63 - 1]
    """
    if SIGNED_BIGINT_MINIMUM <= value <= SIGNED_BIGINT_MAXIMUM:
        return value
    raise LockKeyOutOfRangeError(value)


@dataclass(frozen=True)
class IntegerKey:
    """A lock key given directly as an integer."""

    value: int

    def derive(self) -> int:
        return check_bigint_range(self.value)

    @property
    def annotation(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TextKey:
    """A lock key given as an arbitrary string."""

    value: str

    def derive(self) -> int:
        """
        Hash the text into the signed bigint domain.

        The first 16 hex characters of the MD5 digest are read as an
        unsigned 64-bit integer, then wrapped into the signed range the
        same way PostgreSQL's ``bit(64)::bigint`` cast does.
        """
        digest = hashlib.md5(self.value.encode("utf-8"), usedforsecurity=False).hexdigest()
        unsigned = int(digest[:HEX_DIGITS], 16)

        # Mimic PG's bigint rollover behavior.
        if unsigned >= SIGNED_BIGINT_BOUND:
            unsigned -= UNSIGNED_BIGINT_BOUND

        # Always in range after rollover; checked anyway.
        return check_bigint_range(unsigned)

    @property
    def annotation(self) -> str:
        return repr(self.value)


LockKey = IntegerKey | TextKey


def lock_key(raw: Any) -> LockKey:
    """
    Convert a raw caller value into a LockKey.

    ``str`` subclasses (such as ``StrEnum`` members) are reduced to their
    plain string value so that they hash the same as the equivalent literal.
    ``bool`` is rejected even though it subclasses ``int``.

    Args:
        raw: An int, a str, or an existing LockKey

    Returns:
        IntegerKey or TextKey

    Raises:
        InvalidLockKeyError: If raw is of any other type
    """
    if isinstance(raw, IntegerKey | TextKey):
        return raw
    if isinstance(raw, bool):
        raise InvalidLockKeyError(raw)
    if isinstance(raw, int):
        return IntegerKey(int(raw))
    if isinstance(raw, str):
        return TextKey(str.__str__(raw))
    raise InvalidLockKeyError(raw)


def derive_key(raw: Any) -> int:
    """
    Derive the PostgreSQL advisory lock id for a key.

    Args:
        raw: An int, a str, or a LockKey

    Returns:
        Signed 64-bit integer lock id

    Raises:
        InvalidLockKeyError: If the key is neither an integer nor a string
        LockKeyOutOfRangeError: If an integer key does not fit in a bigint
    """
    return lock_key(raw).derive()


__all__ = [
    "IntegerKey",
    "LockKey",
    "SIGNED_BIGINT_MAXIMUM",
    "SIGNED_BIGINT_MINIMUM",
    "TextKey",
    "check_bigint_range",
    "derive_key",
    "lock_key",
]
