"""
Standard span attribute names for advisory_locking.

Using shared constants keeps attribute names consistent between the sync
and async lockers.
"""

# =============================================================================
# Span names
# =============================================================================

SPAN_LOCK_ACQUIRE = "advisory_locking.lock.acquire"
"""Span covering the acquire statement."""

SPAN_LOCK_RELEASE = "advisory_locking.lock.release"
"""Span covering the release statement."""

# =============================================================================
# Lock attributes
# =============================================================================

ATTR_LOCK_KEY = "advisory_locking.lock.key"
"""Raw lock key as given by the caller (string)."""

ATTR_LOCK_ID = "advisory_locking.lock.id"
"""Derived signed 64-bit lock id (integer)."""

ATTR_LOCK_SHARED = "advisory_locking.lock.shared"
"""Whether a shared lock was requested (boolean)."""

ATTR_LOCK_NON_BLOCKING = "advisory_locking.lock.non_blocking"
"""Whether a try-lock was requested (boolean)."""

ATTR_LOCK_ACQUIRED = "advisory_locking.lock.acquired"
"""Whether lock was acquired (boolean)."""

# =============================================================================
# Database attributes (OTEL semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier."""

__all__ = [
    "SPAN_LOCK_ACQUIRE",
    "SPAN_LOCK_RELEASE",
    "ATTR_LOCK_KEY",
    "ATTR_LOCK_ID",
    "ATTR_LOCK_SHARED",
    "ATTR_LOCK_NON_BLOCKING",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_DB_SYSTEM",
]
