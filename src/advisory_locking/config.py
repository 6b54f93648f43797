"""
Configuration for advisory lock coordination.

This module provides:
- AdvisoryLockConfig: Behavior switches shared by the sync and async lockers
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AdvisoryLockConfig:
    """
    Configuration for an advisory locker.

    Attributes:
        annotate_statements: Append the raw key as a trailing SQL comment to
            every lock/unlock statement so that query logs show which key a
            numeric lock id belongs to.
        max_annotation_length: Longest annotation rendered before truncation.
        guard_transactions: Run locked work inside a savepoint when the
            session already has an open transaction. Disable only when the
            work manages its own savepoints.

    Example:
        >>> config = AdvisoryLockConfig(max_annotation_length=32)
        >>> locker = AdvisoryLocker(session, config=config)
    """

    annotate_statements: bool = True
    max_annotation_length: int = 64
    guard_transactions: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_annotation_length < 1:
            raise ValueError(
                f"max_annotation_length must be positive, got {self.max_annotation_length}. "
                "Use annotate_statements=False to omit annotations entirely."
            )


DEFAULT_CONFIG = AdvisoryLockConfig()

__all__ = ["AdvisoryLockConfig", "DEFAULT_CONFIG"]
