"""
Exception hierarchy for the anti-sniping ledger.

Provides typed exceptions for ledger and pool operations so callers can tell
a rejected lifecycle rule apart from an engine failure and decide whether a
retry under different conditions makes sense.
"""

from __future__ import annotations

from typing import Any


class AntiSnipeError(Exception):
    """Base exception for all package errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the caller may retry under different conditions
    """

    code: str = "AntiSnipeError"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Ledger Errors ====================


class LedgerError(AntiSnipeError):
    """Raised when a position lifecycle rule rejects an operation.

    A ledger error always aborts the whole pool operation; no partial state
    is kept.
    """
    pass


class PositionAlreadyExistsError(LedgerError):
    """Raised when a live position key is created again.

    The caller must pick a different salt.
    """

    code = "AlreadyExists"

    def __init__(self, pool_id: str, position_key: str, creation_epoch: int) -> None:
        super().__init__(
            f"Position {position_key} already exists in pool {pool_id}",
            details={
                "pool_id": pool_id,
                "position_key": position_key,
                "creation_epoch": creation_epoch,
            },
            recoverable=False,
        )


class TooManyPositionsInEpochError(LedgerError):
    """Raised when the same-epoch position capacity is reached.

    Retry in a later epoch.
    """

    code = "TooManyPositionsInEpoch"

    def __init__(self, pool_id: str, capacity: int, epoch: int) -> None:
        super().__init__(
            f"Pool {pool_id} already opened {capacity} positions in epoch {epoch}",
            details={"pool_id": pool_id, "capacity": capacity, "epoch": epoch},
            recoverable=True,
        )


class PositionLockedError(LedgerError):
    """Raised when a position is removed before its lock duration elapsed."""

    code = "PositionLocked"

    def __init__(
        self,
        pool_id: str,
        position_key: str,
        creation_epoch: int,
        current_epoch: int,
        lock_duration: int,
    ) -> None:
        unlock_epoch = creation_epoch + lock_duration
        super().__init__(
            f"Position {position_key} is locked until epoch {unlock_epoch} "
            f"(current epoch {current_epoch})",
            details={
                "pool_id": pool_id,
                "position_key": position_key,
                "creation_epoch": creation_epoch,
                "current_epoch": current_epoch,
                "unlock_epoch": unlock_epoch,
            },
            recoverable=True,
        )


class PositionPartiallyWithdrawnError(LedgerError):
    """Raised when a removal does not withdraw the full position liquidity."""

    code = "PositionPartiallyWithdrawn"

    def __init__(
        self,
        pool_id: str,
        position_key: str,
        requested: int,
        liquidity: int,
    ) -> None:
        super().__init__(
            f"Position {position_key} must be withdrawn in full: "
            f"requested {requested}, liquidity {liquidity}",
            details={
                "pool_id": pool_id,
                "position_key": position_key,
                "requested": requested,
                "liquidity": liquidity,
            },
            recoverable=False,
        )


# ==================== Pool Errors ====================


class PoolError(AntiSnipeError):
    """Raised when the pool engine rejects an operation.

    Examples: uninitialized pool, invalid tick range, unknown position,
    donation with no active liquidity.
    """

    code = "PoolError"
