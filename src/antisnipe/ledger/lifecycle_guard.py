"""
Position lifecycle guard.

Enforces the lifecycle of a position:

    NONEXISTENT --open--> LOCKED --lock elapsed--> UNLOCKABLE --close--> NONEXISTENT

Opening is refused for live keys and once the same-epoch capacity is used
up. Removal is refused while locked and for anything but the full position
liquidity. Closing hands back the isolated first-epoch fees so the caller
can redirect them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..core.exceptions import (
    PositionAlreadyExistsError,
    PositionLockedError,
    PositionPartiallyWithdrawnError,
    TooManyPositionsInEpochError,
)
from .first_epoch_fees import FirstEpochFeeLedger
from .position_registry import PositionRecord, PositionRegistry
from .settlement_queue import EpochSettlementQueue

logger = logging.getLogger(__name__)


class PositionState(Enum):
    NONEXISTENT = "nonexistent"
    LOCKED = "locked"
    UNLOCKABLE = "unlockable"


@dataclass(frozen=True)
class Redistribution:
    """First-epoch fees released by a closed position."""

    amount0: int
    amount1: int
    # True when the fees go to the remaining active liquidity
    donated: bool


class LifecycleGuard:
    def __init__(
        self,
        registry: PositionRegistry,
        queue: EpochSettlementQueue,
        fee_ledger: FirstEpochFeeLedger,
        lock_duration_epochs: int,
    ):
        if lock_duration_epochs < 0:
            raise ValueError("Lock duration must be non-negative")
        self.registry = registry
        self.queue = queue
        self.fee_ledger = fee_ledger
        self.lock_duration_epochs = lock_duration_epochs

    def state(self, pool_id: str, position_key: str, current_epoch: int) -> PositionState:
        creation_epoch = self.registry.creation_epoch(pool_id, position_key)
        if creation_epoch is None:
            return PositionState.NONEXISTENT
        if self._is_locked(creation_epoch, current_epoch):
            return PositionState.LOCKED
        return PositionState.UNLOCKABLE

    def _is_locked(self, creation_epoch: int, current_epoch: int) -> bool:
        return current_epoch - creation_epoch < self.lock_duration_epochs

    def open_position(
        self,
        pool_id: str,
        position_key: str,
        tick_lower: int,
        tick_upper: int,
        current_epoch: int,
    ) -> PositionRecord:
        """
        Register a position and queue it for settlement.

        The caller must have observed ``current_epoch`` first so that the
        queue only holds positions of the open epoch.

        Raises:
            PositionAlreadyExistsError: If the key is live
            TooManyPositionsInEpochError: If the epoch capacity is used up
        """
        existing = self.registry.get(pool_id, position_key)
        if existing is not None:
            raise PositionAlreadyExistsError(pool_id, position_key, existing.creation_epoch)
        if self.queue.is_full(pool_id):
            raise TooManyPositionsInEpochError(pool_id, self.queue.capacity, current_epoch)

        record = self.registry.create(pool_id, position_key, tick_lower, tick_upper, current_epoch)
        self.queue.enqueue(pool_id, position_key, current_epoch)
        return record

    def check_removal(
        self,
        pool_id: str,
        position_key: str,
        liquidity_delta: int,
        current_liquidity: int,
        current_epoch: int,
    ) -> None:
        """
        Validate a liquidity removal.

        A key without a record is treated as unlocked; only the full
        withdrawal rule applies to it.

        Raises:
            PositionLockedError: If the lock duration has not elapsed
            PositionPartiallyWithdrawnError: If the removal is not the full liquidity
        """
        creation_epoch = self.registry.creation_epoch(pool_id, position_key)
        if creation_epoch is not None and self._is_locked(creation_epoch, current_epoch):
            raise PositionLockedError(
                pool_id, position_key, creation_epoch, current_epoch, self.lock_duration_epochs
            )
        if abs(liquidity_delta) != current_liquidity:
            raise PositionPartiallyWithdrawnError(
                pool_id, position_key, abs(liquidity_delta), current_liquidity
            )

    def close_position(
        self, pool_id: str, position_key: str, pool_liquidity_after: int
    ) -> Redistribution:
        """
        Destroy a fully withdrawn position and release its first-epoch fees.

        Args:
            pool_id: Pool identifier
            position_key: Key of the withdrawn position
            pool_liquidity_after: Active pool liquidity after the withdrawal

        Returns:
            The released fees and whether they are donated to the pool
        """
        fees = self.fee_ledger.consume_and_clear(pool_id, position_key)
        self.registry.destroy(pool_id, position_key)
        self.queue.discard(pool_id, position_key)

        redistribution = Redistribution(fees.amount0, fees.amount1, pool_liquidity_after > 0)
        if not fees.is_zero():
            logger.info(
                "First-epoch fees redirected",
                extra={
                    "event": "ledger.fees_redirected",
                    "pool": pool_id[:10],
                    "position": position_key[:10],
                    "amount0": fees.amount0,
                    "amount1": fees.amount1,
                    "donated": redistribution.donated,
                },
            )
        return redistribution
