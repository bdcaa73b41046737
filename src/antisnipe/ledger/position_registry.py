"""
Position registry.

Records, per pool, the epoch in which each live position was created along
with its tick range. A record exists from the first liquidity add until the
full withdrawal of the position; it never changes in between.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.constants import FIRST_EPOCH
from ..core.exceptions import PositionAlreadyExistsError
from .first_epoch_fees import FirstEpochFeeLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionRecord:
    creation_epoch: int
    tick_lower: int
    tick_upper: int


class PositionRegistry:
    """Per-pool store of live position records."""

    def __init__(self, fee_ledger: FirstEpochFeeLedger):
        self.fee_ledger = fee_ledger
        self._records: dict[str, dict[str, PositionRecord]] = {}

    def create(
        self,
        pool_id: str,
        position_key: str,
        tick_lower: int,
        tick_upper: int,
        current_epoch: int,
    ) -> PositionRecord:
        """
        Register a new position.

        Args:
            pool_id: Pool identifier
            position_key: Key of the position (see ``core.position_key``)
            tick_lower: Lower tick of the range
            tick_upper: Upper tick of the range
            current_epoch: Epoch of creation, >= 1

        Returns:
            The stored record

        Raises:
            PositionAlreadyExistsError: If the key is already live in the pool
            ValueError: If the range is empty or the epoch is invalid
        """
        if tick_lower >= tick_upper:
            raise ValueError(f"Invalid tick range [{tick_lower}, {tick_upper})")
        if current_epoch < FIRST_EPOCH:
            raise ValueError(f"Epoch must be >= {FIRST_EPOCH}, got {current_epoch}")

        records = self._records.setdefault(pool_id, {})
        existing = records.get(position_key)
        if existing is not None:
            raise PositionAlreadyExistsError(pool_id, position_key, existing.creation_epoch)

        record = PositionRecord(current_epoch, tick_lower, tick_upper)
        records[position_key] = record

        logger.info(
            "Position registered",
            extra={
                "event": "ledger.position_created",
                "pool": pool_id[:10],
                "position": position_key[:10],
                "epoch": current_epoch,
                "tick_lower": tick_lower,
                "tick_upper": tick_upper,
            },
        )
        return record

    def destroy(self, pool_id: str, position_key: str) -> PositionRecord | None:
        """Remove a record and its first-epoch fees. Unknown keys are ignored."""
        record = self._records.get(pool_id, {}).pop(position_key, None)
        self.fee_ledger.clear(pool_id, position_key)
        if record is not None:
            logger.info(
                "Position destroyed",
                extra={
                    "event": "ledger.position_destroyed",
                    "pool": pool_id[:10],
                    "position": position_key[:10],
                    "creation_epoch": record.creation_epoch,
                },
            )
        return record

    def get(self, pool_id: str, position_key: str) -> PositionRecord | None:
        return self._records.get(pool_id, {}).get(position_key)

    def exists(self, pool_id: str, position_key: str) -> bool:
        return position_key in self._records.get(pool_id, {})

    def creation_epoch(self, pool_id: str, position_key: str) -> int | None:
        record = self.get(pool_id, position_key)
        return record.creation_epoch if record is not None else None

    def count(self, pool_id: str) -> int:
        return len(self._records.get(pool_id, {}))

    def snapshot(self, pool_id: str) -> dict[str, PositionRecord]:
        return dict(self._records.get(pool_id, {}))

    def restore(self, pool_id: str, snapshot: dict[str, PositionRecord]) -> None:
        self._records[pool_id] = dict(snapshot)
