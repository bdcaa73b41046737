"""
Epoch settlement queue.

Positions opened during the currently open epoch wait in a bounded per-pool
queue. The first pool operation of a later epoch settles the whole batch:
for every queued position it measures the fees accrued inside the
position's range since creation, which at that point are exactly the fees of
the creation epoch, and stores them in the first-epoch fee ledger.

Settlement is lazy and batched. The queue capacity bounds its cost, so no
single operation pays for more than ``capacity`` positions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..amm.interfaces import FeeGrowthOracle
from ..core.constants import Q128
from ..core.exceptions import TooManyPositionsInEpochError
from ..core.fixed_point import mul_div, sub_mod
from .first_epoch_fees import FirstEpochFeeLedger
from .position_registry import PositionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    position_key: str
    liquidity: int
    amount0: int
    amount1: int


@dataclass(frozen=True)
class QueueSnapshot:
    keys: tuple[str, ...]
    last_settled_epoch: int


class EpochSettlementQueue:
    def __init__(
        self,
        oracle: FeeGrowthOracle,
        registry: PositionRegistry,
        fee_ledger: FirstEpochFeeLedger,
        capacity: int,
    ):
        if capacity < 1:
            raise ValueError("Queue capacity must be at least 1")
        self.oracle = oracle
        self.registry = registry
        self.fee_ledger = fee_ledger
        self.capacity = capacity
        self._queues: dict[str, list[str]] = {}
        self._cursors: dict[str, int] = {}

    def last_settled_epoch(self, pool_id: str) -> int:
        """Epoch of the last settlement, 0 if the pool was never settled."""
        return self._cursors.get(pool_id, 0)

    def pending(self, pool_id: str) -> list[str]:
        return list(self._queues.get(pool_id, ()))

    def is_full(self, pool_id: str) -> bool:
        return len(self._queues.get(pool_id, ())) >= self.capacity

    def enqueue(self, pool_id: str, position_key: str, current_epoch: int) -> int:
        """
        Queue a position created in the open epoch.

        Returns:
            Queue length after the append

        Raises:
            TooManyPositionsInEpochError: If the queue is already full
        """
        queue = self._queues.setdefault(pool_id, [])
        if len(queue) >= self.capacity:
            raise TooManyPositionsInEpochError(pool_id, self.capacity, current_epoch)
        queue.append(position_key)
        return len(queue)

    def discard(self, pool_id: str, position_key: str) -> bool:
        """Drop a key from the queue. Returns True if it was queued."""
        queue = self._queues.get(pool_id)
        if queue and position_key in queue:
            queue.remove(position_key)
            return True
        return False

    def observe(self, pool_id: str, current_epoch: int) -> list[SettlementResult]:
        """
        Settle the pending batch if the epoch moved past the cursor.

        Idempotent within an epoch: a second call with the same (or an older)
        epoch does nothing.

        Args:
            pool_id: Pool identifier
            current_epoch: Epoch of the operation triggering the observation

        Returns:
            One result per settled position, in queue order
        """
        if current_epoch <= self.last_settled_epoch(pool_id):
            return []

        results = []
        for key in self._queues.get(pool_id, ()):
            result = self._settle(pool_id, key)
            if result is not None:
                results.append(result)

        self._queues[pool_id] = []
        self._cursors[pool_id] = current_epoch

        if results:
            logger.info(
                "Epoch settled",
                extra={
                    "event": "ledger.epoch_settled",
                    "pool": pool_id[:10],
                    "epoch": current_epoch,
                    "positions": len(results),
                },
            )
        return results

    def _settle(self, pool_id: str, position_key: str) -> SettlementResult | None:
        record = self.registry.get(pool_id, position_key)
        if record is None:
            return None

        info = self.oracle.position_info(pool_id, position_key)
        inside0, inside1 = self.oracle.fee_growth_inside_range(
            pool_id, record.tick_lower, record.tick_upper
        )

        # Fee growth counters wrap at 2**256
        amount0 = mul_div(sub_mod(inside0, info.fee_growth_inside0_last_x128), info.liquidity, Q128)
        amount1 = mul_div(sub_mod(inside1, info.fee_growth_inside1_last_x128), info.liquidity, Q128)

        self.fee_ledger.record(pool_id, position_key, amount0, amount1)

        logger.debug(
            "Position settled",
            extra={
                "event": "ledger.position_settled",
                "pool": pool_id[:10],
                "position": position_key[:10],
                "liquidity": info.liquidity,
                "amount0": amount0,
                "amount1": amount1,
            },
        )
        return SettlementResult(position_key, info.liquidity, amount0, amount1)

    def snapshot(self, pool_id: str) -> QueueSnapshot:
        return QueueSnapshot(tuple(self._queues.get(pool_id, ())), self.last_settled_epoch(pool_id))

    def restore(self, pool_id: str, snapshot: QueueSnapshot) -> None:
        self._queues[pool_id] = list(snapshot.keys)
        self._cursors[pool_id] = snapshot.last_settled_epoch
