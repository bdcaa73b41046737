"""
First-epoch fee ledger.

Holds, per pool and position, the fees attributable to the position during
its creation epoch only. Written once by settlement, consumed once at
withdrawal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FirstEpochFees:
    amount0: int = 0
    amount1: int = 0

    def is_zero(self) -> bool:
        return self.amount0 == 0 and self.amount1 == 0


ZERO_FEES = FirstEpochFees()


class FirstEpochFeeLedger:
    def __init__(self) -> None:
        self._fees: dict[str, dict[str, FirstEpochFees]] = {}

    def record(self, pool_id: str, position_key: str, amount0: int, amount1: int) -> FirstEpochFees:
        """
        Store the settled first-epoch fees of a position.

        Overwrites any previous value: a key is settled at most once per
        lifecycle.
        """
        if amount0 < 0 or amount1 < 0:
            raise ValueError("First-epoch fee amounts must be non-negative")
        fees = FirstEpochFees(amount0, amount1)
        self._fees.setdefault(pool_id, {})[position_key] = fees
        return fees

    def get(self, pool_id: str, position_key: str) -> FirstEpochFees:
        return self._fees.get(pool_id, {}).get(position_key, ZERO_FEES)

    def consume_and_clear(self, pool_id: str, position_key: str) -> FirstEpochFees:
        """
        Read the fees of a position and reset them to zero.

        Positions that were never settled (closed inside their creation
        epoch) yield zero fees.
        """
        fees = self._fees.get(pool_id, {}).pop(position_key, ZERO_FEES)
        logger.debug(
            "First-epoch fees consumed",
            extra={
                "event": "ledger.fees_consumed",
                "pool": pool_id[:10],
                "position": position_key[:10],
                "amount0": fees.amount0,
                "amount1": fees.amount1,
            },
        )
        return fees

    def clear(self, pool_id: str, position_key: str) -> None:
        self._fees.get(pool_id, {}).pop(position_key, None)

    def snapshot(self, pool_id: str) -> dict[str, FirstEpochFees]:
        return dict(self._fees.get(pool_id, {}))

    def restore(self, pool_id: str, snapshot: dict[str, FirstEpochFees]) -> None:
        self._fees[pool_id] = dict(snapshot)
