"""
Anti-sniping hook.

Wires the position registry, the settlement queue, the first-epoch fee
ledger and the lifecycle guard behind the callbacks a pool host invokes on
every operation. Each callback first settles the previous epoch, then applies
its own rule. Callbacks are atomic: if one raises, the pool's ledger state is
exactly what it was before the call.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from ..amm.interfaces import FeeGrowthOracle
from ..core.config import HookConfig
from ..core.exceptions import LedgerError
from ..core.metrics import HookMetrics
from .first_epoch_fees import FirstEpochFeeLedger, FirstEpochFees
from .lifecycle_guard import LifecycleGuard, PositionState
from .position_registry import PositionRecord, PositionRegistry
from .settlement_queue import EpochSettlementQueue, QueueSnapshot, SettlementResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookCheckpoint:
    records: dict[str, PositionRecord]
    fees: dict[str, FirstEpochFees]
    queue: QueueSnapshot


class AntiSnipingHook:
    """
    Liquidity hook isolating the fees a position earns in its creation epoch.

    One instance serves any number of pools; all state is keyed by pool id.

    Args:
        oracle: Fee accounting of the pool engine
        config: Lock duration and same-epoch capacity (defaults if omitted)
        metrics: Optional Prometheus metrics sink
    """

    def __init__(
        self,
        oracle: FeeGrowthOracle,
        config: HookConfig | None = None,
        metrics: HookMetrics | None = None,
    ):
        self.oracle = oracle
        self.config = config or HookConfig()
        self.metrics = metrics
        self._depth: dict[str, int] = {}
        self._deferred_metrics: dict[str, list[tuple[str, tuple]]] = {}

        self.fee_ledger = FirstEpochFeeLedger()
        self.registry = PositionRegistry(self.fee_ledger)
        self.queue = EpochSettlementQueue(
            oracle, self.registry, self.fee_ledger, self.config.same_epoch_position_capacity
        )
        self.guard = LifecycleGuard(
            self.registry, self.queue, self.fee_ledger, self.config.lock_duration_epochs
        )

        logger.info(
            "Anti-sniping hook initialized",
            extra={
                "event": "hook.initialized",
                "lock_duration_epochs": self.config.lock_duration_epochs,
                "same_epoch_capacity": self.config.same_epoch_position_capacity,
            },
        )

    # ==================== Transactions ====================

    def checkpoint(self, pool_id: str) -> HookCheckpoint:
        return HookCheckpoint(
            records=self.registry.snapshot(pool_id),
            fees=self.fee_ledger.snapshot(pool_id),
            queue=self.queue.snapshot(pool_id),
        )

    def rollback(self, pool_id: str, checkpoint: HookCheckpoint) -> None:
        self.registry.restore(pool_id, checkpoint.records)
        self.fee_ledger.restore(pool_id, checkpoint.fees)
        self.queue.restore(pool_id, checkpoint.queue)

    @contextmanager
    def transaction(self, pool_id: str) -> Iterator[HookCheckpoint]:
        """
        Nestable atomic scope over one pool's ledger state.

        On an exception the state is rolled back and the metrics recorded
        inside the scope are dropped. Metrics are emitted only when the
        outermost scope commits, so a host that wraps several callbacks and
        its own engine call in one transaction never publishes an operation
        it rolled back.
        """
        checkpoint = self.checkpoint(pool_id)
        deferred = self._deferred_metrics.setdefault(pool_id, [])
        mark = len(deferred)
        depth = self._depth.get(pool_id, 0)
        self._depth[pool_id] = depth + 1
        try:
            yield checkpoint
        except Exception:
            self.rollback(pool_id, checkpoint)
            del deferred[mark:]
            raise
        finally:
            self._depth[pool_id] = depth
        if depth == 0:
            self._emit_metrics(pool_id)

    @contextmanager
    def _atomic(self, pool_id: str) -> Iterator[None]:
        try:
            with self.transaction(pool_id):
                yield
        except LedgerError as exc:
            logger.warning(
                "Operation rejected: %s",
                exc.message,
                extra={"event": "hook.rejected", "pool": pool_id[:10], "reason": exc.code},
            )
            if self.metrics:
                self.metrics.record_rejection(pool_id, exc.code)
            raise

    def _defer_metric(self, pool_id: str, name: str, *args) -> None:
        if self.metrics:
            self._deferred_metrics.setdefault(pool_id, []).append((name, args))

    def _emit_metrics(self, pool_id: str) -> None:
        events = self._deferred_metrics.pop(pool_id, [])
        if not self.metrics:
            return
        for name, args in events:
            getattr(self.metrics, name)(pool_id, *args)
        self.metrics.set_pending(pool_id, len(self.queue.pending(pool_id)))

    def _observe(self, pool_id: str, current_epoch: int) -> list[SettlementResult]:
        if current_epoch <= self.queue.last_settled_epoch(pool_id):
            return []
        results = self.queue.observe(pool_id, current_epoch)
        self._defer_metric(pool_id, "record_settlement", len(results))
        return results

    # ==================== Callbacks ====================

    def before_add_liquidity(
        self,
        pool_id: str,
        position_key: str,
        tick_lower: int,
        tick_upper: int,
        current_epoch: int,
    ) -> PositionRecord:
        """
        Register a new position.

        Raises:
            PositionAlreadyExistsError: If the key is live
            TooManyPositionsInEpochError: If the epoch capacity is used up
        """
        with self._atomic(pool_id):
            self._observe(pool_id, current_epoch)
            record = self.guard.open_position(
                pool_id, position_key, tick_lower, tick_upper, current_epoch
            )
            self._defer_metric(pool_id, "record_opened")
        return record

    def before_remove_liquidity(
        self,
        pool_id: str,
        position_key: str,
        liquidity_delta: int,
        current_epoch: int,
    ) -> None:
        """
        Validate a removal against the lock and the full withdrawal rule.

        Raises:
            PositionLockedError: If the lock duration has not elapsed
            PositionPartiallyWithdrawnError: If not the whole liquidity is removed
        """
        with self._atomic(pool_id):
            self._observe(pool_id, current_epoch)
            info = self.oracle.position_info(pool_id, position_key)
            self.guard.check_removal(
                pool_id, position_key, liquidity_delta, info.liquidity, current_epoch
            )

    def after_remove_liquidity(self, pool_id: str, position_key: str) -> tuple[int, int]:
        """
        Close the position and redirect its first-epoch fees.

        Must run after the engine burned the liquidity, so that the pool
        liquidity read here excludes the withdrawn position.

        Returns:
            Amounts (token0, token1) to take from the withdrawer. Non-zero
            only when the fees were donated to the remaining liquidity.
        """
        with self._atomic(pool_id):
            liquidity_after = self.oracle.pool_liquidity(pool_id)
            redistribution = self.guard.close_position(pool_id, position_key, liquidity_after)
            taken = (0, 0)
            if redistribution.donated and (redistribution.amount0 or redistribution.amount1):
                self.oracle.donate(pool_id, redistribution.amount0, redistribution.amount1)
                taken = (redistribution.amount0, redistribution.amount1)
            self._defer_metric(
                pool_id,
                "record_closed",
                redistribution.amount0,
                redistribution.amount1,
                redistribution.donated,
            )
        return taken

    def before_swap(self, pool_id: str, current_epoch: int) -> None:
        with self._atomic(pool_id):
            self._observe(pool_id, current_epoch)

    def before_donate(self, pool_id: str, current_epoch: int) -> None:
        with self._atomic(pool_id):
            self._observe(pool_id, current_epoch)

    # ==================== Views ====================

    @property
    def lock_duration_epochs(self) -> int:
        return self.config.lock_duration_epochs

    @property
    def same_epoch_position_capacity(self) -> int:
        return self.config.same_epoch_position_capacity

    def creation_epoch(self, pool_id: str, position_key: str) -> int | None:
        return self.registry.creation_epoch(pool_id, position_key)

    def first_epoch_fees(self, pool_id: str, position_key: str) -> FirstEpochFees:
        return self.fee_ledger.get(pool_id, position_key)

    def last_settled_epoch(self, pool_id: str) -> int:
        return self.queue.last_settled_epoch(pool_id)

    def pending_positions(self, pool_id: str) -> list[str]:
        return self.queue.pending(pool_id)

    def position_state(self, pool_id: str, position_key: str, current_epoch: int) -> PositionState:
        return self.guard.state(pool_id, position_key, current_epoch)
