"""
Prometheus metrics for the anti-sniping hook.

Tracks the position lifecycle, rejected operations, settlement batches and
the first-epoch fees that were taken away from new positions.
"""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge


class HookMetrics:
    """Metrics for ledger operations, labelled by pool."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or REGISTRY

        self.positions_opened = Counter(
            'antisnipe_positions_opened_total',
            'Positions registered by the hook',
            ['pool'],
            registry=self.registry
        )

        self.positions_closed = Counter(
            'antisnipe_positions_closed_total',
            'Positions fully withdrawn and destroyed',
            ['pool'],
            registry=self.registry
        )

        self.rejections = Counter(
            'antisnipe_rejections_total',
            'Pool operations rejected by a lifecycle rule',
            ['pool', 'reason'],
            registry=self.registry
        )

        self.settlements = Counter(
            'antisnipe_settlements_total',
            'Epoch settlement batches executed',
            ['pool'],
            registry=self.registry
        )

        self.settled_positions = Counter(
            'antisnipe_settled_positions_total',
            'Positions whose first-epoch fees were measured',
            ['pool'],
            registry=self.registry
        )

        self.first_epoch_fees = Counter(
            'antisnipe_first_epoch_fees_total',
            'First-epoch fees consumed at withdrawal, in token base units',
            ['pool', 'token', 'destination'],
            registry=self.registry
        )

        self.pending_positions = Gauge(
            'antisnipe_pending_positions',
            'Positions waiting for settlement of the open epoch',
            ['pool'],
            registry=self.registry
        )

    def record_opened(self, pool_id: str) -> None:
        self.positions_opened.labels(pool=pool_id).inc()

    def record_rejection(self, pool_id: str, reason: str) -> None:
        self.rejections.labels(pool=pool_id, reason=reason).inc()

    def record_settlement(self, pool_id: str, settled: int) -> None:
        self.settlements.labels(pool=pool_id).inc()
        if settled:
            self.settled_positions.labels(pool=pool_id).inc(settled)

    def record_closed(self, pool_id: str, amount0: int, amount1: int, donated: bool) -> None:
        destination = "donated" if donated else "returned"
        self.positions_closed.labels(pool=pool_id).inc()
        if amount0:
            self.first_epoch_fees.labels(
                pool=pool_id, token="token0", destination=destination
            ).inc(amount0)
        if amount1:
            self.first_epoch_fees.labels(
                pool=pool_id, token="token1", destination=destination
            ).inc(amount1)

    def set_pending(self, pool_id: str, pending: int) -> None:
        self.pending_positions.labels(pool=pool_id).set(pending)
