"""
Position lifecycle and first-epoch fee-isolation ledger.
"""

from .first_epoch_fees import FirstEpochFeeLedger, FirstEpochFees
from .hook import AntiSnipingHook, HookCheckpoint
from .lifecycle_guard import LifecycleGuard, PositionState, Redistribution
from .position_registry import PositionRecord, PositionRegistry
from .settlement_queue import EpochSettlementQueue, SettlementResult

__all__ = [
    "AntiSnipingHook",
    "HookCheckpoint",
    "EpochSettlementQueue",
    "FirstEpochFeeLedger",
    "FirstEpochFees",
    "LifecycleGuard",
    "PositionRecord",
    "PositionRegistry",
    "PositionState",
    "Redistribution",
    "SettlementResult",
]
