"""
Reference pool engine and host for the anti-sniping hook.
"""

from .dispatcher import AddResult, EpochClock, HookedPoolDispatcher, RemoveResult
from .interfaces import FeeGrowthOracle, LiquidityHooks, PositionInfo
from .pool_manager import ModifyLiquidityResult, PoolKey, PoolManager, SwapResult

__all__ = [
    "AddResult",
    "EpochClock",
    "FeeGrowthOracle",
    "HookedPoolDispatcher",
    "LiquidityHooks",
    "ModifyLiquidityResult",
    "PoolKey",
    "PoolManager",
    "PositionInfo",
    "RemoveResult",
    "SwapResult",
]
