"""
Protocol interfaces between the ledger and the pool engine.

The ledger never depends on a concrete engine. It reads fee growth through
``FeeGrowthOracle`` and is driven through ``LiquidityHooks``, which the host
invokes synchronously, one method per lifecycle hook:

    host.add_liquidity()    -> hooks.before_add_liquidity()
    host.remove_liquidity() -> hooks.before_remove_liquidity(), engine burn,
                               hooks.after_remove_liquidity()
    host.swap()             -> hooks.before_swap()
    host.donate()           -> hooks.before_donate()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class PositionInfo:
    """Engine view of a position."""

    liquidity: int = 0
    # Fee growth inside the range as of the last liquidity update (Q128.128)
    fee_growth_inside0_last_x128: int = 0
    fee_growth_inside1_last_x128: int = 0


@runtime_checkable
class FeeGrowthOracle(Protocol):
    """
    Read access to the engine's fee accounting, plus donation.

    Fee growth values are uint256 accumulators that may wrap; consumers must
    take deltas modulo 2**256.
    """

    def position_info(self, pool_id: str, position_key: str) -> PositionInfo:
        """Liquidity and fee growth inside at last update. Zeros if unknown."""
        ...

    def fee_growth_inside_range(
        self, pool_id: str, tick_lower: int, tick_upper: int
    ) -> tuple[int, int]:
        """Current cumulative fee growth inside [tick_lower, tick_upper)."""
        ...

    def pool_liquidity(self, pool_id: str) -> int:
        """Currently active (in-range) liquidity."""
        ...

    def donate(self, pool_id: str, amount0: int, amount1: int) -> None:
        """Distribute amounts as fees to the currently active liquidity."""
        ...


@runtime_checkable
class LiquidityHooks(Protocol):
    """Callbacks invoked by the host on every pool operation."""

    def before_add_liquidity(
        self,
        pool_id: str,
        position_key: str,
        tick_lower: int,
        tick_upper: int,
        current_epoch: int,
    ) -> Any:
        ...

    def before_remove_liquidity(
        self,
        pool_id: str,
        position_key: str,
        liquidity_delta: int,
        current_epoch: int,
    ) -> None:
        ...

    def after_remove_liquidity(self, pool_id: str, position_key: str) -> tuple[int, int]:
        """Return the amounts to take from the withdrawer."""
        ...

    def before_swap(self, pool_id: str, current_epoch: int) -> None:
        ...

    def before_donate(self, pool_id: str, current_epoch: int) -> None:
        ...


@runtime_checkable
class SupportsCheckpoint(Protocol):
    """State that a host can snapshot and roll back around one operation."""

    def checkpoint(self, pool_id: str) -> Any:
        ...

    def rollback(self, pool_id: str, checkpoint: Any) -> None:
        ...
