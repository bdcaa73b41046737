"""
Hooked pool dispatcher.

The host side of the hook contract: every pool operation is routed through
the dispatcher, which invokes the hook callbacks around the engine call and
makes the whole operation atomic. If the hook or the engine raises, both are
rolled back to their state before the operation.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

from ..core.constants import FIRST_EPOCH
from ..core.exceptions import PoolError
from ..core.position_key import position_key as derive_position_key
from .pool_manager import PoolManager, SwapResult

if TYPE_CHECKING:
    from ..ledger.hook import AntiSnipingHook

logger = logging.getLogger(__name__)


class EpochClock:
    """Monotonic epoch counter standing in for the block number."""

    def __init__(self, start: int = FIRST_EPOCH):
        if start < FIRST_EPOCH:
            raise ValueError(f"Epochs start at {FIRST_EPOCH}")
        self._current = start

    @property
    def current(self) -> int:
        return self._current

    def advance(self, epochs: int = 1) -> int:
        if epochs < 1:
            raise ValueError("Epoch clock only moves forward")
        self._current += epochs
        return self._current


@dataclass(frozen=True)
class AddResult:
    position_key: str
    epoch: int
    liquidity: int
    amount0: int
    amount1: int


@dataclass(frozen=True)
class RemoveResult:
    """
    Outcome of a full withdrawal.

    ``fees0``/``fees1`` are what the withdrawer keeps, after taking out the
    redirected first-epoch fees.
    """

    position_key: str
    amount0: int
    amount1: int
    fees0: int
    fees1: int
    redirected0: int
    redirected1: int


class HookedPoolDispatcher:
    def __init__(self, manager: PoolManager, hook: "AntiSnipingHook", clock: EpochClock):
        self.manager = manager
        self.hook = hook
        self.clock = clock

    @contextmanager
    def _atomic(self, pool_id: str) -> Iterator[None]:
        manager_checkpoint = self.manager.checkpoint(pool_id)
        try:
            with self.hook.transaction(pool_id):
                yield
        except Exception:
            self.manager.rollback(pool_id, manager_checkpoint)
            logger.debug(
                "Operation rolled back",
                extra={"event": "dispatcher.rollback", "pool": pool_id[:10]},
            )
            raise

    def add_liquidity(
        self,
        pool_id: str,
        owner: str,
        tick_lower: int,
        tick_upper: int,
        liquidity: int,
        salt: bytes | int | None = None,
    ) -> AddResult:
        """
        Open a new position.

        Raises:
            ValueError: If liquidity is not positive
            PoolError: On invalid ticks or unknown pool
            PositionAlreadyExistsError: If the key is live
            TooManyPositionsInEpochError: If the epoch capacity is used up
        """
        if liquidity <= 0:
            raise ValueError("Liquidity to add must be positive")
        self.manager.validate_ticks(pool_id, tick_lower, tick_upper)

        key = derive_position_key(owner, tick_lower, tick_upper, salt)
        epoch = self.clock.current
        with self._atomic(pool_id):
            self.hook.before_add_liquidity(pool_id, key, tick_lower, tick_upper, epoch)
            result = self.manager.modify_liquidity(
                pool_id, owner, tick_lower, tick_upper, liquidity, salt
            )
        return AddResult(key, epoch, result.liquidity, result.amount0, result.amount1)

    def remove_liquidity(
        self,
        pool_id: str,
        owner: str,
        tick_lower: int,
        tick_upper: int,
        liquidity_delta: int,
        salt: bytes | int | None = None,
    ) -> RemoveResult:
        """
        Withdraw a position. ``liquidity_delta`` is negative and must equal
        the full position liquidity.

        Raises:
            ValueError: If liquidity_delta is not negative
            PoolError: If the position does not exist
            PositionLockedError: If the lock duration has not elapsed
            PositionPartiallyWithdrawnError: If not the whole liquidity is removed
        """
        if liquidity_delta >= 0:
            raise ValueError("Liquidity delta for a removal must be negative")
        self.manager.validate_ticks(pool_id, tick_lower, tick_upper)

        key = derive_position_key(owner, tick_lower, tick_upper, salt)
        if self.manager.get_position(pool_id, key) is None:
            raise PoolError(f"Position {key} not found", details={"position_key": key})

        epoch = self.clock.current
        with self._atomic(pool_id):
            self.hook.before_remove_liquidity(pool_id, key, liquidity_delta, epoch)
            result = self.manager.modify_liquidity(
                pool_id, owner, tick_lower, tick_upper, liquidity_delta, salt
            )
            redirected0, redirected1 = self.hook.after_remove_liquidity(pool_id, key)

        return RemoveResult(
            position_key=key,
            amount0=result.amount0,
            amount1=result.amount1,
            fees0=result.fees0 - redirected0,
            fees1=result.fees1 - redirected1,
            redirected0=redirected0,
            redirected1=redirected1,
        )

    def swap(
        self,
        pool_id: str,
        zero_for_one: bool,
        amount_in: int,
        sqrt_price_limit_x96: int | None = None,
    ) -> SwapResult:
        with self._atomic(pool_id):
            self.hook.before_swap(pool_id, self.clock.current)
            return self.manager.swap(pool_id, zero_for_one, amount_in, sqrt_price_limit_x96)

    def donate(self, pool_id: str, amount0: int, amount1: int) -> None:
        with self._atomic(pool_id):
            self.hook.before_donate(pool_id, self.clock.current)
            self.manager.donate(pool_id, amount0, amount1)
