"""
In-memory Concentrated Liquidity Pool Manager (Uniswap V3/V4 Style).

Hosts any number of pools in one manager, each identified by the hash of its
pool key. Provides:
- Price range positions keyed by (owner, tick_lower, tick_upper, salt)
- Tick-based price representation with Q64.96 sqrt prices
- Fee growth accounting in Q128.128, wrapping at 2**256
- Exact-input swaps crossing initialized ticks
- Donations paid as fees to the active liquidity

Implements ``FeeGrowthOracle`` so the anti-sniping ledger can measure the
fees a position earned inside its range.
"""

from __future__ import annotations

import bisect
import copy
import hashlib
import logging
from dataclasses import dataclass, field

from ..core.constants import (
    FEE_DENOMINATOR,
    MAX_SQRT_RATIO,
    MAX_TICK,
    MAX_UINT128,
    MIN_SQRT_RATIO,
    MIN_TICK,
    Q96,
    Q128,
)
from ..core.exceptions import PoolError
from ..core.fixed_point import add_mod, div_rounding_up, mul_div, mul_div_rounding_up, sub_mod
from ..core.position_key import position_key as derive_position_key
from .interfaces import PositionInfo
from .tick_math import sqrt_price_to_tick, tick_to_sqrt_price

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolKey:
    """Static parameters identifying a pool."""

    currency0: str
    currency1: str
    fee: int  # In pips (1_000_000 = 100%)
    tick_spacing: int

    @property
    def pool_id(self) -> str:
        raw = f"{self.currency0.lower()}:{self.currency1.lower()}:{self.fee}:{self.tick_spacing}"
        return "0x" + hashlib.sha3_256(raw.encode()).hexdigest()


@dataclass
class TickInfo:
    """Information stored for each initialized tick."""
    liquidity_gross: int = 0  # Total liquidity referencing this tick
    liquidity_net: int = 0    # Net liquidity change when crossing tick left to right
    fee_growth_outside0_x128: int = 0  # Fee growth on the other side of the tick (token 0)
    fee_growth_outside1_x128: int = 0  # Fee growth on the other side of the tick (token 1)


@dataclass
class Position:
    """Liquidity position within a price range."""

    owner: str
    tick_lower: int
    tick_upper: int
    liquidity: int = 0

    # Fee growth inside the range as of the last update
    fee_growth_inside0_last_x128: int = 0
    fee_growth_inside1_last_x128: int = 0

    def is_in_range(self, current_tick: int) -> bool:
        return self.tick_lower <= current_tick < self.tick_upper


@dataclass
class Pool:
    key: PoolKey
    sqrt_price_x96: int
    tick: int
    liquidity: int = 0  # Active liquidity

    fee_growth_global0_x128: int = 0
    fee_growth_global1_x128: int = 0

    ticks: dict[int, TickInfo] = field(default_factory=dict)
    # Sorted initialized ticks, replaces the on-chain bitmap
    initialized_ticks: list[int] = field(default_factory=list)
    positions: dict[str, Position] = field(default_factory=dict)


@dataclass(frozen=True)
class ModifyLiquidityResult:
    """
    Outcome of a liquidity change.

    ``amount0``/``amount1`` are the principal deposited (add) or withdrawn
    (remove). ``fees0``/``fees1`` are the fees collected from the position.
    """

    position_key: str
    liquidity: int
    amount0: int
    amount1: int
    fees0: int
    fees1: int


@dataclass(frozen=True)
class SwapResult:
    """Swap deltas from the pool's side: positive paid in, negative paid out."""

    amount0: int
    amount1: int
    sqrt_price_x96: int
    tick: int
    fee_amount: int


class PoolManager:
    """Singleton-style manager holding the state of every pool."""

    def __init__(self) -> None:
        self.pools: dict[str, Pool] = {}

    # ==================== Pool Lifecycle ====================

    def initialize(self, key: PoolKey, sqrt_price_x96: int) -> str:
        """
        Create a pool at a starting price.

        Returns:
            The pool id

        Raises:
            PoolError: If the pool exists or the parameters are invalid
        """
        if key.currency0.lower() == key.currency1.lower():
            raise PoolError("Pool currencies must differ")
        if not 0 <= key.fee < FEE_DENOMINATOR:
            raise PoolError(f"Fee must be in [0, {FEE_DENOMINATOR})", details={"fee": key.fee})
        if key.tick_spacing < 1:
            raise PoolError("Tick spacing must be positive")

        pool_id = key.pool_id
        if pool_id in self.pools:
            raise PoolError(f"Pool {pool_id} already initialized", details={"pool_id": pool_id})

        tick = sqrt_price_to_tick(sqrt_price_x96)
        self.pools[pool_id] = Pool(key=key, sqrt_price_x96=sqrt_price_x96, tick=tick)

        logger.info(
            "Pool initialized",
            extra={
                "event": "pool.initialize",
                "pool": pool_id[:10],
                "fee": key.fee,
                "tick_spacing": key.tick_spacing,
                "tick": tick,
            },
        )
        return pool_id

    def _get_pool(self, pool_id: str) -> Pool:
        pool = self.pools.get(pool_id)
        if pool is None:
            raise PoolError(f"Pool {pool_id} not initialized", details={"pool_id": pool_id})
        return pool

    def validate_ticks(self, pool_id: str, tick_lower: int, tick_upper: int) -> None:
        """Validate a tick range against the pool's bounds and spacing."""
        pool = self._get_pool(pool_id)
        if tick_lower >= tick_upper:
            raise PoolError("tick_lower must be less than tick_upper")

        if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
            raise PoolError("Ticks out of range")

        spacing = pool.key.tick_spacing
        if tick_lower % spacing != 0 or tick_upper % spacing != 0:
            raise PoolError(f"Ticks must be multiples of {spacing}")

    # ==================== Position Management ====================

    def modify_liquidity(
        self,
        pool_id: str,
        owner: str,
        tick_lower: int,
        tick_upper: int,
        liquidity_delta: int,
        salt: bytes | int | None = None,
    ) -> ModifyLiquidityResult:
        """
        Add (positive delta) or remove (negative delta) liquidity.

        Fees accrued by the position are collected on every change. A
        position whose liquidity drops to zero is deleted.

        Raises:
            PoolError: On invalid ticks, unknown position or insufficient liquidity
        """
        pool = self._get_pool(pool_id)
        self.validate_ticks(pool_id, tick_lower, tick_upper)

        key = derive_position_key(owner, tick_lower, tick_upper, salt)
        position = pool.positions.get(key)
        if position is None:
            if liquidity_delta <= 0:
                raise PoolError(f"Position {key} not found", details={"position_key": key})
            position = Position(owner=owner, tick_lower=tick_lower, tick_upper=tick_upper)
        elif position.liquidity + liquidity_delta < 0:
            raise PoolError(
                "Insufficient position liquidity",
                details={"position_key": key, "liquidity": position.liquidity},
            )

        flipped_lower = self._update_tick(pool, tick_lower, liquidity_delta, is_upper=False)
        flipped_upper = self._update_tick(pool, tick_upper, liquidity_delta, is_upper=True)

        inside0, inside1 = self._get_fee_growth_inside(pool, tick_lower, tick_upper)
        fees0 = mul_div(sub_mod(inside0, position.fee_growth_inside0_last_x128), position.liquidity, Q128)
        fees1 = mul_div(sub_mod(inside1, position.fee_growth_inside1_last_x128), position.liquidity, Q128)

        position.liquidity += liquidity_delta
        position.fee_growth_inside0_last_x128 = inside0
        position.fee_growth_inside1_last_x128 = inside1

        if liquidity_delta < 0:
            if flipped_lower:
                self._clear_tick(pool, tick_lower)
            if flipped_upper:
                self._clear_tick(pool, tick_upper)

        amount0, amount1 = self._calculate_amounts_for_liquidity(
            pool, tick_lower, tick_upper, abs(liquidity_delta), add=liquidity_delta > 0
        )
        if position.is_in_range(pool.tick):
            pool.liquidity += liquidity_delta

        if position.liquidity == 0:
            pool.positions.pop(key, None)
        else:
            pool.positions[key] = position

        logger.info(
            "Position modified",
            extra={
                "event": "pool.modify_liquidity",
                "pool": pool_id[:10],
                "position": key[:10],
                "range": f"[{tick_lower}, {tick_upper}]",
                "liquidity_delta": liquidity_delta,
                "fees0": fees0,
                "fees1": fees1,
            },
        )
        return ModifyLiquidityResult(key, position.liquidity, amount0, amount1, fees0, fees1)

    # ==================== Swaps and Donations ====================

    def swap(
        self,
        pool_id: str,
        zero_for_one: bool,
        amount_in: int,
        sqrt_price_limit_x96: int | None = None,
    ) -> SwapResult:
        """
        Execute an exact-input swap.

        Args:
            pool_id: Pool to swap in
            zero_for_one: True for token0->token1, False for token1->token0
            amount_in: Exact input amount, fee included
            sqrt_price_limit_x96: Price the swap may not cross

        Returns:
            SwapResult with signed amounts (negative = out)
        """
        pool = self._get_pool(pool_id)
        if amount_in <= 0:
            raise ValueError("Swap amount must be positive")

        # Set price limit if not provided
        if sqrt_price_limit_x96 is None:
            sqrt_price_limit_x96 = MIN_SQRT_RATIO + 1 if zero_for_one else MAX_SQRT_RATIO - 1

        if zero_for_one:
            if not MIN_SQRT_RATIO < sqrt_price_limit_x96 < pool.sqrt_price_x96:
                raise PoolError("Price limit out of bounds for zero_for_one swap")
        else:
            if not pool.sqrt_price_x96 < sqrt_price_limit_x96 < MAX_SQRT_RATIO:
                raise PoolError("Price limit out of bounds for one_for_zero swap")

        fee = pool.key.fee
        amount_remaining = amount_in
        amount_calculated = 0
        total_fee = 0

        state_sqrt_price = pool.sqrt_price_x96
        state_tick = pool.tick
        state_liquidity = pool.liquidity
        fee_growth_global = (
            pool.fee_growth_global0_x128 if zero_for_one else pool.fee_growth_global1_x128
        )

        while amount_remaining > 0 and state_sqrt_price != sqrt_price_limit_x96:
            sqrt_price_start = state_sqrt_price
            next_tick, initialized = self._next_initialized_tick(pool, state_tick, zero_for_one)
            sqrt_price_next = tick_to_sqrt_price(next_tick)

            # Cap at price limit
            if zero_for_one:
                sqrt_price_target = max(sqrt_price_next, sqrt_price_limit_x96)
            else:
                sqrt_price_target = min(sqrt_price_next, sqrt_price_limit_x96)

            state_sqrt_price, step_in, step_out, step_fee = self._compute_swap_step(
                state_sqrt_price, sqrt_price_target, state_liquidity, amount_remaining, fee
            )

            amount_remaining -= step_in + step_fee
            amount_calculated += step_out
            total_fee += step_fee

            if state_liquidity > 0:
                fee_growth_global = add_mod(
                    fee_growth_global, mul_div(step_fee, Q128, state_liquidity)
                )

            if state_sqrt_price == sqrt_price_next:
                if initialized:
                    if zero_for_one:
                        liquidity_net = self._cross_tick(
                            pool, next_tick, fee_growth_global, pool.fee_growth_global1_x128
                        )
                        state_liquidity -= liquidity_net
                    else:
                        liquidity_net = self._cross_tick(
                            pool, next_tick, pool.fee_growth_global0_x128, fee_growth_global
                        )
                        state_liquidity += liquidity_net
                state_tick = next_tick - 1 if zero_for_one else next_tick
            elif state_sqrt_price != sqrt_price_start:
                state_tick = sqrt_price_to_tick(state_sqrt_price)

        pool.sqrt_price_x96 = state_sqrt_price
        pool.tick = state_tick
        pool.liquidity = state_liquidity
        if zero_for_one:
            pool.fee_growth_global0_x128 = fee_growth_global
            amount0, amount1 = amount_in - amount_remaining, -amount_calculated
        else:
            pool.fee_growth_global1_x128 = fee_growth_global
            amount0, amount1 = -amount_calculated, amount_in - amount_remaining

        logger.info(
            "Swap executed",
            extra={
                "event": "pool.swap",
                "pool": pool_id[:10],
                "direction": "0->1" if zero_for_one else "1->0",
                "amount0": amount0,
                "amount1": amount1,
                "fee": total_fee,
            },
        )
        return SwapResult(amount0, amount1, state_sqrt_price, state_tick, total_fee)

    def donate(self, pool_id: str, amount0: int, amount1: int) -> None:
        """
        Pay amounts as fees to the liquidity active at the current price.

        Raises:
            PoolError: If the pool has no active liquidity
        """
        pool = self._get_pool(pool_id)
        if amount0 < 0 or amount1 < 0:
            raise ValueError("Donation amounts must be non-negative")
        if pool.liquidity == 0:
            raise PoolError("No active liquidity to donate to", details={"pool_id": pool_id})

        pool.fee_growth_global0_x128 = add_mod(
            pool.fee_growth_global0_x128, mul_div(amount0, Q128, pool.liquidity)
        )
        pool.fee_growth_global1_x128 = add_mod(
            pool.fee_growth_global1_x128, mul_div(amount1, Q128, pool.liquidity)
        )

        logger.info(
            "Donation received",
            extra={
                "event": "pool.donate",
                "pool": pool_id[:10],
                "amount0": amount0,
                "amount1": amount1,
            },
        )

    # ==================== Swap Math ====================

    def _compute_swap_step(
        self,
        sqrt_price_current: int,
        sqrt_price_target: int,
        liquidity: int,
        amount_remaining: int,
        fee: int,
    ) -> tuple[int, int, int, int]:
        """
        Compute a single exact-input swap step.

        Returns:
            (sqrt_price_next, amount_in, amount_out, fee_amount)
        """
        zero_for_one = sqrt_price_current >= sqrt_price_target
        amount_remaining_less_fee = mul_div(amount_remaining, FEE_DENOMINATOR - fee, FEE_DENOMINATOR)

        if zero_for_one:
            amount_in = self._get_amount0_delta(sqrt_price_target, sqrt_price_current, liquidity, True)
        else:
            amount_in = self._get_amount1_delta(sqrt_price_current, sqrt_price_target, liquidity, True)

        if amount_remaining_less_fee >= amount_in:
            sqrt_price_next = sqrt_price_target
        else:
            sqrt_price_next = self._get_next_sqrt_price_from_input(
                sqrt_price_current, liquidity, amount_remaining_less_fee, zero_for_one
            )

        reached_target = sqrt_price_next == sqrt_price_target
        if zero_for_one:
            if not reached_target:
                amount_in = self._get_amount0_delta(sqrt_price_next, sqrt_price_current, liquidity, True)
            amount_out = self._get_amount1_delta(sqrt_price_next, sqrt_price_current, liquidity, False)
        else:
            if not reached_target:
                amount_in = self._get_amount1_delta(sqrt_price_current, sqrt_price_next, liquidity, True)
            amount_out = self._get_amount0_delta(sqrt_price_current, sqrt_price_next, liquidity, False)

        if reached_target:
            fee_amount = mul_div_rounding_up(amount_in, fee, FEE_DENOMINATOR - fee)
        else:
            # The remainder of the input is kept as fee
            fee_amount = amount_remaining - amount_in

        return sqrt_price_next, amount_in, amount_out, fee_amount

    @staticmethod
    def _get_amount0_delta(
        sqrt_price_a: int,
        sqrt_price_b: int,
        liquidity: int,
        round_up: bool,
    ) -> int:
        """Calculate token0 amount for liquidity in price range."""
        if sqrt_price_a > sqrt_price_b:
            sqrt_price_a, sqrt_price_b = sqrt_price_b, sqrt_price_a

        numerator1 = liquidity << 96
        numerator2 = sqrt_price_b - sqrt_price_a

        if round_up:
            return div_rounding_up(mul_div_rounding_up(numerator1, numerator2, sqrt_price_b), sqrt_price_a)
        return mul_div(numerator1, numerator2, sqrt_price_b) // sqrt_price_a

    @staticmethod
    def _get_amount1_delta(
        sqrt_price_a: int,
        sqrt_price_b: int,
        liquidity: int,
        round_up: bool,
    ) -> int:
        """Calculate token1 amount for liquidity in price range."""
        if sqrt_price_a > sqrt_price_b:
            sqrt_price_a, sqrt_price_b = sqrt_price_b, sqrt_price_a

        return mul_div(liquidity, sqrt_price_b - sqrt_price_a, Q96, round_up=round_up)

    @staticmethod
    def _get_next_sqrt_price_from_input(
        sqrt_price: int,
        liquidity: int,
        amount_in: int,
        zero_for_one: bool,
    ) -> int:
        """Calculate new sqrt price after input."""
        if amount_in == 0:
            return sqrt_price
        if zero_for_one:
            # Price decreases (more token0 = lower price), rounding up
            numerator1 = liquidity << 96
            return mul_div_rounding_up(numerator1, sqrt_price, numerator1 + amount_in * sqrt_price)
        # Price increases (more token1 = higher price), rounding down
        return sqrt_price + (amount_in << 96) // liquidity

    def _calculate_amounts_for_liquidity(
        self,
        pool: Pool,
        tick_lower: int,
        tick_upper: int,
        liquidity: int,
        add: bool,
    ) -> tuple[int, int]:
        """Token amounts backing ``liquidity``; rounded up when adding."""
        sqrt_price_lower = tick_to_sqrt_price(tick_lower)
        sqrt_price_upper = tick_to_sqrt_price(tick_upper)

        if pool.tick < tick_lower:
            # Below range - only token0
            return self._get_amount0_delta(sqrt_price_lower, sqrt_price_upper, liquidity, add), 0
        if pool.tick >= tick_upper:
            # Above range - only token1
            return 0, self._get_amount1_delta(sqrt_price_lower, sqrt_price_upper, liquidity, add)
        return (
            self._get_amount0_delta(pool.sqrt_price_x96, sqrt_price_upper, liquidity, add),
            self._get_amount1_delta(sqrt_price_lower, pool.sqrt_price_x96, liquidity, add),
        )

    # ==================== Tick Management ====================

    def _update_tick(self, pool: Pool, tick: int, liquidity_delta: int, is_upper: bool) -> bool:
        """Apply a liquidity change to a tick. Returns True if it flipped initialized state."""
        info = pool.ticks.get(tick)
        if info is None:
            info = TickInfo()
            pool.ticks[tick] = info

        gross_before = info.liquidity_gross
        gross_after = gross_before + liquidity_delta
        if gross_after > MAX_UINT128:
            raise PoolError("Tick liquidity overflow", details={"tick": tick})

        if gross_before == 0:
            # By convention all growth before initialization happened below the tick
            if tick <= pool.tick:
                info.fee_growth_outside0_x128 = pool.fee_growth_global0_x128
                info.fee_growth_outside1_x128 = pool.fee_growth_global1_x128
            bisect.insort(pool.initialized_ticks, tick)

        info.liquidity_gross = gross_after
        if is_upper:
            info.liquidity_net -= liquidity_delta
        else:
            info.liquidity_net += liquidity_delta

        return (gross_after == 0) != (gross_before == 0)

    def _clear_tick(self, pool: Pool, tick: int) -> None:
        pool.ticks.pop(tick, None)
        index = bisect.bisect_left(pool.initialized_ticks, tick)
        if index < len(pool.initialized_ticks) and pool.initialized_ticks[index] == tick:
            pool.initialized_ticks.pop(index)

    def _cross_tick(self, pool: Pool, tick: int, fee_growth_global0: int, fee_growth_global1: int) -> int:
        """Flip the fee growth outside a tick and return its net liquidity."""
        info = pool.ticks[tick]
        info.fee_growth_outside0_x128 = sub_mod(fee_growth_global0, info.fee_growth_outside0_x128)
        info.fee_growth_outside1_x128 = sub_mod(fee_growth_global1, info.fee_growth_outside1_x128)
        return info.liquidity_net

    def _next_initialized_tick(self, pool: Pool, tick: int, zero_for_one: bool) -> tuple[int, bool]:
        """
        Find the next initialized tick in the swap direction.

        Searches at or below ``tick`` when moving down, strictly above when
        moving up. Falls back to the price bounds when nothing is initialized.
        """
        ticks = pool.initialized_ticks
        if zero_for_one:
            index = bisect.bisect_right(ticks, tick)
            if index == 0:
                return MIN_TICK, False
            return ticks[index - 1], True

        index = bisect.bisect_right(ticks, tick)
        if index == len(ticks):
            return MAX_TICK, False
        return ticks[index], True

    def _get_fee_growth_inside(self, pool: Pool, tick_lower: int, tick_upper: int) -> tuple[int, int]:
        """Calculate fee growth inside a tick range for both tokens."""
        lower_info = pool.ticks.get(tick_lower, TickInfo())
        upper_info = pool.ticks.get(tick_upper, TickInfo())

        result = []
        for global_growth, lower_outside, upper_outside in (
            (pool.fee_growth_global0_x128, lower_info.fee_growth_outside0_x128, upper_info.fee_growth_outside0_x128),
            (pool.fee_growth_global1_x128, lower_info.fee_growth_outside1_x128, upper_info.fee_growth_outside1_x128),
        ):
            if pool.tick >= tick_lower:
                fee_below = lower_outside
            else:
                fee_below = sub_mod(global_growth, lower_outside)

            if pool.tick < tick_upper:
                fee_above = upper_outside
            else:
                fee_above = sub_mod(global_growth, upper_outside)

            result.append(sub_mod(sub_mod(global_growth, fee_below), fee_above))
        return result[0], result[1]

    # ==================== Fee Growth Oracle ====================

    def position_info(self, pool_id: str, position_key: str) -> PositionInfo:
        position = self._get_pool(pool_id).positions.get(position_key)
        if position is None:
            return PositionInfo()
        return PositionInfo(
            liquidity=position.liquidity,
            fee_growth_inside0_last_x128=position.fee_growth_inside0_last_x128,
            fee_growth_inside1_last_x128=position.fee_growth_inside1_last_x128,
        )

    def fee_growth_inside_range(self, pool_id: str, tick_lower: int, tick_upper: int) -> tuple[int, int]:
        return self._get_fee_growth_inside(self._get_pool(pool_id), tick_lower, tick_upper)

    def pool_liquidity(self, pool_id: str) -> int:
        return self._get_pool(pool_id).liquidity

    # ==================== View Functions ====================

    def get_position(self, pool_id: str, position_key: str) -> Position | None:
        return self._get_pool(pool_id).positions.get(position_key)

    def get_slot0(self, pool_id: str) -> tuple[int, int]:
        """Current (sqrt_price_x96, tick)."""
        pool = self._get_pool(pool_id)
        return pool.sqrt_price_x96, pool.tick

    def fee_growth_global(self, pool_id: str) -> tuple[int, int]:
        pool = self._get_pool(pool_id)
        return pool.fee_growth_global0_x128, pool.fee_growth_global1_x128

    # ==================== Transactions ====================

    def checkpoint(self, pool_id: str) -> Pool | None:
        pool = self.pools.get(pool_id)
        return copy.deepcopy(pool) if pool is not None else None

    def rollback(self, pool_id: str, checkpoint: Pool | None) -> None:
        if checkpoint is None:
            self.pools.pop(pool_id, None)
        else:
            self.pools[pool_id] = checkpoint
