"""
Tick and sqrt price conversion.

sqrt_price = sqrt(1.0001^tick) * 2^96, computed exactly the way the Uniswap
V3 TickMath library does so that tick boundaries match on-chain pools bit
for bit.
"""

from __future__ import annotations

from ..core.constants import (
    MAX_SQRT_RATIO,
    MAX_TICK,
    MAX_UINT256,
    MIN_SQRT_RATIO,
    MIN_TICK,
)
from ..core.exceptions import PoolError

# Q128 multipliers for sqrt(1.0001^-(2^i)), indexed by bit
_TICK_MULTIPLIERS = (
    (0x2, 0xfff97272373d413259a46990580e213a),
    (0x4, 0xfff2e50f5f656932ef12357cf3c7fdcc),
    (0x8, 0xffe5caca7e10e4e61c3624eaa0941cd0),
    (0x10, 0xffcb9843d60f6159c9db58835c926644),
    (0x20, 0xff973b41fa98c081472e6896dfb254c0),
    (0x40, 0xff2ea16466c96a3843ec78b326b52861),
    (0x80, 0xfe5dee046a99a2a811c461f1969c3053),
    (0x100, 0xfcbe86c7900a88aedcffc83b479aa3a4),
    (0x200, 0xf987a7253ac413176f2b074cf7815e54),
    (0x400, 0xf3392b0822b70005940c7a398e4b70f3),
    (0x800, 0xe7159475a2c29b7443b29c7fa6e889d9),
    (0x1000, 0xd097f3bdfd2022b8845ad8f792aa5825),
    (0x2000, 0xa9f746462d870fdf8a65dc1f90e061e5),
    (0x4000, 0x70d869a156d2a1b890bb3df62baf32f7),
    (0x8000, 0x31be135f97d08fd981231505542fcfa6),
    (0x10000, 0x9aa508b5b7a84e1c677de54f3e99bc9),
    (0x20000, 0x5d6af8dedb81196699c329225ee604),
    (0x40000, 0x2216e584f5fa1ea926041bedfe98),
    (0x80000, 0x48a170391f7dc42444e8fa2),
)


def tick_to_sqrt_price(tick: int) -> int:
    """
    Convert a tick to its sqrt price in Q64.96 format.

    Raises:
        PoolError: If the tick is outside [MIN_TICK, MAX_TICK]
    """
    if not MIN_TICK <= tick <= MAX_TICK:
        raise PoolError(f"Tick {tick} out of range", details={"tick": tick})

    abs_tick = abs(tick)
    ratio = 0xfffcb933bd6fad37aa2d162d1a594001 if abs_tick & 0x1 else 1 << 128
    for bit, multiplier in _TICK_MULTIPLIERS:
        if abs_tick & bit:
            ratio = (ratio * multiplier) >> 128

    if tick > 0:
        ratio = MAX_UINT256 // ratio

    # Q128.128 -> Q64.96, rounding up
    return (ratio >> 32) + (1 if ratio % (1 << 32) else 0)


def sqrt_price_to_tick(sqrt_price: int) -> int:
    """
    Greatest tick whose sqrt price is <= ``sqrt_price``.

    Raises:
        PoolError: If the price is outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO)
    """
    if sqrt_price < MIN_SQRT_RATIO or sqrt_price >= MAX_SQRT_RATIO:
        raise PoolError("Sqrt price out of range", details={"sqrt_price": sqrt_price})

    low, high = MIN_TICK, MAX_TICK
    while low < high:
        mid = (low + high + 1) // 2
        if tick_to_sqrt_price(mid) <= sqrt_price:
            low = mid
        else:
            high = mid - 1
    return low
