"""
Fixed-point arithmetic for fee-growth accounting.

Python integers never overflow, so multiply-divide is computed exactly and
the result is bounds-checked against uint256 instead of relying on a 512-bit
intermediate. Accumulator deltas use explicit modular subtraction at 256 bits
because fee growth counters are allowed to wrap.
"""

from __future__ import annotations

from .constants import FEE_GROWTH_MODULUS, MAX_UINT256


def mul_div(a: int, b: int, denominator: int, round_up: bool = False) -> int:
    """
    Calculate (a * b) / denominator with full precision and controlled rounding.

    Args:
        a: First multiplicand
        b: Second multiplicand
        denominator: Divisor
        round_up: If True, round up (for charging users)
                  If False, round down (for paying users)

    Returns:
        Result of (a * b) / denominator

    Raises:
        ValueError: If denominator is zero or an operand is negative
        OverflowError: If the result does not fit in uint256
    """
    if denominator == 0:
        raise ValueError("Division by zero")
    if a < 0 or b < 0 or denominator < 0:
        raise ValueError("mul_div operands must be non-negative")

    product = a * b
    result = product // denominator
    if round_up and product % denominator:
        result += 1

    if result > MAX_UINT256:
        raise OverflowError("mul_div result exceeds uint256")
    return result


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    return mul_div(a, b, denominator, round_up=True)


def div_rounding_up(a: int, b: int) -> int:
    if b == 0:
        raise ValueError("Division by zero")
    result, remainder = divmod(a, b)
    return result + 1 if remainder else result


def sub_mod(a: int, b: int, modulus: int = FEE_GROWTH_MODULUS) -> int:
    """Return ``a - b`` under wraparound semantics at ``modulus``."""
    return (a - b) % modulus


def add_mod(a: int, b: int, modulus: int = FEE_GROWTH_MODULUS) -> int:
    return (a + b) % modulus
