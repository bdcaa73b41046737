"""
Antisnipe Constants

Fixed-point bases, integer bounds and ledger defaults used across the
package, grouped by category.

NOTE: The fixed-point and modulus values define the wire format shared with
the pool engine. Changing them breaks fee-growth compatibility.
"""

from typing import Final

# =============================================================================
# FIXED POINT
# =============================================================================

# Q64.96 sqrt prices
Q96: Final[int] = 2**96
# Q128.128 fee growth per unit of liquidity
Q128: Final[int] = 2**128

# =============================================================================
# INTEGER BOUNDS
# =============================================================================

MAX_UINT128: Final[int] = 2**128 - 1
MAX_UINT160: Final[int] = 2**160 - 1
MAX_UINT256: Final[int] = 2**256 - 1
MIN_INT24: Final[int] = -(2**23)
MAX_INT24: Final[int] = 2**23 - 1

# Fee growth accumulators are uint256 counters that wrap at this modulus.
# Every delta between two readings is taken modulo this value.
FEE_GROWTH_MODULUS: Final[int] = 2**256

# =============================================================================
# TICKS AND PRICES
# =============================================================================

MIN_TICK: Final[int] = -887272
MAX_TICK: Final[int] = 887272
MIN_SQRT_RATIO: Final[int] = 4295128739
MAX_SQRT_RATIO: Final[int] = 1461446703485210103287273052203988822378723970342

# Swap fees are expressed in hundredths of a basis point (pips)
FEE_DENOMINATOR: Final[int] = 1_000_000

# =============================================================================
# LEDGER DEFAULTS
# =============================================================================

# Epochs are block numbers; 0 is reserved for "never settled"
FIRST_EPOCH: Final[int] = 1
DEFAULT_LOCK_DURATION_EPOCHS: Final[int] = 1
DEFAULT_SAME_EPOCH_POSITION_CAPACITY: Final[int] = 50

# =============================================================================
# POSITION KEY ENCODING
# =============================================================================

ADDRESS_BYTES: Final[int] = 20
TICK_BYTES: Final[int] = 3
SALT_BYTES: Final[int] = 32
ZERO_SALT: Final[bytes] = bytes(SALT_BYTES)
