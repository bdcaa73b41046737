"""
Antisnipe - first-epoch fee isolation for concentrated liquidity pools.

Protects liquidity providers from sniping: positions opened right before a
fee-generating event and closed right after do not keep the fees earned in
their opening epoch.

Main Components:
- Ledger: position registry, settlement queue, first-epoch fee ledger, lifecycle guard
- Hook: callback contract invoked by the pool host on every pool operation
- AMM: in-memory reference pool manager and the dispatcher that drives hooks
"""

__version__ = "0.1.0"
__author__ = "Antisnipe Development Team"

from .core.config import HookConfig
from .core.exceptions import (
    AntiSnipeError,
    LedgerError,
    PoolError,
    PositionAlreadyExistsError,
    PositionLockedError,
    PositionPartiallyWithdrawnError,
    TooManyPositionsInEpochError,
)
from .core.logging_config import setup_logging, setup_logging_from_env
from .core.position_key import position_key
from .ledger.hook import AntiSnipingHook

__all__ = [
    "AntiSnipingHook",
    "HookConfig",
    "position_key",
    "setup_logging",
    "setup_logging_from_env",
    "AntiSnipeError",
    "LedgerError",
    "PoolError",
    "PositionAlreadyExistsError",
    "TooManyPositionsInEpochError",
    "PositionLockedError",
    "PositionPartiallyWithdrawnError",
]
