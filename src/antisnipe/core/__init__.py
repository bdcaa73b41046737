"""
Antisnipe core: constants, fixed-point math, position keys, configuration,
exceptions, logging and metrics shared by the ledger and the pool engine.
"""

__all__ = []
