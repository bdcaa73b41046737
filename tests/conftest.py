"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Add project root and src to Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(project_root))
sys.path.insert(0, str(src_path))

import pytest
from prometheus_client import CollectorRegistry

from antisnipe.amm.dispatcher import EpochClock, HookedPoolDispatcher
from antisnipe.amm.interfaces import PositionInfo
from antisnipe.amm.pool_manager import PoolKey, PoolManager
from antisnipe.core.config import HookConfig
from antisnipe.core.constants import Q96
from antisnipe.core.metrics import HookMetrics
from antisnipe.ledger.hook import AntiSnipingHook


TOKEN0 = "0x" + "00" * 19 + "01"
TOKEN1 = "0x" + "00" * 19 + "02"


@pytest.fixture
def registry():
    """Private Prometheus registry so metric values start at zero."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return HookMetrics(registry=registry)


@pytest.fixture
def manager():
    return PoolManager()


@pytest.fixture
def pool_key():
    # 0.30% fee, spacing 60
    return PoolKey(TOKEN0, TOKEN1, fee=3000, tick_spacing=60)


@pytest.fixture
def pool_id(manager, pool_key):
    """Pool initialized at price 1 (tick 0)."""
    return manager.initialize(pool_key, Q96)


@pytest.fixture
def clock():
    return EpochClock()


@pytest.fixture
def hook(manager, metrics):
    return AntiSnipingHook(manager, HookConfig(), metrics=metrics)


@pytest.fixture
def dispatcher(manager, hook, clock):
    return HookedPoolDispatcher(manager, hook, clock)


class StubOracle:
    """Scriptable fee growth oracle for ledger tests without an engine."""

    def __init__(self):
        self.positions = {}
        self.inside = {}
        self.liquidity = {}
        self.donations = []

    def set_position(self, pool_id, position_key, liquidity, inside0=0, inside1=0):
        self.positions[(pool_id, position_key)] = PositionInfo(liquidity, inside0, inside1)

    def set_inside(self, pool_id, tick_lower, tick_upper, inside0, inside1):
        self.inside[(pool_id, tick_lower, tick_upper)] = (inside0, inside1)

    def position_info(self, pool_id, position_key):
        return self.positions.get((pool_id, position_key), PositionInfo())

    def fee_growth_inside_range(self, pool_id, tick_lower, tick_upper):
        return self.inside.get((pool_id, tick_lower, tick_upper), (0, 0))

    def pool_liquidity(self, pool_id):
        return self.liquidity.get(pool_id, 0)

    def donate(self, pool_id, amount0, amount1):
        self.donations.append((pool_id, amount0, amount1))


@pytest.fixture
def oracle():
    return StubOracle()


@pytest.fixture
def stub_hook(oracle, metrics):
    """Hook over the stub oracle with default configuration."""
    return AntiSnipingHook(oracle, HookConfig(), metrics=metrics)
