"""
Tests for the anti-sniping hook callbacks against a scripted oracle.
"""

import pytest

from antisnipe.amm.interfaces import FeeGrowthOracle, LiquidityHooks, SupportsCheckpoint
from antisnipe.core.config import HookConfig
from antisnipe.core.constants import Q128
from antisnipe.core.exceptions import (
    PositionAlreadyExistsError,
    PositionLockedError,
    PositionPartiallyWithdrawnError,
    TooManyPositionsInEpochError,
)
from antisnipe.ledger.first_epoch_fees import FirstEpochFees
from antisnipe.ledger.hook import AntiSnipingHook
from antisnipe.ledger.lifecycle_guard import PositionState

POOL = "0xpool"


def test_protocol_conformance(stub_hook, oracle):
    assert isinstance(stub_hook, LiquidityHooks)
    assert isinstance(stub_hook, SupportsCheckpoint)
    assert isinstance(oracle, FeeGrowthOracle)


def test_accessors_reflect_config(oracle):
    hook = AntiSnipingHook(oracle, HookConfig(lock_duration_epochs=4, same_epoch_position_capacity=9))
    assert hook.lock_duration_epochs == 4
    assert hook.same_epoch_position_capacity == 9
    assert hook.last_settled_epoch(POOL) == 0
    assert hook.pending_positions(POOL) == []
    assert hook.creation_epoch(POOL, "0xa") is None


class TestBeforeAddLiquidity:
    def test_registers_position(self, stub_hook):
        record = stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 3)

        assert record.creation_epoch == 3
        assert stub_hook.creation_epoch(POOL, "0xa") == 3
        assert stub_hook.pending_positions(POOL) == ["0xa"]
        assert stub_hook.last_settled_epoch(POOL) == 3
        assert stub_hook.position_state(POOL, "0xa", 3) is PositionState.LOCKED

    def test_settles_previous_epoch_first(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 10)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        oracle.set_inside(POOL, -60, 60, 2 * Q128, 0)

        stub_hook.before_add_liquidity(POOL, "0xb", -60, 60, 2)

        assert stub_hook.first_epoch_fees(POOL, "0xa") == FirstEpochFees(20, 0)
        assert stub_hook.pending_positions(POOL) == ["0xb"]

    def test_duplicate_rejected_atomically(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 10)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        oracle.set_inside(POOL, -60, 60, Q128, 0)

        with pytest.raises(PositionAlreadyExistsError):
            stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 2)

        # The settlement triggered by the failed call was rolled back too
        assert stub_hook.last_settled_epoch(POOL) == 1
        assert stub_hook.pending_positions(POOL) == ["0xa"]
        assert stub_hook.first_epoch_fees(POOL, "0xa").is_zero()

    def test_capacity(self, oracle):
        hook = AntiSnipingHook(oracle, HookConfig(same_epoch_position_capacity=2))
        hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        hook.before_add_liquidity(POOL, "0xb", -60, 60, 1)

        with pytest.raises(TooManyPositionsInEpochError):
            hook.before_add_liquidity(POOL, "0xc", -60, 60, 1)

        # Next epoch settles the batch and frees the queue
        hook.before_add_liquidity(POOL, "0xc", -60, 60, 2)
        assert hook.pending_positions(POOL) == ["0xc"]


class TestRemoval:
    def test_locked_removal_rejected(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 100)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)

        with pytest.raises(PositionLockedError):
            stub_hook.before_remove_liquidity(POOL, "0xa", -100, 1)
        assert stub_hook.creation_epoch(POOL, "0xa") == 1

    def test_partial_removal_rejected(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 100)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)

        with pytest.raises(PositionPartiallyWithdrawnError):
            stub_hook.before_remove_liquidity(POOL, "0xa", -99, 2)

    def test_fees_donated_when_liquidity_remains(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 10)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        oracle.set_inside(POOL, -60, 60, 3 * Q128, 5 * Q128)

        stub_hook.before_remove_liquidity(POOL, "0xa", -10, 2)
        oracle.liquidity[POOL] = 1_000
        taken = stub_hook.after_remove_liquidity(POOL, "0xa")

        assert taken == (30, 50)
        assert oracle.donations == [(POOL, 30, 50)]
        assert stub_hook.creation_epoch(POOL, "0xa") is None
        assert stub_hook.first_epoch_fees(POOL, "0xa").is_zero()

    def test_fees_returned_to_last_provider(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 10)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        oracle.set_inside(POOL, -60, 60, 3 * Q128, 0)

        stub_hook.before_remove_liquidity(POOL, "0xa", -10, 2)
        taken = stub_hook.after_remove_liquidity(POOL, "0xa")

        assert taken == (0, 0)
        assert oracle.donations == []
        assert stub_hook.creation_epoch(POOL, "0xa") is None

    def test_zero_fees_are_not_donated(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 10)
        oracle.liquidity[POOL] = 1_000
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        stub_hook.before_remove_liquidity(POOL, "0xa", -10, 2)

        assert stub_hook.after_remove_liquidity(POOL, "0xa") == (0, 0)
        assert oracle.donations == []

    def test_failed_donation_rolls_back_close(self, stub_hook, oracle):
        def failing_donate(pool_id, amount0, amount1):
            raise RuntimeError("engine unavailable")

        oracle.set_position(POOL, "0xa", 10)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        oracle.set_inside(POOL, -60, 60, Q128, 0)
        stub_hook.before_remove_liquidity(POOL, "0xa", -10, 2)
        oracle.liquidity[POOL] = 1_000
        oracle.donate = failing_donate

        with pytest.raises(RuntimeError):
            stub_hook.after_remove_liquidity(POOL, "0xa")

        assert stub_hook.creation_epoch(POOL, "0xa") == 1
        assert stub_hook.first_epoch_fees(POOL, "0xa") == FirstEpochFees(10, 0)


class TestSwapAndDonate:
    def test_swap_and_donate_only_settle(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 4)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        oracle.set_inside(POOL, -60, 60, Q128, Q128)

        stub_hook.before_swap(POOL, 1)
        assert stub_hook.pending_positions(POOL) == ["0xa"]

        stub_hook.before_donate(POOL, 2)
        assert stub_hook.pending_positions(POOL) == []
        assert stub_hook.first_epoch_fees(POOL, "0xa") == FirstEpochFees(4, 4)

        stub_hook.before_swap(POOL, 3)
        assert stub_hook.last_settled_epoch(POOL) == 3


class TestCheckpoint:
    def test_rollback_restores_everything(self, stub_hook, oracle):
        oracle.set_position(POOL, "0xa", 1)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        checkpoint = stub_hook.checkpoint(POOL)

        stub_hook.before_add_liquidity(POOL, "0xb", -60, 60, 2)
        stub_hook.rollback(POOL, checkpoint)

        assert stub_hook.pending_positions(POOL) == ["0xa"]
        assert stub_hook.last_settled_epoch(POOL) == 1
        assert stub_hook.creation_epoch(POOL, "0xb") is None


class TestMetrics:
    def test_lifecycle_metrics(self, stub_hook, oracle, registry):
        oracle.set_position(POOL, "0xa", 10)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        oracle.set_inside(POOL, -60, 60, 3 * Q128, 0)

        with pytest.raises(PositionLockedError):
            stub_hook.before_remove_liquidity(POOL, "0xa", -10, 1)

        stub_hook.before_remove_liquidity(POOL, "0xa", -10, 2)
        oracle.liquidity[POOL] = 1
        stub_hook.after_remove_liquidity(POOL, "0xa")

        def value(name, **labels):
            return registry.get_sample_value(name, {"pool": POOL, **labels})

        assert value("antisnipe_positions_opened_total") == 1
        assert value("antisnipe_positions_closed_total") == 1
        assert value("antisnipe_rejections_total", reason="PositionLocked") == 1
        assert value("antisnipe_settled_positions_total") == 1
        assert value("antisnipe_pending_positions") == 0
        assert value("antisnipe_first_epoch_fees_total", token="token0", destination="donated") == 30

    def test_pending_gauge_follows_same_epoch_close(self, oracle, metrics, registry):
        hook = AntiSnipingHook(oracle, HookConfig(lock_duration_epochs=0), metrics=metrics)
        oracle.set_position(POOL, "0xa", 10)

        hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
        assert registry.get_sample_value("antisnipe_pending_positions", {"pool": POOL}) == 1

        hook.before_remove_liquidity(POOL, "0xa", -10, 1)
        hook.after_remove_liquidity(POOL, "0xa")

        assert hook.pending_positions(POOL) == []
        assert registry.get_sample_value("antisnipe_pending_positions", {"pool": POOL}) == 0


class TestTransaction:
    def test_metrics_emitted_when_outermost_scope_commits(self, stub_hook, oracle, registry):
        oracle.set_position(POOL, "0xa", 1)

        with stub_hook.transaction(POOL):
            stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)
            assert registry.get_sample_value("antisnipe_positions_opened_total", {"pool": POOL}) is None

        assert registry.get_sample_value("antisnipe_positions_opened_total", {"pool": POOL}) == 1
        assert registry.get_sample_value("antisnipe_pending_positions", {"pool": POOL}) == 1

    def test_failed_scope_restores_ledger_and_drops_metrics(self, stub_hook, oracle, registry):
        oracle.set_position(POOL, "0xa", 1)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)

        with pytest.raises(RuntimeError):
            with stub_hook.transaction(POOL):
                stub_hook.before_swap(POOL, 2)
                assert stub_hook.pending_positions(POOL) == []
                raise RuntimeError("engine failed")

        assert stub_hook.pending_positions(POOL) == ["0xa"]
        assert stub_hook.last_settled_epoch(POOL) == 1
        assert registry.get_sample_value("antisnipe_settlements_total", {"pool": POOL}) == 1
        assert registry.get_sample_value("antisnipe_pending_positions", {"pool": POOL}) == 1

    def test_rejection_counted_even_when_rolled_back(self, stub_hook, oracle, registry):
        oracle.set_position(POOL, "0xa", 1)
        stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)

        with pytest.raises(PositionAlreadyExistsError):
            with stub_hook.transaction(POOL):
                stub_hook.before_add_liquidity(POOL, "0xa", -60, 60, 1)

        assert registry.get_sample_value(
            "antisnipe_rejections_total", {"pool": POOL, "reason": "AlreadyExists"}
        ) == 1
        assert registry.get_sample_value("antisnipe_positions_opened_total", {"pool": POOL}) == 1
