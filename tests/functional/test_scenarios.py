"""
End-to-end acceptance scenarios for the liquidity pool.

A: deposit mints scaled shares
B: opening a layer freezes and splits the current epoch
C: LPs claim in proportion to their locked shares, without materializing
D: closing with LP gains returns principal plus profit
E: closing with a loss at or above principal forfeits it
"""
import pytest

from liquidity_ledger import PRECISION, LayerStatus
from tests.helpers import (
    SETTLEMENT_WALLET, fund_and_deposit, prefund_profit, assert_invariants, shares,
)


class TestScenarioA:

    def test_deposit(self, pool):
        fund_and_deposit(pool, "alice", 100)

        assert pool.share_balance("alice", 1) == 100 * PRECISION
        assert pool.total_free_assets == 100
        assert pool.lp_total_balance("alice") == 100
        assert pool.lp_available_balance("alice") == 100
        assert_invariants(pool)


class TestScenarioB:

    def test_lock_splits_epoch(self, alice_pool):
        alice_pool.create_trade_layer(40)

        epoch_1 = alice_pool.get_epoch(1)
        assert epoch_1.frozen
        assert epoch_1.split
        assert epoch_1.total_shares == shares(100) * 40 // 100
        assert epoch_1.pre_split_total_shares == shares(100)
        assert epoch_1.rollover_epoch_id == 2

        epoch_2 = alice_pool.get_epoch(2)
        assert epoch_2.free_assets == 60
        assert epoch_2.total_shares == shares(60)
        assert alice_pool.current_epoch_id == 2

        # no LP balance moved
        assert alice_pool.epoch_balances("alice") == {1: shares(100)}
        assert_invariants(alice_pool)


class TestScenarioC:

    def test_proportional_claims_without_materializing(self, two_lp_pool):
        layer_id = two_lp_pool.create_trade_layer(40)

        alice = two_lp_pool.claim_layer_allocation("alice", layer_id)
        bob = two_lp_pool.claim_layer_allocation("bob", layer_id)

        assert (alice, bob) == (24, 16)
        assert alice + bob <= 40
        assert two_lp_pool.progress_pointer("alice") == 1
        assert two_lp_pool.progress_pointer("bob") == 1
        assert two_lp_pool.epoch_balances("alice") == {1: shares(60)}
        assert_invariants(two_lp_pool)


class TestScenarioD:

    def test_lp_gains(self, funded_layer_pool):
        pool, layer_id = funded_layer_pool
        pool.activate_trade_layer(layer_id)
        free_before = pool.total_free_assets

        prefund_profit(pool, 10)
        pool.close_trade_layer(layer_id, 10, lp_gains=True)

        assert pool.get_epoch(1).free_assets == 40 + 10
        assert pool.total_free_assets == free_before + 50
        # utilization persists until each LP releases
        assert pool.lp_available_balance("alice") == 36
        assert pool.release_allocation("alice", layer_id) == 24
        assert pool.release_allocation("bob", layer_id) == 16
        assert pool.lp_available_balance("alice") == 60
        assert pool.lp_available_balance("bob") == 40
        assert_invariants(pool)


class TestScenarioE:

    @pytest.mark.parametrize("loss", [40, 50])
    def test_full_principal_forfeit(self, funded_layer_pool, token, loss):
        pool, layer_id = funded_layer_pool
        pool.activate_trade_layer(layer_id)

        settlement = pool.close_trade_layer(layer_id, loss, lp_gains=False)

        assert settlement.forfeited
        assert settlement.returned_to_free == 0
        assert settlement.payout == 40
        assert pool.get_epoch(1).free_assets == 0
        assert pool.get_epoch(1).locked_assets == 0
        assert pool.total_free_assets == 60
        assert token.balance_of(SETTLEMENT_WALLET) == 40
        assert pool.get_trade_layer(layer_id).status == LayerStatus.CLOSED
        assert_invariants(pool)
