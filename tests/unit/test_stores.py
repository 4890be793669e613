"""
Tests for EpochStore and ShareLedger bookkeeping.
"""
import pytest

from liquidity_ledger import (
    PRECISION, EpochStore, ShareLedger, MaterializationPlan, MaterializationStep,
    EpochFrozen, EpochNotFound, InsufficientEpochAssets,
    InsufficientAvailability, InsufficientEpochShares, UnknownProvider,
)
from liquidity_ledger.shares import shares_for


P = PRECISION


@pytest.fixture
def store():
    store = EpochStore()
    store.create_epoch()
    store.credit_deposit(100)
    return store


class TestEpochStore:

    def test_create_first_epoch(self):
        store = EpochStore()
        epoch = store.create_epoch()
        assert epoch.epoch_id == 1
        assert store.current_epoch_id == 1

    def test_credit_deposit(self, store):
        epoch = store.get(1)
        assert epoch.free_assets == 100
        assert epoch.total_shares == 100 * P
        assert store.total_free_assets == 100

    def test_unknown_epoch(self, store):
        with pytest.raises(EpochNotFound):
            store.get(2)
        assert not store.exists(2)

    def test_debit_withdrawal(self, store):
        store.debit_withdrawal(1, 30)
        assert store.get(1).free_assets == 70
        assert store.get(1).total_shares == 70 * P
        assert store.total_free_assets == 70

    def test_lock_freezes(self, store):
        epoch = store.lock_from_current(40)
        assert epoch.frozen
        assert epoch.free_assets == 60
        assert epoch.locked_assets == 40
        assert store.total_free_assets == 60
        assert store.total_locked_assets() == 40

    def test_lock_frozen_epoch_rejected(self, store):
        store.lock_from_current(10)
        with pytest.raises(EpochFrozen):
            store.lock_from_current(10)

    def test_lock_more_than_free_rejected(self, store):
        with pytest.raises(InsufficientEpochAssets):
            store.lock_from_current(101)
        assert not store.get(1).frozen

    def test_release_locked_is_capped(self, store):
        store.lock_from_current(40)
        assert store.release_locked(1, 50) == 40
        assert store.get(1).locked_assets == 0
        assert store.total_locked_assets() == 0

    def test_credit_free(self, store):
        store.credit_free(1, 7)
        assert store.get(1).free_assets == 107
        assert store.total_free_assets == 107

    def test_clone_is_independent(self, store):
        cloned = store.clone()
        cloned.credit_deposit(50)
        cloned.create_epoch()
        assert store.get(1).free_assets == 100
        assert store.total_free_assets == 100
        assert not store.exists(2)

    def test_clone_keeps_locked_total(self, store):
        store.lock_from_current(40)
        cloned = store.clone()
        cloned.release_locked(1, 15)
        assert cloned.total_locked_assets() == 25
        assert store.total_locked_assets() == 40

    def test_rollback_restores_touched_epochs(self, store):
        journal = store.journal
        journal.begin()
        store.lock_from_current(40)
        store.split_epoch(1)
        journal.rollback()

        assert not store.exists(2)
        assert store.current_epoch_id == 1
        assert store.get(1).free_assets == 100
        assert not store.get(1).frozen
        assert store.total_free_assets == 100
        assert store.total_locked_assets() == 0
        assert store.create_epoch().epoch_id == 2


@pytest.fixture
def ledger():
    ledger = ShareLedger()
    ledger.mint("alice", 1, shares_for(100))
    return ledger


class TestShareLedger:

    def test_first_mint_registers_provider(self, ledger):
        provider = ledger.get_provider("alice")
        assert provider.total_shares == 100 * P
        assert ledger.share_balance("alice", 1) == 100 * P
        assert ledger.progress_pointer("alice") == 1

    def test_later_mint_keeps_pointer(self, ledger):
        ledger.mint("alice", 3, shares_for(5))
        assert ledger.progress_pointer("alice") == 1
        assert ledger.epoch_balances("alice") == {1: 100 * P, 3: 5 * P}

    def test_unknown_provider(self, ledger):
        assert ledger.get_provider("bob") is None
        assert ledger.progress_pointer("bob") is None
        assert ledger.available_balance("bob") == 0
        with pytest.raises(UnknownProvider):
            ledger.require_provider("bob")

    def test_burn(self, ledger):
        ledger.burn("alice", 1, shares_for(40))
        assert ledger.get_provider("alice").total_shares == 60 * P
        assert ledger.share_balance("alice", 1) == 60 * P

    def test_burn_more_than_held(self, ledger):
        with pytest.raises(InsufficientEpochShares):
            ledger.burn("alice", 2, shares_for(1))

    def test_utilization(self, ledger):
        ledger.add_utilization("alice", 30)
        assert ledger.available_balance("alice") == 70
        ledger.release_utilization("alice", 50)
        assert ledger.get_provider("alice").accumulated_utilization == 0

    def test_utilization_above_available(self, ledger):
        with pytest.raises(InsufficientAvailability):
            ledger.add_utilization("alice", 101)

    def test_apply_materialization(self, ledger):
        plan = MaterializationPlan(
            start_epoch_id=1, end_epoch_id=2, hops=1,
            steps=(MaterializationStep(1, 2, 100 * P, 40 * P, 60 * P),),
            balances={1: 40 * P, 2: 60 * P},
        )
        ledger.apply_materialization("alice", plan)
        assert ledger.epoch_balances("alice") == {1: 40 * P, 2: 60 * P}
        assert ledger.get_provider("alice").total_shares == 100 * P
        assert ledger.progress_pointer("alice") == 2

    def test_epoch_balances_skips_zero(self, ledger):
        ledger.burn("alice", 1, shares_for(100))
        assert ledger.epoch_balances("alice") == {}

    def test_clone_is_independent(self, ledger):
        cloned = ledger.clone()
        cloned.mint("alice", 1, shares_for(1))
        cloned.mint("bob", 1, shares_for(1))
        assert ledger.share_balance("alice", 1) == 100 * P
        assert ledger.list_providers() == ["alice"]

    def test_rollback_unregisters_new_provider(self, ledger):
        ledger.journal.begin()
        ledger.mint("bob", 1, shares_for(5))
        ledger.burn("alice", 1, shares_for(10))
        ledger.journal.rollback()

        assert ledger.list_providers() == ["alice"]
        assert "bob" not in ledger.balances
        assert ledger.progress_pointer("bob") is None
        assert ledger.share_balance("alice", 1) == 100 * P
        assert ledger.get_provider("alice").total_shares == 100 * P
