"""
conftest.py - Shared pytest fixtures for liquidity ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Assets (empty, with trader/settlement wallets)
- Ledgers (empty, single LP, two LPs at 60/40)
- A two-LP ledger with a claimed trade layer
"""

import pytest

from liquidity_ledger import LiquidityLedger, InMemoryAsset
from tests.helpers import SETTLEMENT_WALLET, fund_and_deposit


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def token():
    """Fresh asset with no balances."""
    return InMemoryAsset("USDC")


@pytest.fixture
def pool(token):
    """Empty ledger with epoch 1 open."""
    return LiquidityLedger(token, verbose=False, settlement_wallet=SETTLEMENT_WALLET)


@pytest.fixture
def alice_pool(pool):
    """Ledger where alice has deposited 100 into epoch 1."""
    fund_and_deposit(pool, "alice", 100)
    return pool


@pytest.fixture
def two_lp_pool(pool):
    """Ledger where alice holds 60 and bob 40 of epoch 1."""
    fund_and_deposit(pool, "alice", 60)
    fund_and_deposit(pool, "bob", 40)
    return pool


@pytest.fixture
def funded_layer_pool(two_lp_pool):
    """Two-LP ledger with a 40-token layer funded from epoch 1 and claimed by both."""
    pool = two_lp_pool
    layer_id = pool.create_trade_layer(40)
    pool.claim_layer_allocation("alice", layer_id)
    pool.claim_layer_allocation("bob", layer_id)
    return pool, layer_id
