"""
helpers.py - Shared helpers for liquidity ledger tests
"""

from liquidity_ledger import LiquidityLedger, InMemoryAsset, LedgerError, PRECISION


SETTLEMENT_WALLET = "trader_settlement"


def fund_and_deposit(pool: LiquidityLedger, lp: str, amount: int) -> int:
    """Mint amount to lp on the pool's asset, approve the pool, and deposit."""
    pool.asset.mint(lp, amount)
    pool.asset.approve(lp, pool.pool_wallet, pool.asset.allowance(lp, pool.pool_wallet) + amount)
    return pool.deposit(lp, amount)


def prefund_profit(pool: LiquidityLedger, amount: int) -> None:
    """Simulate the position engine moving a trader's lost collateral into the pool."""
    pool.asset.mint(pool.pool_wallet, amount)


def assert_invariants(pool: LiquidityLedger) -> None:
    result = pool.verify_invariants()
    assert result['valid'], result['discrepancies']


def shares(amount: int) -> int:
    """Scaled shares for a token amount."""
    return amount * PRECISION


# =============================================================================
# SCRIPTED OPERATIONS (property-based tests)
# =============================================================================

LPS = ("alice", "bob", "carol")

OPERATIONS = (
    "deposit", "withdraw", "materialize", "create",
    "claim", "activate", "close", "release",
)


def new_pool(**kwargs) -> LiquidityLedger:
    kwargs.setdefault('verbose', False)
    kwargs.setdefault('settlement_wallet', SETTLEMENT_WALLET)
    return LiquidityLedger(InMemoryAsset("USDC"), **kwargs)


def _pick_layer(pool: LiquidityLedger, index: int) -> int:
    layers = pool.list_trade_layers()
    if not layers:
        return 1
    return layers[index % len(layers)].layer_id


def apply_operation(pool: LiquidityLedger, op: str, lp: str, amount: int,
                    index: int, flag: bool) -> bool:
    """
    Apply one scripted operation to the pool.

    `flag` steers the operation toward its success path (a withdrawable
    amount, the LP's own pointer, a pre-funded profit).

    Returns:
        True if the operation committed, False if the ledger rejected it.
    """
    try:
        if op == "deposit":
            fund_and_deposit(pool, lp, amount)
        elif op == "withdraw":
            epochs = pool.list_epochs()
            epoch_id = epochs[index % len(epochs)].epoch_id
            if flag:
                held = pool.share_balance(lp, epoch_id) // PRECISION
                amount = min(pool.withdrawable_amount(lp, epoch_id), held) or amount
            pool.withdraw_from_epoch(lp, epoch_id, amount)
        elif op == "materialize":
            pool.materialize_shares(lp, pool.progress_pointer(lp) if flag else index)
        elif op == "create":
            pool.create_trade_layer(amount)
        elif op == "claim":
            pool.claim_layer_allocation(lp, _pick_layer(pool, index))
        elif op == "activate":
            pool.activate_trade_layer(_pick_layer(pool, index))
        elif op == "close":
            pnl = amount % 60
            if flag:
                prefund_profit(pool, pnl)
            pool.close_trade_layer(_pick_layer(pool, index), pnl, lp_gains=flag)
        elif op == "release":
            pool.release_allocation(lp, _pick_layer(pool, index))
        else:
            raise ValueError(f"unknown operation {op}")
    except LedgerError:
        return False
    return True


def ledger_state(pool: LiquidityLedger):
    """Comparable snapshot of everything the ledger owns (not the asset)."""
    return (
        tuple(pool.list_epochs()),
        pool.current_epoch_id,
        pool.total_free_assets,
        pool.epochs.locked_assets_total,
        dict(pool.shares.providers),
        {lp: pool.epoch_balances(lp) for lp in pool.list_providers()},
        {lp: pool.progress_pointer(lp) for lp in pool.list_providers()},
        tuple(pool.list_trade_layers()),
        dict(pool.layers.allocations),
        len(pool.event_log),
    )


def materialize_fully(pool: LiquidityLedger, lp: str) -> None:
    """Materialize in capped batches until the LP's pointer stops moving."""
    while True:
        plan = pool.materialize_shares(lp, pool.progress_pointer(lp))
        if plan.hops == 0:
            return
