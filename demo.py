#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: The Epoch Liquidity Pool Step by Step

A walkthrough of how LP deposits, trade layers and lazy splits fit together.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-2:  Deposits       - The genesis epoch, scaled shares
  3-4:  Trade Layers   - Locking forces a split, LPs claim without materializing
  5-6:  Settlement     - Profit flows back to the funding epoch, LPs release
  7-8:  Materializing  - Virtual positions become concrete, withdrawals
  9:    Losses         - A loss above principal forfeits it

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from liquidity_ledger import (
    LiquidityLedger, InMemoryAsset, PRECISION,
    LedgerError,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    alice_deposit: int = 60
    bob_deposit: int = 40
    layer_backing: int = 40
    trader_loss: int = 10          # paid into the pool: LPs gain this
    second_layer_backing: int = 20
    second_layer_loss: int = 45    # exceeds principal: forfeit
    settlement_wallet: str = "trader_settlement"


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show_epochs(pool: LiquidityLedger):
    for epoch in pool.list_epochs():
        flags = "".join([
            "F" if epoch.frozen else "-",
            "S" if epoch.split else "-",
        ])
        print(f"  epoch {epoch.epoch_id} [{flags}] shares={epoch.total_shares / PRECISION:g} "
              f"free={epoch.free_assets} locked={epoch.locked_assets}")


def show_lp(pool: LiquidityLedger, lp: str):
    balances = {e: s / PRECISION for e, s in pool.epoch_balances(lp).items()}
    print(f"  {lp}: total={pool.lp_total_balance(lp)} available={pool.lp_available_balance(lp)} "
          f"pointer={pool.progress_pointer(lp)} balances={balances}")


# ============================================================================
# STEPS
# ============================================================================

def step_01_empty_pool():
    step_header(1, "The Empty Pool",
        "A pool starts with one open epoch and nothing in it.")

    token = InMemoryAsset("USDC")
    pool = LiquidityLedger(token, name="tutorial", verbose=True,
                           settlement_wallet=CONFIG.settlement_wallet)
    show_epochs(pool)
    return pool


def step_02_deposits(pool: LiquidityLedger):
    step_header(2, "Deposits",
        "Every token deposited mints PRECISION shares in the current epoch.")

    for lp, amount in [("alice", CONFIG.alice_deposit), ("bob", CONFIG.bob_deposit)]:
        pool.asset.mint(lp, amount)
        pool.asset.approve(lp, pool.pool_wallet, amount)
        print(f">>> pool.deposit({lp!r}, {amount})")
        pool.deposit(lp, amount)

    section_header("State")
    show_epochs(pool)
    show_lp(pool, "alice")
    show_lp(pool, "bob")
    return pool


def step_03_open_layer(pool: LiquidityLedger):
    step_header(3, "Opening a Trade Layer",
        "Locking backing freezes the current epoch and splits it.")

    print(f">>> pool.create_trade_layer({CONFIG.layer_backing})")
    layer_id = pool.create_trade_layer(CONFIG.layer_backing)

    section_header("State")
    show_epochs(pool)
    print("""
    Epoch 1 keeps the locked assets and its locked share count. Epoch 2 holds
    the unlocked remainder and is now current. No LP balance moved: alice and
    bob still hold epoch 1 shares only.
    """)
    show_lp(pool, "alice")
    return pool, layer_id


def step_04_claims(pool: LiquidityLedger, layer_id: int):
    step_header(4, "Claiming Allocations",
        "LPs claim in proportion to their locked shares, projected virtually.")

    for lp in ("alice", "bob"):
        print(f">>> pool.claim_layer_allocation({lp!r}, {layer_id})")
        pool.claim_layer_allocation(lp, layer_id)
    pool.activate_trade_layer(layer_id)

    section_header("State")
    show_lp(pool, "alice")
    show_lp(pool, "bob")
    return pool


def step_05_close_with_profit(pool: LiquidityLedger, layer_id: int):
    step_header(5, "Settling a Profitable Layer",
        "Profit is funded into the pool, then booked to the funding epoch.")

    print(f">>> token.mint(pool.pool_wallet, {CONFIG.trader_loss})   # position engine")
    pool.asset.mint(pool.pool_wallet, CONFIG.trader_loss)
    print(f">>> pool.close_trade_layer({layer_id}, {CONFIG.trader_loss}, lp_gains=True)")
    pool.close_trade_layer(layer_id, CONFIG.trader_loss, lp_gains=True)

    section_header("State")
    show_epochs(pool)
    return pool


def step_06_release(pool: LiquidityLedger, layer_id: int):
    step_header(6, "Releasing Utilization",
        "Each LP unwinds its own utilization once the layer is closed.")

    for lp in ("alice", "bob"):
        pool.release_allocation(lp, layer_id)
        show_lp(pool, lp)
    return pool


def step_07_materialize(pool: LiquidityLedger):
    step_header(7, "Materializing",
        "Turn alice's virtual rollover shares into concrete epoch balances.")

    print(f"virtual view: {pool.virtual_share_balances('alice')}")
    print(">>> pool.materialize_shares('alice', 1)")
    pool.materialize_shares("alice", 1)
    show_lp(pool, "alice")
    return pool


def step_08_withdraw(pool: LiquidityLedger):
    step_header(8, "Withdrawing",
        "Withdrawals burn concrete shares from one epoch at a time.")

    section_header("Rejected: bob has not materialized")
    try:
        pool.withdraw_from_epoch("bob", 1, 5)
    except LedgerError as exc:
        print(f"  {type(exc).__name__} ({exc.kind.value})")

    section_header("Accepted")
    amount = pool.withdrawable_amount("alice", 2)
    print(f">>> pool.withdraw_from_epoch('alice', 2, {amount})")
    pool.withdraw_from_epoch("alice", 2, amount)
    show_lp(pool, "alice")
    print(f"  alice wallet: {pool.asset.balance_of('alice')}")
    return pool


def step_09_forfeit(pool: LiquidityLedger):
    step_header(9, "Losses Above Principal",
        "A loss at or above the locked principal pays all of it out.")

    layer_id = pool.create_trade_layer(CONFIG.second_layer_backing)
    pool.claim_layer_allocation("bob", layer_id)
    settlement = pool.close_trade_layer(layer_id, CONFIG.second_layer_loss, lp_gains=False)
    print(f"  {settlement}")
    print(f"  settlement wallet: {pool.asset.balance_of(CONFIG.settlement_wallet)}")

    section_header("Invariants")
    print(f"  {pool.verify_invariants()}")
    return pool


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       EPOCH LIQUIDITY POOL - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    pool = step_01_empty_pool()
    wait_for_enter()
    pool = step_02_deposits(pool)
    wait_for_enter()
    pool, layer_id = step_03_open_layer(pool)
    wait_for_enter()
    pool = step_04_claims(pool, layer_id)
    wait_for_enter()
    pool = step_05_close_with_profit(pool, layer_id)
    wait_for_enter()
    pool = step_06_release(pool, layer_id)
    wait_for_enter()
    pool = step_07_materialize(pool)
    wait_for_enter()
    pool = step_08_withdraw(pool)
    wait_for_enter()
    pool = step_09_forfeit(pool)
    return pool


if __name__ == "__main__":
    main()
