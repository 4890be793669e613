"""
views.py - Read-only projections of ledger state

Every function here takes a PoolView and returns a value. None of them mutate
state, and none of them require the LP to have materialized: virtual
positions are projected through the split chain on the fly.

The LiquidityLedger implements PoolView and exposes these functions as
methods. Tests use FakePoolView to exercise them without a ledger.
"""

from __future__ import annotations
from typing import Dict, Mapping, Optional, Protocol, runtime_checkable

from .core import (
    NO_EPOCH, PRECISION,
    Epoch, LiquidityProvider, TradeLayer,
    InconsistentSplitState,
)
from .materialization import compute_materialization


@runtime_checkable
class PoolView(Protocol):
    """
    Read-only interface to ledger state.

    Functions accepting a PoolView declare their read-only intent. The
    LiquidityLedger implements this protocol but also provides mutating
    operations.
    """

    @property
    def total_free_assets(self) -> int:
        """Cached sum of free assets over all epochs."""
        ...

    def get_epoch(self, epoch_id: int) -> Epoch:
        """Return the epoch; raises EpochNotFound for unknown ids."""
        ...

    def epoch_arena(self) -> Mapping[int, Epoch]:
        """Return a read-only mapping of every epoch by id."""
        ...

    def get_provider(self, address: str) -> Optional[LiquidityProvider]:
        """Return the LP record, or None if the address never deposited."""
        ...

    def share_balance(self, address: str, epoch_id: int) -> int:
        """Return the LP's concrete scaled shares in an epoch."""
        ...

    def epoch_balances(self, address: str) -> Dict[int, int]:
        """Return the LP's concrete non-zero balances by epoch."""
        ...

    def progress_pointer(self, address: str) -> Optional[int]:
        """Return the LP's last materialized epoch, or None for unknown LPs."""
        ...

    def get_trade_layer(self, layer_id: int) -> TradeLayer:
        """Return the layer; raises LayerNotFound for unknown ids."""
        ...


# ============================================================================
# LP BALANCES
# ============================================================================

def lp_total_balance(view: PoolView, address: str) -> int:
    """Token units the LP owns across all epochs (total_shares // PRECISION)."""
    provider = view.get_provider(address)
    return provider.total_shares // PRECISION if provider else 0


def lp_available_balance(view: PoolView, address: str) -> int:
    """Total balance minus utilization, floored at zero."""
    provider = view.get_provider(address)
    return provider.available_balance if provider else 0


def total_free_assets(view: PoolView) -> int:
    return view.total_free_assets


# ============================================================================
# VIRTUAL PROJECTIONS
# ============================================================================

def hops_between(epochs: Mapping[int, Epoch], start_epoch_id: int, target_epoch_id: int) -> Optional[int]:
    """
    Number of split links from start to target, or None if target is not ahead on the chain.
    """
    hops = 0
    current = start_epoch_id
    while current != target_epoch_id:
        epoch = epochs.get(current)
        if epoch is None or not epoch.split or epoch.rollover_epoch_id == NO_EPOCH:
            return None
        current = epoch.rollover_epoch_id
        hops += 1
    return hops


def virtual_share_balances(view: PoolView, address: str) -> Dict[int, int]:
    """
    The LP's balances as they would be after materializing the whole chain.

    The progress pointer is not moved and no hop cap applies.
    """
    pointer = view.progress_pointer(address)
    if pointer is None:
        return {}
    plan = compute_materialization(
        view.epoch_arena(), view.epoch_balances(address), pointer, max_hops=None
    )
    return {e: s for e, s in plan.balances.items() if s}


def is_materialized_past(view: PoolView, address: str, epoch_id: int) -> bool:
    """True when the LP's balance in epoch_id is concrete post-split (or the epoch never split)."""
    epoch = view.get_epoch(epoch_id)
    if not epoch.split:
        return True
    pointer = view.progress_pointer(address)
    return pointer is not None and pointer > epoch_id


def pre_split_share_balance(view: PoolView, address: str, epoch_id: int) -> int:
    """
    The LP's balance in epoch_id before that epoch's own split is applied.

    If the LP's pointer sits before epoch_id, earlier splits are projected
    forward virtually. If the pointer is already past epoch_id, the stored
    balance is post-split and is returned as is.
    """
    pointer = view.progress_pointer(address)
    if pointer is None:
        return 0
    if pointer >= epoch_id:
        return view.share_balance(address, epoch_id)
    epochs = view.epoch_arena()
    hops = hops_between(epochs, pointer, epoch_id)
    if hops is None:
        return view.share_balance(address, epoch_id)
    plan = compute_materialization(epochs, view.epoch_balances(address), pointer, max_hops=hops)
    return plan.balances.get(epoch_id, 0)


def effective_locked_shares(view: PoolView, address: str, epoch_id: int) -> int:
    """
    The LP's share of an epoch's locked portion, without materializing.

    For a split epoch the pre-split balance s is projected onto the locked
    side: s * total_shares // pre_split_total_shares. For an epoch the LP has
    already materialized past, the stored balance is that projection.

    Raises:
        InconsistentSplitState: If the epoch is split with zero pre-split shares.
    """
    epoch = view.get_epoch(epoch_id)
    pointer = view.progress_pointer(address)
    if pointer is None:
        return 0
    if epoch.split and pointer > epoch_id:
        return view.share_balance(address, epoch_id)

    shares = pre_split_share_balance(view, address, epoch_id)
    if not epoch.split:
        return shares
    if epoch.pre_split_total_shares == 0:
        raise InconsistentSplitState(
            f"epoch {epoch_id} is split but has zero pre-split shares"
        )
    return shares * epoch.total_shares // epoch.pre_split_total_shares


def withdrawable_amount(view: PoolView, address: str, epoch_id: int) -> int:
    """Token units the LP's concrete shares in epoch_id are worth in free assets."""
    epoch = view.get_epoch(epoch_id)
    shares = view.share_balance(address, epoch_id)
    if shares == 0 or epoch.total_shares == 0:
        return 0
    return shares * epoch.free_assets // epoch.total_shares
