"""
layers.py - Trade layers: locked backing, LP claims, and settlement

A trade layer is a block of liquidity locked out of the current epoch to back
one trading exposure. Its lifecycle:

    create   lock required_backing from the current epoch (forces a split)
    claim    each LP takes a slice proportional to its locked shares
    activate OPEN -> ACTIVE once at least one LP has claimed
    close    settle PnL back into the funding epoch
    release  each LP unwinds the utilization its claim committed

Key formulas:
    allocation = effective_locked_shares * required_backing // funding.total_shares
                 capped at remaining_backing

    close, LPs gain:  free += locked_amount + profit
    close, LPs lose:  free += locked_amount - loss   (0 if loss >= locked_amount)
                      payout = min(loss, locked_amount)

TradeLayerBook stores layers and allocations. The compute_* functions are pure.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .core import (
    LayerAllocation, LayerStatus, TradeLayer,
    AllocationAlreadyClaimed, BackingExhausted, InvalidLayerStatus,
    LayerNotFound, NoAllocation, NoAllocationsClaimed,
)
from .journal import UndoJournal


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CloseSettlement:
    """
    How closing a layer moves assets.

    Attributes:
        locked_amount: Principal taken out of the funding epoch's locked assets.
        returned_to_free: Credited to the funding epoch's free assets.
        payout: Paid out of the pool to the trader side.
        forfeited: True when a loss consumed the whole principal.
    """
    locked_amount: int
    returned_to_free: int
    payout: int
    forfeited: bool


def compute_claim_allocation(
    effective_shares: int,
    required_backing: int,
    funding_total_shares: int,
    remaining_backing: int,
) -> int:
    """
    Proportional slice of a layer's backing for one LP. Pure function.

    Returns 0 when the funding epoch has no shares. Never exceeds
    remaining_backing.
    """
    if funding_total_shares <= 0 or effective_shares <= 0:
        return 0
    allocation = effective_shares * required_backing // funding_total_shares
    return min(allocation, remaining_backing)


def compute_close_settlement(
    required_backing: int,
    epoch_locked_assets: int,
    profit_loss_amount: int,
    lp_gains: bool,
) -> CloseSettlement:
    """
    Settle a layer's PnL against its locked principal. Pure function.

    Args:
        required_backing: Backing the layer locked.
        epoch_locked_assets: Locked assets the funding epoch still holds.
        profit_loss_amount: PnL magnitude.
        lp_gains: True when LPs earn profit_loss_amount, False when they pay it.

    Example (locked 40):
        lp_gains=True,  pnl=10 -> returned 50, payout 0
        lp_gains=False, pnl=15 -> returned 25, payout 15
        lp_gains=False, pnl=55 -> returned 0,  payout 40, forfeited
    """
    locked_amount = min(required_backing, epoch_locked_assets)
    if lp_gains:
        return CloseSettlement(
            locked_amount=locked_amount,
            returned_to_free=locked_amount + profit_loss_amount,
            payout=0,
            forfeited=False,
        )
    if profit_loss_amount >= locked_amount:
        return CloseSettlement(
            locked_amount=locked_amount,
            returned_to_free=0,
            payout=locked_amount,
            forfeited=True,
        )
    return CloseSettlement(
        locked_amount=locked_amount,
        returned_to_free=locked_amount - profit_loss_amount,
        payout=profit_loss_amount,
        forfeited=False,
    )


# ============================================================================
# LAYER BOOK
# ============================================================================

class TradeLayerBook:
    """
    Trade layers and per-(layer, LP) allocations.

    Attributes:
        layers: layer_id -> TradeLayer
        allocations: (layer_id, address) -> LayerAllocation
        journal: Undo journal shared with the other stores of one ledger.
    """

    def __init__(self, journal: Optional[UndoJournal] = None):
        self.layers: Dict[int, TradeLayer] = {}
        self.allocations: Dict[Tuple[int, str], LayerAllocation] = {}
        self._next_layer_id: int = 1
        self.journal = journal if journal is not None else UndoJournal()

    def get(self, layer_id: int) -> TradeLayer:
        try:
            return self.layers[layer_id]
        except (KeyError, TypeError):
            raise LayerNotFound(f"trade layer {layer_id!r} does not exist") from None

    def get_allocation(self, layer_id: int, address: str) -> LayerAllocation:
        return self.allocations.get((layer_id, address), LayerAllocation())

    def allocations_for(self, layer_id: int) -> Dict[str, LayerAllocation]:
        return {a: alloc for (l, a), alloc in self.allocations.items() if l == layer_id}

    def list_layers(self) -> List[TradeLayer]:
        return [self.layers[i] for i in sorted(self.layers)]

    def open_layer(self, required_backing: int, funding_epoch_id: int) -> TradeLayer:
        layer = TradeLayer(
            layer_id=self._next_layer_id,
            required_backing=required_backing,
            funding_epoch_id=funding_epoch_id,
            status=LayerStatus.OPEN,
            total_allocated=0,
            remaining_backing=required_backing,
        )
        self.journal.record_attr(self, '_next_layer_id')
        self._next_layer_id += 1
        self._put(layer)
        return layer

    def require_status(self, layer_id: int, *allowed: LayerStatus) -> TradeLayer:
        layer = self.get(layer_id)
        if layer.status not in allowed:
            names = "/".join(s.name for s in allowed)
            raise InvalidLayerStatus(
                f"trade layer {layer_id} is {layer.status.name}, expected {names}"
            )
        return layer

    def check_claimable(self, layer_id: int, address: str) -> TradeLayer:
        """Validate an LP may claim this layer; returns the layer."""
        layer = self.require_status(layer_id, LayerStatus.OPEN)
        if self.get_allocation(layer_id, address).claimed:
            raise AllocationAlreadyClaimed(f"{address} already claimed layer {layer_id}")
        if layer.remaining_backing <= 0:
            raise BackingExhausted(f"trade layer {layer_id} has no remaining backing")
        return layer

    def record_claim(self, layer_id: int, address: str, amount: int) -> TradeLayer:
        layer = self.get(layer_id)
        layer = replace(
            layer,
            total_allocated=layer.total_allocated + amount,
            remaining_backing=layer.remaining_backing - amount,
        )
        self._put(layer)
        self._put_allocation(layer_id, address, LayerAllocation(amount=amount, claimed=True))
        return layer

    def activate(self, layer_id: int) -> TradeLayer:
        layer = self.require_status(layer_id, LayerStatus.OPEN)
        if layer.total_allocated == 0:
            raise NoAllocationsClaimed(f"trade layer {layer_id} has no allocations")
        layer = replace(layer, status=LayerStatus.ACTIVE)
        self._put(layer)
        return layer

    def close(self, layer_id: int, profit_loss_amount: int, lp_gains: bool) -> TradeLayer:
        layer = self.require_status(layer_id, LayerStatus.OPEN, LayerStatus.ACTIVE)
        layer = replace(
            layer,
            status=LayerStatus.CLOSED,
            profit_loss_amount=profit_loss_amount,
            lp_gains=lp_gains,
        )
        self._put(layer)
        return layer

    def release(self, layer_id: int, address: str) -> int:
        """
        Zero an LP's allocation on a closed layer.

        Returns:
            The amount that was allocated.

        Raises:
            NoAllocation: If the allocation is zero (never claimed or already released).
        """
        self.require_status(layer_id, LayerStatus.CLOSED)
        allocation = self.get_allocation(layer_id, address)
        if allocation.amount == 0:
            raise NoAllocation(f"allocation already 0 for {address} on layer {layer_id}")
        self._put_allocation(layer_id, address, LayerAllocation(amount=0, claimed=False))
        return allocation.amount

    def clone(self, journal: Optional[UndoJournal] = None) -> TradeLayerBook:
        cloned = TradeLayerBook(journal)
        cloned.layers = dict(self.layers)
        cloned.allocations = dict(self.allocations)
        cloned._next_layer_id = self._next_layer_id
        return cloned

    def _put(self, layer: TradeLayer) -> None:
        self.journal.record_item(self.layers, layer.layer_id)
        self.layers[layer.layer_id] = layer

    def _put_allocation(self, layer_id: int, address: str, allocation: LayerAllocation) -> None:
        self.journal.record_item(self.allocations, (layer_id, address))
        self.allocations[(layer_id, address)] = allocation
