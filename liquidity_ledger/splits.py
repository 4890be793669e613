"""
splits.py - Lazy Epoch Splits

=== SPLIT MODEL ===

When liquidity is locked out of the current epoch, the epoch is frozen and
then split into two parts:

    original epoch   keeps the locked assets and the locked share count
    rollover epoch   a new epoch holding the unlocked remainder

    total                = free_assets + locked_assets
    locked_share_count   = total_shares * locked_assets // total
    rollover_share_count = total_shares - locked_share_count

The rollover side takes the residual, so split rounding never costs it a
unit. Only epoch metadata changes. No LP balance is touched: LP positions
stay recorded against the original epoch until they materialize.

=== PURE FUNCTION ===

    compute_epoch_split(epoch, new_epoch_id) -> EpochSplit

The EpochStore applies the result.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from .core import (
    Epoch,
    EpochAlreadySplit, EpochNotFrozen, InconsistentSplitState,
)


@dataclass(frozen=True, slots=True)
class EpochSplit:
    """
    Result of splitting one epoch.

    Attributes:
        split_epoch: The original epoch with split metadata recorded.
        rollover_epoch: The freshly created epoch holding the unlocked remainder.
        locked_share_count: Shares left on the original epoch.
        rollover_share_count: Shares moved to the rollover epoch.
    """
    split_epoch: Epoch
    rollover_epoch: Epoch
    locked_share_count: int
    rollover_share_count: int

    @property
    def original_total_shares(self) -> int:
        return self.split_epoch.pre_split_total_shares


def compute_epoch_split(epoch: Epoch, new_epoch_id: int) -> EpochSplit:
    """
    Split a frozen epoch into its locked remainder and a rollover epoch. Pure function.

    Args:
        epoch: The frozen, not yet split epoch.
        new_epoch_id: Id to assign to the rollover epoch.

    Returns:
        EpochSplit with both updated records.

    Raises:
        EpochNotFrozen: If the epoch was not frozen first.
        EpochAlreadySplit: If the epoch has already been split.
        InconsistentSplitState: If the epoch holds no assets at all.

    Example (100 deposited, 40 locked):
        total_shares = 100e18 -> locked_share_count 40e18, rollover 60e18
    """
    if not epoch.frozen:
        raise EpochNotFrozen(f"epoch {epoch.epoch_id} is not frozen")
    if epoch.split:
        raise EpochAlreadySplit(f"epoch {epoch.epoch_id} already split")
    total = epoch.total_assets
    if total == 0:
        raise InconsistentSplitState(f"epoch {epoch.epoch_id} has no assets to split")

    locked_share_count = epoch.total_shares * epoch.locked_assets // total
    rollover_share_count = epoch.total_shares - locked_share_count

    rollover = Epoch(
        epoch_id=new_epoch_id,
        total_shares=rollover_share_count,
        free_assets=epoch.free_assets,
    )
    split_epoch = replace(
        epoch,
        pre_split_total_shares=epoch.total_shares,
        total_shares=locked_share_count,
        free_assets=0,
        split=True,
        rollover_epoch_id=new_epoch_id,
    )
    return EpochSplit(
        split_epoch=split_epoch,
        rollover_epoch=rollover,
        locked_share_count=locked_share_count,
        rollover_share_count=rollover_share_count,
    )
