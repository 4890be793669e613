"""
epochs.py - Epoch arena and the cached asset aggregates

EpochStore owns every Epoch record, the current-epoch pointer, and cached
sums of free (unlocked) and locked assets across all epochs. Epochs are kept
in an arena indexed by monotonically increasing integer id and are never
removed, so the split chain (epoch -> rollover_epoch_id -> ...) can always
be walked for audit or virtual projection.

Records are frozen; every change replaces the record with dataclasses.replace
and records the previous one in the undo journal. Each mutation touches a
constant number of entries. The store does no authorization and emits no
events. The LiquidityLedger service is the only caller.
"""

from __future__ import annotations
from dataclasses import replace
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from .core import (
    PRECISION, Epoch,
    EpochFrozen, EpochNotFound, InsufficientEpochAssets,
)
from .journal import UndoJournal
from .splits import EpochSplit, compute_epoch_split


class EpochStore:
    """
    Arena of epochs plus the current-epoch pointer.

    Attributes:
        epochs: epoch_id -> Epoch
        current_epoch_id: Epoch receiving deposits and funding new layers.
        total_free_assets: Cached sum of free_assets over all epochs.
        locked_assets_total: Cached sum of locked_assets over all epochs.
        journal: Undo journal shared with the other stores of one ledger.
    """

    def __init__(self, journal: Optional[UndoJournal] = None):
        self.epochs: Dict[int, Epoch] = {}
        self.current_epoch_id: int = 0
        self.total_free_assets: int = 0
        self.locked_assets_total: int = 0
        self.journal = journal if journal is not None else UndoJournal()
        self._next_epoch_id: int = 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, epoch_id: int) -> Epoch:
        """Return the epoch, raising EpochNotFound for unknown ids."""
        try:
            return self.epochs[epoch_id]
        except (KeyError, TypeError):
            raise EpochNotFound(f"epoch {epoch_id!r} does not exist") from None

    def exists(self, epoch_id: int) -> bool:
        return epoch_id in self.epochs

    @property
    def current(self) -> Epoch:
        return self.epochs[self.current_epoch_id]

    def arena(self) -> Mapping[int, Epoch]:
        """Read-only live view of the arena (no copy)."""
        return MappingProxyType(self.epochs)

    def list_epochs(self) -> List[Epoch]:
        return [self.epochs[i] for i in sorted(self.epochs)]

    def total_locked_assets(self) -> int:
        return self.locked_assets_total

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_epoch(self) -> Epoch:
        """Open an empty epoch and make it current."""
        epoch = Epoch(epoch_id=self._allocate_id())
        self._put(epoch)
        self._set('current_epoch_id', epoch.epoch_id)
        return epoch

    def credit_deposit(self, amount: int) -> Epoch:
        """Add amount (and amount*PRECISION shares) to the current epoch."""
        epoch = replace(
            self.current,
            free_assets=self.current.free_assets + amount,
            total_shares=self.current.total_shares + amount * PRECISION,
        )
        self._put(epoch)
        self._set('total_free_assets', self.total_free_assets + amount)
        return epoch

    def debit_withdrawal(self, epoch_id: int, amount: int) -> Epoch:
        """
        Remove amount of free assets and amount*PRECISION shares from an epoch.

        The caller has already checked the epoch's free assets. Share totals and
        the global aggregate are floored at zero.
        """
        epoch = self.get(epoch_id)
        epoch = replace(
            epoch,
            free_assets=epoch.free_assets - amount,
            total_shares=max(0, epoch.total_shares - amount * PRECISION),
        )
        self._put(epoch)
        self._set('total_free_assets', max(0, self.total_free_assets - amount))
        return epoch

    def lock_from_current(self, amount: int) -> Epoch:
        """
        Move amount from free to locked in the current epoch and freeze it.

        Raises:
            EpochFrozen: If the current epoch is already frozen.
            InsufficientEpochAssets: If the current epoch's free assets < amount.
        """
        epoch = self.current
        if epoch.frozen:
            raise EpochFrozen(f"current epoch {epoch.epoch_id} is already frozen")
        if epoch.free_assets < amount:
            raise InsufficientEpochAssets(
                f"epoch {epoch.epoch_id} free assets {epoch.free_assets} < {amount}"
            )
        epoch = replace(
            epoch,
            free_assets=epoch.free_assets - amount,
            locked_assets=epoch.locked_assets + amount,
            frozen=True,
        )
        self._put(epoch)
        self._set('total_free_assets', max(0, self.total_free_assets - amount))
        self._set('locked_assets_total', self.locked_assets_total + amount)
        return epoch

    def split_epoch(self, epoch_id: int) -> EpochSplit:
        """
        Split a frozen epoch and make its rollover epoch current.

        Only epoch metadata changes; see splits.compute_epoch_split.
        """
        result = compute_epoch_split(self.get(epoch_id), self._next_epoch_id)
        self._allocate_id()
        self._put(result.split_epoch)
        self._put(result.rollover_epoch)
        self._set('current_epoch_id', result.rollover_epoch.epoch_id)
        return result

    def release_locked(self, epoch_id: int, amount: int) -> int:
        """
        Take up to amount out of an epoch's locked assets.

        Returns:
            The amount actually released (floored at what is locked).
        """
        epoch = self.get(epoch_id)
        released = min(amount, epoch.locked_assets)
        self._put(replace(epoch, locked_assets=epoch.locked_assets - released))
        self._set('locked_assets_total', self.locked_assets_total - released)
        return released

    def credit_free(self, epoch_id: int, amount: int) -> Epoch:
        """Return settled assets to an epoch's free balance and the global aggregate."""
        epoch = self.get(epoch_id)
        epoch = replace(epoch, free_assets=epoch.free_assets + amount)
        self._put(epoch)
        self._set('total_free_assets', self.total_free_assets + amount)
        return epoch

    def clone(self, journal: Optional[UndoJournal] = None) -> EpochStore:
        """Independent copy. Epoch records are frozen, so a shallow arena copy suffices."""
        cloned = EpochStore(journal)
        cloned.epochs = dict(self.epochs)
        cloned.current_epoch_id = self.current_epoch_id
        cloned.total_free_assets = self.total_free_assets
        cloned.locked_assets_total = self.locked_assets_total
        cloned._next_epoch_id = self._next_epoch_id
        return cloned

    def _put(self, epoch: Epoch) -> None:
        self.journal.record_item(self.epochs, epoch.epoch_id)
        self.epochs[epoch.epoch_id] = epoch

    def _set(self, name: str, value: int) -> None:
        self.journal.record_attr(self, name)
        setattr(self, name, value)

    def _allocate_id(self) -> int:
        epoch_id = self._next_epoch_id
        self._set('_next_epoch_id', epoch_id + 1)
        return epoch_id
