"""
shares.py - Per-LP share balances and aggregates

ShareLedger tracks, for every liquidity provider:
    - scaled share balances keyed by epoch id
    - the LiquidityProvider aggregate (total shares, utilization)
    - the materialization progress pointer (last_materialized_epoch)

Conservation: for every LP, the sum of its per-epoch balances equals its
total_shares. Every mutation here preserves that, except mint and burn which
change both sides by the same amount.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional

from .core import (
    PRECISION, LiquidityProvider,
    InsufficientAvailability, InsufficientEpochShares, UnknownProvider,
)
from .journal import UndoJournal
from .materialization import MaterializationPlan


class ShareLedger:
    """
    Scaled share balances and per-LP aggregates.

    Attributes:
        providers: address -> LiquidityProvider
        balances: address -> {epoch_id -> scaled shares}
        last_materialized_epoch: address -> epoch id the LP has walked up to
        journal: Undo journal shared with the other stores of one ledger.
    """

    def __init__(self, journal: Optional[UndoJournal] = None):
        self.providers: Dict[str, LiquidityProvider] = {}
        self.balances: Dict[str, Dict[int, int]] = {}
        self.last_materialized_epoch: Dict[str, int] = {}
        self.journal = journal if journal is not None else UndoJournal()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_provider(self, address: str) -> Optional[LiquidityProvider]:
        return self.providers.get(address)

    def require_provider(self, address: str) -> LiquidityProvider:
        provider = self.providers.get(address)
        if provider is None:
            raise UnknownProvider(f"{address} is not a liquidity provider")
        return provider

    def share_balance(self, address: str, epoch_id: int) -> int:
        return self.balances.get(address, {}).get(epoch_id, 0)

    def epoch_balances(self, address: str) -> Dict[int, int]:
        """Copy of the LP's non-zero balances by epoch."""
        return {e: s for e, s in self.balances.get(address, {}).items() if s}

    def progress_pointer(self, address: str) -> Optional[int]:
        return self.last_materialized_epoch.get(address)

    def available_balance(self, address: str) -> int:
        provider = self.providers.get(address)
        return provider.available_balance if provider else 0

    def list_providers(self) -> List[str]:
        return sorted(self.providers)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def mint(self, address: str, epoch_id: int, shares: int) -> LiquidityProvider:
        """
        Credit shares to an LP in an epoch, registering the LP on first deposit.

        The first deposit pins the LP's progress pointer to epoch_id.
        """
        provider = self.providers.get(address)
        if provider is None:
            provider = LiquidityProvider(address=address)
            self._record_book(address)
            self.balances[address] = {}
            self.journal.record_item(self.last_materialized_epoch, address)
            self.last_materialized_epoch[address] = epoch_id
        provider = replace(provider, total_shares=provider.total_shares + shares)
        self._put(provider)
        self._add(address, epoch_id, shares)
        return provider

    def burn(self, address: str, epoch_id: int, shares: int) -> LiquidityProvider:
        """
        Remove shares the LP concretely holds in an epoch.

        Raises:
            InsufficientEpochShares: If the epoch balance is short.
        """
        provider = self.require_provider(address)
        held = self.share_balance(address, epoch_id)
        if held < shares:
            raise InsufficientEpochShares(
                f"{address} holds {held} shares in epoch {epoch_id}, needs {shares}"
            )
        provider = replace(provider, total_shares=provider.total_shares - shares)
        self._put(provider)
        self._add(address, epoch_id, -shares)
        return provider

    def add_utilization(self, address: str, amount: int) -> LiquidityProvider:
        """
        Commit amount of the LP's balance to a trade layer.

        Raises:
            InsufficientAvailability: If the LP's available balance < amount.
        """
        provider = self.require_provider(address)
        if amount > provider.available_balance:
            raise InsufficientAvailability(
                f"{address} available {provider.available_balance} < {amount}"
            )
        provider = replace(
            provider,
            accumulated_utilization=provider.accumulated_utilization + amount,
        )
        self._put(provider)
        return provider

    def release_utilization(self, address: str, amount: int) -> LiquidityProvider:
        """Unwind utilization, floored at zero."""
        provider = self.require_provider(address)
        provider = replace(
            provider,
            accumulated_utilization=max(0, provider.accumulated_utilization - amount),
        )
        self._put(provider)
        return provider

    def apply_materialization(self, address: str, plan: MaterializationPlan) -> None:
        """
        Rewrite balances along a materialization plan and advance the pointer.

        Each step moves rollover shares between two epochs of the same LP, so
        total_shares is unchanged.
        """
        for step in plan.steps:
            self._set_balance(address, step.epoch_id, step.locked_shares)
            self._add(address, step.rollover_epoch_id, step.rollover_shares)
        self.journal.record_item(self.last_materialized_epoch, address)
        self.last_materialized_epoch[address] = plan.end_epoch_id

    def clone(self, journal: Optional[UndoJournal] = None) -> ShareLedger:
        cloned = ShareLedger(journal)
        cloned.providers = dict(self.providers)
        cloned.balances = {a: dict(b) for a, b in self.balances.items()}
        cloned.last_materialized_epoch = dict(self.last_materialized_epoch)
        return cloned

    def _put(self, provider: LiquidityProvider) -> None:
        self.journal.record_item(self.providers, provider.address)
        self.providers[provider.address] = provider

    def _record_book(self, address: str) -> None:
        self.journal.record_item(self.balances, address)

    def _set_balance(self, address: str, epoch_id: int, shares: int) -> None:
        if address not in self.balances:
            self._record_book(address)
            self.balances[address] = {}
        book = self.balances[address]
        self.journal.record_item(book, epoch_id)
        book[epoch_id] = shares

    def _add(self, address: str, epoch_id: int, delta: int) -> None:
        self._set_balance(address, epoch_id, self.share_balance(address, epoch_id) + delta)


def shares_for(amount: int) -> int:
    """Scaled share count for a token amount."""
    return amount * PRECISION
