"""
ledger.py - Stateful Epoch Liquidity Ledger

The LiquidityLedger class is the central state manager of the liquidity pool.
It is the only object that mutates epochs, LP shares and trade layers, so the
atomicity and ordering rules are enforced in one place.

Key responsibilities:
    - Implements the PoolView protocol for read-only access by view functions
    - Runs every public operation atomically (all state changes or none)
    - Orders each operation as validate -> mutate ledger state -> external transfer
    - Rejects reentrant calls made while an operation is in progress
    - Records every committed operation in the event log
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .asset import AssetLedger
from .core import (
    # Records
    Epoch, LayerAllocation, LayerStatus, LedgerEvent, EventType,
    LiquidityProvider, TradeLayer,
    # Constants
    DEFAULT_MIN_AMOUNT, MAX_MATERIALIZE_HOPS, POOL_WALLET, PRECISION,
    # Exceptions
    InsufficientAvailability, InsufficientEpochAssets, InsufficientPoolFunding,
    MaterializationOutOfSequence, ReentrancyError, UnmaterializedEpoch,
    ZeroAllocation,
    # Validation
    require_address, require_amount,
)
from .epochs import EpochStore
from .journal import UndoJournal
from .layers import (
    CloseSettlement, TradeLayerBook,
    compute_claim_allocation, compute_close_settlement,
)
from .materialization import MaterializationPlan, compute_materialization
from .shares import ShareLedger, shares_for
from . import views


class LiquidityLedger:
    """
    Epoch/share/trade-layer ledger over an external asset.

    Implements the PoolView protocol, so the ledger can be passed to any
    function in views.py.

    Design Principles:
        - All or nothing: each public operation journals the entries it
          overwrites and restores them if anything raises, including the
          external transfer.
        - Check-effects-interact: the asset is called only after the ledger's
          own bookkeeping is complete.
        - Serial: one operation at a time. A call made while another
          operation is running raises ReentrancyError.

    Thread Safety:
        Not thread-safe. Share one instance per serial caller.

    Example:
        token = InMemoryAsset("USDC")
        pool = LiquidityLedger(token, verbose=False)
        token.mint("alice", 100)
        token.approve("alice", pool.pool_wallet, 100)
        pool.deposit("alice", 100)
        layer_id = pool.create_trade_layer(40)
        pool.claim_layer_allocation("alice", layer_id)
    """

    def __init__(
        self,
        asset: AssetLedger,
        name: str = "pool",
        pool_wallet: str = POOL_WALLET,
        min_amount: int = DEFAULT_MIN_AMOUNT,
        max_materialize_hops: int = MAX_MATERIALIZE_HOPS,
        settlement_wallet: Optional[str] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger with its first epoch open.

        Args:
            asset: External value-transfer ledger.
            name: Ledger identifier used in traces.
            pool_wallet: The ledger's own account on the asset.
            min_amount: Smallest accepted deposit, in token units.
            max_materialize_hops: Split links walked per materialize call.
            settlement_wallet: Default recipient of loss payouts on close.
            verbose: Print a trace line per committed or rejected operation.
        """
        self.asset = asset
        self.name = name
        self.pool_wallet = require_address(pool_wallet, "pool_wallet")
        self.min_amount = require_amount(min_amount, "min_amount", 1)
        self.max_materialize_hops = require_amount(max_materialize_hops, "max_materialize_hops", 1)
        self.settlement_wallet = settlement_wallet
        self.verbose = verbose

        self.journal = UndoJournal()
        self.epochs = EpochStore(self.journal)
        self.shares = ShareLedger(self.journal)
        self.layers = TradeLayerBook(self.journal)
        self.event_log: List[LedgerEvent] = []
        self._pending_events: List[Tuple[EventType, Dict[str, Any]]] = []
        self._in_operation = False

        first = self.epochs.create_epoch()
        self._emit(EventType.EPOCH_CREATED, epoch_id=first.epoch_id)
        self._commit_events()

    # ========================================================================
    # PoolView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def total_free_assets(self) -> int:
        """Cached sum of free assets over all epochs."""
        return self.epochs.total_free_assets

    @property
    def current_epoch_id(self) -> int:
        return self.epochs.current_epoch_id

    def get_epoch(self, epoch_id: int) -> Epoch:
        return self.epochs.get(epoch_id)

    def epoch_arena(self) -> Mapping[int, Epoch]:
        return self.epochs.arena()

    def get_provider(self, address: str) -> Optional[LiquidityProvider]:
        return self.shares.get_provider(address)

    def share_balance(self, address: str, epoch_id: int) -> int:
        return self.shares.share_balance(address, epoch_id)

    def epoch_balances(self, address: str) -> Dict[int, int]:
        return self.shares.epoch_balances(address)

    def progress_pointer(self, address: str) -> Optional[int]:
        return self.shares.progress_pointer(address)

    def get_trade_layer(self, layer_id: int) -> TradeLayer:
        return self.layers.get(layer_id)

    # ========================================================================
    # READ API
    # ========================================================================

    def get_allocation(self, layer_id: int, address: str) -> LayerAllocation:
        self.layers.get(layer_id)
        return self.layers.get_allocation(layer_id, address)

    def list_epochs(self) -> List[Epoch]:
        return self.epochs.list_epochs()

    def list_trade_layers(self) -> List[TradeLayer]:
        return self.layers.list_layers()

    def list_providers(self) -> List[str]:
        return self.shares.list_providers()

    def lp_total_balance(self, address: str) -> int:
        return views.lp_total_balance(self, address)

    def lp_available_balance(self, address: str) -> int:
        return views.lp_available_balance(self, address)

    def effective_locked_shares(self, address: str, epoch_id: int) -> int:
        return views.effective_locked_shares(self, address, epoch_id)

    def withdrawable_amount(self, address: str, epoch_id: int) -> int:
        return views.withdrawable_amount(self, address, epoch_id)

    def virtual_share_balances(self, address: str) -> Dict[int, int]:
        return views.virtual_share_balances(self, address)

    # ========================================================================
    # LIQUIDITY PROVIDER OPERATIONS (Mutating)
    # ========================================================================

    def deposit(self, lp: str, amount: int) -> int:
        """
        Deposit amount into the current epoch.

        Mints amount * PRECISION shares to lp in the current epoch, then pulls
        amount from lp on the asset (lp must have approved pool_wallet).

        Returns:
            Scaled shares minted.

        Raises:
            InvalidAddress, InvalidAmount: On bad input or amount < min_amount.
            InsufficientAllowance, InsufficientBalance: If the pull fails.
        """
        with self._operation("deposit"):
            require_address(lp, "lp")
            require_amount(amount, "deposit amount", self.min_amount)

            minted = shares_for(amount)
            epoch = self.epochs.credit_deposit(amount)
            self.shares.mint(lp, epoch.epoch_id, minted)
            self._emit(EventType.DEPOSIT, lp=lp, epoch_id=epoch.epoch_id,
                       amount=amount, shares=minted)

            self.asset.transfer_from(self.pool_wallet, lp, self.pool_wallet, amount)
        return minted

    def withdraw_from_epoch(self, lp: str, epoch_id: int, amount: int) -> int:
        """
        Withdraw amount of free assets from one epoch the LP concretely holds.

        Only unlocked shares held in exactly this epoch can be burned; virtual
        rollover positions must be materialized first.

        Returns:
            Scaled shares burned.

        Raises:
            InsufficientAvailability: amount exceeds the LP's cross-epoch availability.
            InsufficientEpochAssets: the epoch's free assets < amount.
            UnmaterializedEpoch: the epoch split and the LP has not materialized past it.
            InsufficientEpochShares: the LP's balance in the epoch < amount * PRECISION.
        """
        with self._operation("withdraw"):
            require_address(lp, "lp")
            require_amount(amount, "withdraw amount", 1)
            epoch = self.epochs.get(epoch_id)
            provider = self.shares.require_provider(lp)

            if amount > provider.available_balance:
                raise InsufficientAvailability(
                    f"{lp} available {provider.available_balance} < {amount}"
                )
            if epoch.free_assets < amount:
                raise InsufficientEpochAssets(
                    f"epoch {epoch_id} free assets {epoch.free_assets} < {amount}"
                )
            if not views.is_materialized_past(self, lp, epoch_id):
                raise UnmaterializedEpoch(
                    f"{lp} must materialize past split epoch {epoch_id} before withdrawing"
                )

            burned = shares_for(amount)
            self.shares.burn(lp, epoch_id, burned)
            self.epochs.debit_withdrawal(epoch_id, amount)
            self._emit(EventType.WITHDRAW, lp=lp, epoch_id=epoch_id,
                       amount=amount, shares=burned)

            self.asset.transfer(self.pool_wallet, lp, amount)
        return burned

    def materialize_shares(self, lp: str, epoch_id: int) -> MaterializationPlan:
        """
        Convert the LP's virtual rollover shares into concrete balances.

        epoch_id must equal the LP's progress pointer. Walks at most
        max_materialize_hops split links and moves the pointer to where the
        walk stopped. Calling again with the new pointer and no new splits
        changes nothing.

        Raises:
            MaterializationOutOfSequence: epoch_id is not the LP's pointer.
            InconsistentSplitState: a split epoch carries zero pre-split shares.
        """
        with self._operation("materialize"):
            require_address(lp, "lp")
            pointer = self.shares.progress_pointer(lp)
            if pointer is None:
                raise MaterializationOutOfSequence(f"{lp} has no materialization pointer")
            if epoch_id != pointer:
                raise MaterializationOutOfSequence(
                    f"{lp} must materialize from epoch {pointer}, got {epoch_id}"
                )

            plan = compute_materialization(
                self.epochs.epochs,
                self.shares.balances.get(lp, {}),
                pointer,
                self.max_materialize_hops,
            )
            self.shares.apply_materialization(lp, plan)
            for step in plan.steps:
                self._emit(EventType.MATERIALIZED, lp=lp, from_epoch=step.epoch_id,
                           locked_shares=step.locked_shares,
                           rollover_shares=step.rollover_shares)
        return plan

    # ========================================================================
    # TRADE LAYER OPERATIONS (Mutating)
    # ========================================================================

    def create_trade_layer(self, required_backing: int) -> int:
        """
        Lock required_backing out of the current epoch and open a layer on it.

        The current epoch is frozen and split; its rollover becomes current.

        Returns:
            The new layer id.

        Raises:
            InsufficientEpochAssets: global or current-epoch free assets too low.
            EpochFrozen: the current epoch is already frozen.
        """
        with self._operation("create_trade_layer"):
            require_amount(required_backing, "required_backing", 1)
            if self.epochs.total_free_assets < required_backing:
                raise InsufficientEpochAssets(
                    f"free assets {self.epochs.total_free_assets} < {required_backing}"
                )
            funding_epoch_id = self._lock_from_current_epoch(required_backing)
            layer = self.layers.open_layer(required_backing, funding_epoch_id)
            self._emit(EventType.TRADE_LAYER_CREATED, layer_id=layer.layer_id,
                       required_backing=required_backing,
                       funding_epoch_id=funding_epoch_id)
        return layer.layer_id

    def claim_layer_allocation(self, lp: str, layer_id: int) -> int:
        """
        Claim the LP's proportional slice of an OPEN layer's backing.

        The slice is computed from the LP's effective locked shares in the
        funding epoch, projected virtually, so no materialization is needed.

        Returns:
            Token units allocated.

        Raises:
            InvalidLayerStatus, AllocationAlreadyClaimed, UnknownProvider,
            BackingExhausted, ZeroAllocation, InsufficientAvailability
        """
        with self._operation("claim_layer_allocation"):
            require_address(lp, "lp")
            layer = self.layers.check_claimable(layer_id, lp)
            self.shares.require_provider(lp)
            funding = self.epochs.get(layer.funding_epoch_id)

            effective = views.effective_locked_shares(self, lp, funding.epoch_id)
            allocation = compute_claim_allocation(
                effective, layer.required_backing,
                funding.total_shares, layer.remaining_backing,
            )
            if allocation == 0:
                raise ZeroAllocation(f"{lp} allocation on layer {layer_id} rounds to 0")

            self.shares.add_utilization(lp, allocation)
            self.layers.record_claim(layer_id, lp, allocation)
            self._emit(EventType.ALLOCATION_CLAIMED, lp=lp, layer_id=layer_id,
                       amount=allocation, effective_shares=effective)
        return allocation

    def activate_trade_layer(self, layer_id: int) -> TradeLayer:
        """Move a layer OPEN -> ACTIVE. Requires at least one claimed allocation."""
        with self._operation("activate_trade_layer"):
            layer = self.layers.activate(layer_id)
            self._emit(EventType.TRADE_LAYER_ACTIVATED, layer_id=layer_id)
        return layer

    def close_trade_layer(
        self,
        layer_id: int,
        profit_loss_amount: int,
        lp_gains: bool,
        recipient: Optional[str] = None,
    ) -> CloseSettlement:
        """
        Settle an OPEN or ACTIVE layer back into its funding epoch.

        lp_gains=True: LPs earn profit_loss_amount. The position engine must
        already have moved it into pool_wallet; the pool's asset balance must
        cover all free and locked assets plus the profit.

        lp_gains=False: LPs pay profit_loss_amount out of the locked principal
        to recipient (default: settlement_wallet). A loss at or above the
        principal forfeits all of it.

        LPs release their utilization separately with release_allocation.

        Raises:
            InvalidLayerStatus: layer not OPEN or ACTIVE.
            InsufficientPoolFunding: profit not pre-funded.
            InvalidAddress: a payout is due and no recipient is known.
        """
        with self._operation("close_trade_layer"):
            require_amount(profit_loss_amount, "profit_loss_amount")
            lp_gains = bool(lp_gains)
            layer = self.layers.require_status(layer_id, LayerStatus.OPEN, LayerStatus.ACTIVE)
            funding = self.epochs.get(layer.funding_epoch_id)

            settlement = compute_close_settlement(
                layer.required_backing, funding.locked_assets,
                profit_loss_amount, lp_gains,
            )
            if settlement.payout:
                recipient = require_address(recipient or self.settlement_wallet, "recipient")
            if lp_gains:
                required = (self.epochs.total_free_assets
                            + self.epochs.total_locked_assets()
                            + profit_loss_amount)
                held = self.asset.balance_of(self.pool_wallet)
                if held < required:
                    raise InsufficientPoolFunding(
                        f"{self.pool_wallet} holds {held}, needs {required} to book profit"
                    )

            self.epochs.release_locked(funding.epoch_id, settlement.locked_amount)
            if settlement.returned_to_free:
                self.epochs.credit_free(funding.epoch_id, settlement.returned_to_free)
            self.layers.close(layer_id, profit_loss_amount, lp_gains)
            self._emit(EventType.TRADE_LAYER_CLOSED, layer_id=layer_id,
                       profit_loss_amount=profit_loss_amount, lp_gains=lp_gains,
                       returned_to_free=settlement.returned_to_free,
                       payout=settlement.payout)

            if settlement.payout:
                self.asset.transfer(self.pool_wallet, recipient, settlement.payout)
        return settlement

    def release_allocation(self, lp: str, layer_id: int) -> int:
        """
        Unwind the LP's utilization for a CLOSED layer.

        Returns:
            Token units released.

        Raises:
            InvalidLayerStatus: layer not CLOSED.
            NoAllocation: nothing allocated, or already released.
        """
        with self._operation("release_allocation"):
            require_address(lp, "lp")
            amount = self.layers.release(layer_id, lp)
            self.shares.release_utilization(lp, amount)
            self._emit(EventType.ALLOCATION_RELEASED, lp=lp, layer_id=layer_id, amount=amount)
        return amount

    def _lock_from_current_epoch(self, amount: int) -> int:
        """
        Lock amount in the current epoch, freeze and split it.

        Returns:
            The funding (now locked and split) epoch id.
        """
        epoch = self.epochs.lock_from_current(amount)
        result = self.epochs.split_epoch(epoch.epoch_id)
        self._emit(EventType.EPOCH_CREATED, epoch_id=result.rollover_epoch.epoch_id)
        self._emit(EventType.EPOCH_SPLIT, epoch_id=epoch.epoch_id,
                   locked_share_count=result.locked_share_count,
                   rollover_epoch_id=result.rollover_epoch.epoch_id)
        return epoch.epoch_id

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        """
        Run one public operation as an all-or-nothing unit.

        The stores record each entry they overwrite in the shared journal. On
        any exception the journal is rolled back, buffered events are dropped
        and the exception is re-raised.
        """
        if self._in_operation:
            raise ReentrancyError(f"{name} called while another operation is in progress")
        self._in_operation = True
        self.journal.begin()
        try:
            yield
        except Exception as exc:
            self.journal.rollback()
            self._pending_events = []
            if self.verbose:
                print(f"✗ REJECTED {name}: {type(exc).__name__}: {exc}")
            raise
        else:
            self.journal.commit()
            self._commit_events()
        finally:
            self._in_operation = False

    def _emit(self, event_type: EventType, **payload: Any) -> None:
        self._pending_events.append((event_type, payload))

    def _commit_events(self) -> None:
        for event_type, payload in self._pending_events:
            event = LedgerEvent(
                sequence_number=len(self.event_log),
                event_type=event_type,
                payload=payload,
            )
            self.event_log.append(event)
            if self.verbose:
                print(f"✓ [{self.name}] {event!r}")
        self._pending_events = []

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> LiquidityLedger:
        """
        Create an independent copy of this ledger's state.

        The copy shares the asset reference; changes to epochs, shares and
        layers in one do not affect the other.
        """
        cloned = LiquidityLedger.__new__(LiquidityLedger)
        cloned.asset = self.asset
        cloned.name = self.name
        cloned.pool_wallet = self.pool_wallet
        cloned.min_amount = self.min_amount
        cloned.max_materialize_hops = self.max_materialize_hops
        cloned.settlement_wallet = self.settlement_wallet
        cloned.verbose = self.verbose
        cloned.journal = UndoJournal()
        cloned.epochs = self.epochs.clone(cloned.journal)
        cloned.shares = self.shares.clone(cloned.journal)
        cloned.layers = self.layers.clone(cloned.journal)
        cloned.event_log = list(self.event_log)
        cloned._pending_events = []
        cloned._in_operation = False
        return cloned

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the ledger's accounting invariants.

        Checks:
            - per LP, sum of epoch balances == total_shares
            - per LP, accumulated_utilization <= total_shares // PRECISION
            - per layer, total_allocated + remaining_backing == required_backing,
              neither negative, live allocations <= required_backing
            - cached free and locked aggregates == sums over epochs
            - split epochs hold no free assets until their layer closes
            - pool_wallet's asset balance covers all free and locked assets

        Returns:
            Dict with keys 'valid' (bool) and 'discrepancies' (list of dicts).

        Example:
            result = pool.verify_invariants()
            assert result['valid'], result['discrepancies']
        """
        discrepancies: List[Dict[str, Any]] = []

        for address, provider in sorted(self.shares.providers.items()):
            held = sum(self.shares.balances.get(address, {}).values())
            if held != provider.total_shares:
                discrepancies.append({
                    'check': 'share_conservation', 'lp': address,
                    'expected': provider.total_shares, 'actual': held,
                })
            if provider.accumulated_utilization > provider.total_shares // PRECISION:
                discrepancies.append({
                    'check': 'utilization_bound', 'lp': address,
                    'utilization': provider.accumulated_utilization,
                    'balance': provider.total_shares // PRECISION,
                })

        closed_funding = set()
        for layer in self.layers.list_layers():
            live = sum(a.amount for a in self.layers.allocations_for(layer.layer_id).values())
            if (layer.remaining_backing < 0
                    or layer.total_allocated + layer.remaining_backing != layer.required_backing
                    or live > layer.required_backing):
                discrepancies.append({
                    'check': 'allocation_bound', 'layer_id': layer.layer_id,
                    'required_backing': layer.required_backing,
                    'total_allocated': layer.total_allocated,
                    'remaining_backing': layer.remaining_backing,
                    'live_allocations': live,
                })
            if layer.status == LayerStatus.CLOSED:
                closed_funding.add(layer.funding_epoch_id)

        epochs = self.epochs.list_epochs()
        free_sum = sum(e.free_assets for e in epochs)
        if free_sum != self.epochs.total_free_assets:
            discrepancies.append({
                'check': 'free_asset_aggregate',
                'expected': free_sum, 'actual': self.epochs.total_free_assets,
            })
        for epoch in epochs:
            if epoch.split and epoch.free_assets and epoch.epoch_id not in closed_funding:
                discrepancies.append({
                    'check': 'split_epoch_free_assets', 'epoch_id': epoch.epoch_id,
                    'free_assets': epoch.free_assets,
                })

        locked_sum = sum(e.locked_assets for e in epochs)
        if locked_sum != self.epochs.locked_assets_total:
            discrepancies.append({
                'check': 'locked_asset_aggregate',
                'expected': locked_sum, 'actual': self.epochs.locked_assets_total,
            })

        backing = free_sum + locked_sum
        held = self.asset.balance_of(self.pool_wallet)
        if held < backing:
            discrepancies.append({
                'check': 'solvency', 'required': backing, 'held': held,
            })

        return {
            'valid': len(discrepancies) == 0,
            'discrepancies': discrepancies,
        }
