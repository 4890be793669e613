"""
liquidity_ledger - Epoch Liquidity Ledger for Leveraged Trading

Pools LP deposits into epochs, lends slices of the pool out as backing for
trade layers, and settles profit or loss back into the pool. Splits are lazy
and LPs materialize their rollover shares on demand.

Usage:
    from liquidity_ledger import LiquidityLedger, InMemoryAsset

    token = InMemoryAsset("USDC")
    pool = LiquidityLedger(token, verbose=False)

    token.mint("alice", 100)
    token.approve("alice", pool.pool_wallet, 100)
    pool.deposit("alice", 100)

    # Position engine locks 40 for a trade (splits epoch 1 -> epoch 2)
    layer_id = pool.create_trade_layer(40)
    pool.claim_layer_allocation("alice", layer_id)
    pool.activate_trade_layer(layer_id)

    # Trader lost 10: position engine funds the pool, then closes
    token.mint(pool.pool_wallet, 10)
    pool.close_trade_layer(layer_id, 10, lp_gains=True)
    pool.release_allocation("alice", layer_id)

    pool.materialize_shares("alice", 1)
"""

# Core types
from .core import (
    PRECISION,
    DEFAULT_MIN_AMOUNT,
    MAX_MATERIALIZE_HOPS,
    NO_EPOCH,
    ZERO_ADDRESS,
    POOL_WALLET,
    ErrorKind,
    LayerStatus,
    EventType,
    Epoch,
    LiquidityProvider,
    LayerAllocation,
    TradeLayer,
    LedgerEvent,
    LedgerError,
    InvalidAddress,
    InvalidAmount,
    InsufficientEpochAssets,
    InsufficientAvailability,
    InsufficientEpochShares,
    BackingExhausted,
    ZeroAllocation,
    EpochNotFound,
    LayerNotFound,
    UnknownProvider,
    EpochFrozen,
    EpochNotFrozen,
    EpochAlreadySplit,
    InvalidLayerStatus,
    AllocationAlreadyClaimed,
    NoAllocation,
    NoAllocationsClaimed,
    ReentrancyError,
    MaterializationOutOfSequence,
    UnmaterializedEpoch,
    InconsistentSplitState,
    AssetTransferError,
    InsufficientBalance,
    InsufficientAllowance,
    InsufficientPoolFunding,
)

# External asset
from .asset import AssetLedger, InMemoryAsset

# Stores and pure functions
from .journal import UndoJournal
from .epochs import EpochStore
from .splits import EpochSplit, compute_epoch_split
from .shares import ShareLedger
from .materialization import (
    MaterializationStep,
    MaterializationPlan,
    compute_materialization,
)
from .layers import (
    CloseSettlement,
    TradeLayerBook,
    compute_claim_allocation,
    compute_close_settlement,
)

# Views
from .views import (
    PoolView,
    lp_total_balance,
    lp_available_balance,
    total_free_assets,
    virtual_share_balances,
    effective_locked_shares,
    withdrawable_amount,
)

# Ledger
from .ledger import LiquidityLedger

__all__ = [
    # Constants
    'PRECISION', 'DEFAULT_MIN_AMOUNT', 'MAX_MATERIALIZE_HOPS', 'NO_EPOCH',
    'ZERO_ADDRESS', 'POOL_WALLET',
    # Enums and records
    'ErrorKind', 'LayerStatus', 'EventType',
    'Epoch', 'LiquidityProvider', 'LayerAllocation', 'TradeLayer', 'LedgerEvent',
    # Exceptions
    'LedgerError', 'InvalidAddress', 'InvalidAmount',
    'InsufficientEpochAssets', 'InsufficientAvailability', 'InsufficientEpochShares',
    'BackingExhausted', 'ZeroAllocation',
    'EpochNotFound', 'LayerNotFound', 'UnknownProvider',
    'EpochFrozen', 'EpochNotFrozen', 'EpochAlreadySplit',
    'InvalidLayerStatus', 'AllocationAlreadyClaimed', 'NoAllocation',
    'NoAllocationsClaimed', 'ReentrancyError',
    'MaterializationOutOfSequence', 'UnmaterializedEpoch',
    'InconsistentSplitState',
    'AssetTransferError', 'InsufficientBalance', 'InsufficientAllowance',
    'InsufficientPoolFunding',
    # Asset
    'AssetLedger', 'InMemoryAsset',
    # Stores and pure functions
    'UndoJournal', 'EpochStore', 'EpochSplit', 'compute_epoch_split',
    'ShareLedger',
    'MaterializationStep', 'MaterializationPlan', 'compute_materialization',
    'CloseSettlement', 'TradeLayerBook',
    'compute_claim_allocation', 'compute_close_settlement',
    # Views
    'PoolView', 'lp_total_balance', 'lp_available_balance', 'total_free_assets',
    'virtual_share_balances', 'effective_locked_shares', 'withdrawable_amount',
    # Ledger
    'LiquidityLedger',
]

__version__ = '1.0.0'
