"""
Core types and constants for the epoch liquidity ledger.

This module provides the foundational data structures used by every other module:
1. Constants: fixed-point scale, minimum deposit, materialization hop cap
2. Immutable records: Epoch, LiquidityProvider, TradeLayer, LayerAllocation
3. Events: LedgerEvent and EventType for the audit trail
4. Exceptions: LedgerError and its classified subclasses
5. Validation helpers shared by the service and the pure functions

All share arithmetic is integer arithmetic. Token amounts are unsigned ints and
shares are token amounts scaled by PRECISION. Every division floors.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


# ============================================================================
# CONSTANTS
# ============================================================================

# Shares are token amounts multiplied by this scale factor.
PRECISION = 10 ** 18

# Smallest deposit accepted, in token units.
DEFAULT_MIN_AMOUNT = 1

# Upper bound on split links walked by a single materialize call.
MAX_MATERIALIZE_HOPS = 10

# Rollover id of an epoch that has not been split.
NO_EPOCH = 0

# Addresses that can never own shares.
ZERO_ADDRESS = "0x" + "0" * 40

# The ledger's own account on the external asset.
POOL_WALLET = "liquidity_pool"


# ============================================================================
# ENUMS
# ============================================================================

class ErrorKind(Enum):
    """
    Classification of a failed ledger operation.

    Every LedgerError carries one of these so callers can decide whether to
    retry with different parameters without parsing messages.
    """
    INPUT_VALIDATION = "input_validation"
    INSUFFICIENT_RESOURCE = "insufficient_resource"
    INVALID_STATE = "invalid_state"
    SEQUENCING = "sequencing"
    INTERNAL_CONSISTENCY = "internal_consistency"
    EXTERNAL_TRANSFER = "external_transfer"


class LayerStatus(Enum):
    """Lifecycle of a trade layer: OPEN -> ACTIVE -> CLOSED (OPEN -> CLOSED allowed)."""
    OPEN = "open"
    ACTIVE = "active"
    CLOSED = "closed"


class EventType(Enum):
    """Kinds of entries written to the ledger's event log."""
    EPOCH_CREATED = "EpochCreated"
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    EPOCH_SPLIT = "EpochSplit"
    MATERIALIZED = "Materialized"
    TRADE_LAYER_CREATED = "TradeLayerCreated"
    TRADE_LAYER_ACTIVATED = "TradeLayerActivated"
    TRADE_LAYER_CLOSED = "TradeLayerClosed"
    ALLOCATION_CLAIMED = "AllocationClaimed"
    ALLOCATION_RELEASED = "AllocationReleased"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    kind: ErrorKind = ErrorKind.INVALID_STATE


# --- input validation -------------------------------------------------------

class InvalidAddress(LedgerError):
    """Raised when an LP or recipient address is empty or the zero address."""
    kind = ErrorKind.INPUT_VALIDATION


class InvalidAmount(LedgerError):
    """Raised when an amount is not a non-negative int or is below the minimum."""
    kind = ErrorKind.INPUT_VALIDATION


# --- insufficient resource --------------------------------------------------

class InsufficientEpochAssets(LedgerError):
    """Raised when an epoch (or the pool) lacks the free assets an operation needs."""
    kind = ErrorKind.INSUFFICIENT_RESOURCE


class InsufficientAvailability(LedgerError):
    """Raised when an LP's cross-epoch available balance cannot cover an amount."""
    kind = ErrorKind.INSUFFICIENT_RESOURCE


class InsufficientEpochShares(LedgerError):
    """Raised when an LP does not hold enough shares in a specific epoch."""
    kind = ErrorKind.INSUFFICIENT_RESOURCE


class BackingExhausted(LedgerError):
    """Raised when a trade layer has no remaining backing to distribute."""
    kind = ErrorKind.INSUFFICIENT_RESOURCE


class ZeroAllocation(LedgerError):
    """Raised when an LP's proportional allocation rounds down to zero."""
    kind = ErrorKind.INSUFFICIENT_RESOURCE


# --- invalid state transition -----------------------------------------------

class EpochNotFound(LedgerError):
    """Raised when an epoch id has never been created."""
    kind = ErrorKind.INVALID_STATE


class LayerNotFound(LedgerError):
    """Raised when a trade layer id has never been created."""
    kind = ErrorKind.INVALID_STATE


class UnknownProvider(LedgerError):
    """Raised when an address has never deposited."""
    kind = ErrorKind.INVALID_STATE


class EpochFrozen(LedgerError):
    """Raised when locking from a current epoch that is already frozen."""
    kind = ErrorKind.INVALID_STATE


class EpochNotFrozen(LedgerError):
    """Raised when splitting an epoch that has not been frozen."""
    kind = ErrorKind.INVALID_STATE


class EpochAlreadySplit(LedgerError):
    """Raised when splitting an epoch a second time."""
    kind = ErrorKind.INVALID_STATE


class InvalidLayerStatus(LedgerError):
    """Raised when a trade layer is not in the status an operation requires."""
    kind = ErrorKind.INVALID_STATE


class AllocationAlreadyClaimed(LedgerError):
    """Raised when an LP claims the same trade layer twice."""
    kind = ErrorKind.INVALID_STATE


class NoAllocation(LedgerError):
    """Raised when releasing an allocation that is zero or already released."""
    kind = ErrorKind.INVALID_STATE


class NoAllocationsClaimed(LedgerError):
    """Raised when activating a trade layer nobody has claimed."""
    kind = ErrorKind.INVALID_STATE


class ReentrancyError(LedgerError):
    """Raised when an operation is entered while another is still in progress."""
    kind = ErrorKind.INVALID_STATE


# --- sequencing -------------------------------------------------------------

class MaterializationOutOfSequence(LedgerError):
    """Raised when materialize targets an epoch other than the LP's progress pointer."""
    kind = ErrorKind.SEQUENCING


class UnmaterializedEpoch(LedgerError):
    """Raised when withdrawing from a split epoch the LP has not materialized past."""
    kind = ErrorKind.SEQUENCING


# --- internal consistency ---------------------------------------------------

class InconsistentSplitState(LedgerError):
    """Raised when split metadata is present but unusable (e.g. zero pre-split shares)."""
    kind = ErrorKind.INTERNAL_CONSISTENCY


# --- external transfer ------------------------------------------------------

class AssetTransferError(LedgerError):
    """Base class for failures reported by the external asset ledger."""
    kind = ErrorKind.EXTERNAL_TRANSFER


class InsufficientBalance(AssetTransferError):
    """Raised by the asset when the sender's balance cannot cover a transfer."""
    pass


class InsufficientAllowance(AssetTransferError):
    """Raised by the asset when the spender's allowance cannot cover a transfer."""
    pass


class InsufficientPoolFunding(AssetTransferError):
    """Raised when the pool's asset balance does not cover a settlement it must book."""
    pass


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Epoch:
    """
    A cohort of pooled liquidity with its own share accounting.

    Attributes:
        epoch_id: Monotonic id, starting at 1.
        total_shares: Scaled shares outstanding. After a split, only the locked count.
        free_assets: Unlocked token units. Always 0 once split.
        locked_assets: Token units backing trade layers.
        frozen: Set when liquidity is locked out of the epoch.
        split: Set once the epoch has been split. Never cleared.
        pre_split_total_shares: total_shares just before the split (0 unless split).
        rollover_epoch_id: Epoch holding the unlocked remainder (NO_EPOCH unless split).
    """
    epoch_id: int
    total_shares: int = 0
    free_assets: int = 0
    locked_assets: int = 0
    frozen: bool = False
    split: bool = False
    pre_split_total_shares: int = 0
    rollover_epoch_id: int = NO_EPOCH

    @property
    def total_assets(self) -> int:
        return self.free_assets + self.locked_assets


@dataclass(frozen=True, slots=True)
class LiquidityProvider:
    """
    Per-LP aggregates.

    Attributes:
        address: Opaque LP identity.
        total_shares: Scaled shares summed over every epoch the LP holds.
        accumulated_utilization: Token units currently backing claimed layers.
        exists: Always True. Providers are registered on first deposit and
            never removed, so a record in ShareLedger.providers is registered.
    """
    address: str
    total_shares: int = 0
    accumulated_utilization: int = 0
    exists: bool = True

    @property
    def total_balance(self) -> int:
        return self.total_shares // PRECISION

    @property
    def available_balance(self) -> int:
        return max(0, self.total_balance - self.accumulated_utilization)


@dataclass(frozen=True, slots=True)
class LayerAllocation:
    """An LP's slice of a trade layer's backing."""
    amount: int = 0
    claimed: bool = False


@dataclass(frozen=True, slots=True)
class TradeLayer:
    """
    A unit of locked liquidity backing one trading exposure.

    Attributes:
        layer_id: Monotonic id, starting at 1.
        required_backing: Token units locked out of the funding epoch.
        funding_epoch_id: Epoch the backing was locked from.
        status: OPEN, ACTIVE or CLOSED.
        total_allocated: Sum of LP allocations claimed so far.
        remaining_backing: Backing not yet claimed by any LP.
        profit_loss_amount: Settled PnL magnitude (set on close).
        lp_gains: Direction of the settled PnL (set on close).
    """
    layer_id: int
    required_backing: int
    funding_epoch_id: int
    status: LayerStatus = LayerStatus.OPEN
    total_allocated: int = 0
    remaining_backing: int = 0
    profit_loss_amount: int = 0
    lp_gains: Optional[bool] = None


@dataclass(frozen=True, slots=True)
class LedgerEvent:
    """
    Immutable audit record of something the ledger committed.

    Events are observability only; correctness never depends on them.
    """
    sequence_number: int
    event_type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in self.payload.items())
        return f"#{self.sequence_number} {self.event_type.value}({args})"


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def require_address(address: Optional[str], what: str = "address") -> str:
    """Return address unchanged, or raise InvalidAddress if it is empty or zero."""
    if not isinstance(address, str) or not address.strip() or address == ZERO_ADDRESS:
        raise InvalidAddress(f"{what} must be a non-zero address, got {address!r}")
    return address


def require_amount(amount: Any, what: str = "amount", minimum: int = 0) -> int:
    """
    Return amount unchanged, or raise InvalidAmount.

    Amounts must be plain ints (bool, float and Decimal are rejected) and at
    least `minimum`.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{what} must be an int, got {type(amount).__name__}")
    if amount < minimum:
        raise InvalidAmount(f"{what} must be >= {minimum}, got {amount}")
    return amount
