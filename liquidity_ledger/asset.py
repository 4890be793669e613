"""
asset.py - The external value-transfer asset

The liquidity ledger never holds token balances itself. It pulls and pays out
through an opaque asset ledger exposing three operations:

    transfer(sender, to, amount)
    transfer_from(spender, owner, to, amount)
    balance_of(address)

Both transfers fail without any state change when the balance (or, for
transfer_from, the allowance) is insufficient.

InMemoryAsset is the reference implementation used by tests and demos.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Protocol, Tuple, runtime_checkable

from .core import (
    InsufficientAllowance, InsufficientBalance,
    require_address, require_amount,
)


@runtime_checkable
class AssetLedger(Protocol):
    """Interface the liquidity ledger consumes from the value-transfer asset."""

    def transfer(self, sender: str, to: str, amount: int) -> None:
        """Move amount from sender to `to`. Raises on insufficient balance."""
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        """Move amount from owner to `to` on spender's allowance. Raises on shortfall."""
        ...

    def balance_of(self, address: str) -> int:
        """Return the balance held by address (0 if unknown)."""
        ...


class InMemoryAsset:
    """
    Minimal fungible token with balances and allowances.

    Not thread-safe. Every mutating call validates first and applies only if
    all checks pass.

    Example:
        token = InMemoryAsset("USDC")
        token.mint("alice", 1_000)
        token.approve("alice", POOL_WALLET, 1_000)
        token.transfer_from(POOL_WALLET, "alice", POOL_WALLET, 250)
    """

    def __init__(self, symbol: str = "TOKEN"):
        self.symbol = symbol
        self.balances: Dict[str, int] = defaultdict(int)
        self.allowances: Dict[Tuple[str, str], int] = defaultdict(int)
        self.total_supply: int = 0

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def mint(self, to: str, amount: int) -> None:
        """Issue new tokens to `to`."""
        require_address(to, "mint recipient")
        require_amount(amount, "mint amount")
        self.balances[to] += amount
        self.total_supply += amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set (not add to) the allowance spender may pull from owner."""
        require_address(owner, "owner")
        require_address(spender, "spender")
        require_amount(amount, "allowance")
        self.allowances[(owner, spender)] = amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        require_address(to, "transfer recipient")
        require_amount(amount, "transfer amount")
        if self.balance_of(sender) < amount:
            raise InsufficientBalance(
                f"{self.symbol}: {sender} balance {self.balance_of(sender)} < {amount}"
            )
        self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        require_address(to, "transfer recipient")
        require_amount(amount, "transfer amount")
        if self.allowance(owner, spender) < amount:
            raise InsufficientAllowance(
                f"{self.symbol}: allowance {owner}->{spender} "
                f"{self.allowance(owner, spender)} < {amount}"
            )
        if self.balance_of(owner) < amount:
            raise InsufficientBalance(
                f"{self.symbol}: {owner} balance {self.balance_of(owner)} < {amount}"
            )
        self.allowances[(owner, spender)] -= amount
        self._move(owner, to, amount)

    def _move(self, source: str, dest: str, amount: int) -> None:
        self.balances[source] -= amount
        self.balances[dest] += amount
