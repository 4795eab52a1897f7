"""Collaborators the vesting engine is composed from.

The engine only decides amounts and records them. Moving value and deciding
who may administer the pool are delegated to the capabilities defined here.
"""
import time
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger()

Clock = Callable[[], int]


def system_clock() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


@runtime_checkable
class Authorizable(Protocol):
    """Answers whether a caller may administer the vesting pool."""

    def is_admin(self, caller: str) -> bool:
        ...


class AdminAuthorizer:
    """Single configured administrator address."""

    def __init__(self, admin_address: str):
        self.admin_address = admin_address

    def is_admin(self, caller: str) -> bool:
        return bool(caller) and caller == self.admin_address


class AssetTransferError(Exception):
    """Raised by an asset ledger when a transfer cannot be settled."""


@runtime_checkable
class AssetLedger(Protocol):
    """External ledger that settles movements of the vested asset."""

    async def transfer_in(self, sender: str, amount: int) -> None:
        ...

    async def transfer_out(self, recipient: str, amount: int) -> None:
        ...


class InMemoryAssetLedger:
    """
    Asset ledger kept in process memory.

    Holds a balance per address plus the custody address that receives
    deposits for vesting. Used for local development and tests.
    """

    def __init__(self, custody_address: str, balances: Optional[Dict[str, int]] = None):
        self.custody_address = custody_address
        self.balances: Dict[str, int] = dict(balances or {})

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)

    def mint(self, address: str, amount: int) -> None:
        if amount <= 0:
            raise AssetTransferError(f"Cannot mint {amount}")
        self.balances[address] = self.balance_of(address) + amount
        logger.info("Minted asset", address=address, amount=amount)

    def _move(self, source: str, target: str, amount: int) -> None:
        if amount <= 0:
            raise AssetTransferError(f"Invalid transfer amount {amount}")
        available = self.balance_of(source)
        if available < amount:
            raise AssetTransferError(
                f"Insufficient funds at {source}: {available} < {amount}"
            )
        self.balances[source] = available - amount
        self.balances[target] = self.balance_of(target) + amount

    async def transfer_in(self, sender: str, amount: int) -> None:
        self._move(sender, self.custody_address, amount)

    async def transfer_out(self, recipient: str, amount: int) -> None:
        self._move(self.custody_address, recipient, amount)
