"""Payout of accrued vesting balances to beneficiaries."""
from dataclasses import dataclass

import structlog

from vestkeeper.services.accrual import checked_add
from vestkeeper.services.capabilities import AssetLedger, AssetTransferError
from vestkeeper.services.errors import (
    AssetTransferFailed,
    BeneficiaryNotFound,
    CliffNotReached,
    InsufficientAvailableBalance,
    InvalidAmount,
)
from vestkeeper.services.schedule_store import ScheduleStore

logger = structlog.get_logger()


@dataclass
class Withdrawal:
    """A completed payout."""
    index: int
    beneficiary: str
    amount: int
    withdrawn_amount: int


class WithdrawalLedger:
    """Tracks how much of each accrued balance has been paid out."""

    def __init__(self, store: ScheduleStore, assets: AssetLedger):
        self.store = store
        self.assets = assets

    async def withdraw(self, beneficiary: str, amount: int, now: int) -> Withdrawal:
        """
        Pay ``amount`` of the beneficiary's accrued balance.

        The withdrawn total is only updated once the asset ledger has
        settled the transfer, so a failed transfer leaves no trace.
        """
        if amount <= 0:
            raise InvalidAmount(amount)

        index = self.store.index_of(beneficiary)
        if index is None:
            raise BeneficiaryNotFound(beneficiary)
        schedule = self.store[index]

        if now < schedule.cliff_time:
            raise CliffNotReached(beneficiary, schedule.cliff_time, now)

        available = schedule.available_amount
        if amount > available:
            raise InsufficientAvailableBalance(beneficiary, amount, available)

        withdrawn = checked_add(schedule.withdrawn_amount, amount)

        try:
            await self.assets.transfer_out(beneficiary, amount)
        except AssetTransferError as e:
            logger.error(
                "Withdrawal transfer failed",
                beneficiary=beneficiary,
                amount=amount,
                error=str(e),
            )
            raise AssetTransferFailed("out", beneficiary, amount, e) from e

        schedule.withdrawn_amount = withdrawn

        logger.info(
            "Withdrawal completed",
            index=index,
            beneficiary=beneficiary,
            amount=amount,
            withdrawn_amount=withdrawn,
        )
        return Withdrawal(
            index=index,
            beneficiary=beneficiary,
            amount=amount,
            withdrawn_amount=withdrawn,
        )
