"""Vesting engine: owns the schedule store, the upkeep cursor and custody."""
import asyncio
from dataclasses import dataclass
from typing import List, Optional

import structlog

from vestkeeper.config import get_settings
from vestkeeper.services.accrual import (
    amount_per_period,
    checked_add,
    checked_sub,
    period_count,
)
from vestkeeper.services.capabilities import (
    AdminAuthorizer,
    AssetLedger,
    AssetTransferError,
    Authorizable,
    Clock,
    InMemoryAssetLedger,
    system_clock,
)
from vestkeeper.services.errors import (
    AssetTransferFailed,
    BeneficiaryAlreadyScheduled,
    BeneficiaryNotFound,
    InvalidAmount,
    InvalidPeriod,
    StaleOrInvalidBatch,
    Unauthorized,
)
from vestkeeper.services.notifications import EventType, NotificationHub, VestingEvent
from vestkeeper.services.schedule_store import ScheduleStore, VestingSchedule
from vestkeeper.services.upkeep import UpkeepApplier, UpkeepResult, UpkeepScanner
from vestkeeper.services.withdrawals import Withdrawal, WithdrawalLedger

logger = structlog.get_logger()

DAY = 86400


@dataclass
class EngineConfig:
    """Timing and batching parameters."""
    period_length: int = DAY
    min_period: int = 7 * DAY
    batch_size: int = 10

    @classmethod
    def from_settings(cls, settings) -> "EngineConfig":
        return cls(
            period_length=settings.period_length_seconds,
            min_period=settings.min_period_seconds,
            batch_size=settings.upkeep_batch_size,
        )


class VestingEngine:
    """
    Single owner of all vesting state.

    Mutating operations (create, apply, withdraw) are serialized behind one
    lock and only change state after their last await, so every operation is
    all-or-nothing and reads never observe a partial update.
    """

    def __init__(
        self,
        assets: AssetLedger,
        authorizer: Authorizable,
        config: Optional[EngineConfig] = None,
        clock: Clock = system_clock,
        notifications: Optional[NotificationHub] = None,
    ):
        self.config = config or EngineConfig()
        self.assets = assets
        self.authorizer = authorizer
        self.clock = clock
        self.notifications = notifications or NotificationHub()

        self.store = ScheduleStore()
        self.cursor = 0
        self.custodial_balance = 0
        self._lock = asyncio.Lock()

        self.scanner = UpkeepScanner(self.store, self.config.period_length, self.config.batch_size)
        self.applier = UpkeepApplier(self.store, self.config.period_length, self.config.batch_size)
        self.withdrawals = WithdrawalLedger(self.store, assets)

    def now(self) -> int:
        return int(self.clock())

    async def create_schedule(
        self,
        caller: str,
        beneficiary: str,
        start_time: int,
        cliff_time: int,
        end_time: int,
        total_amount: int,
    ) -> int:
        """
        Create a schedule funded by the caller.

        Args:
            caller: Identity requesting creation, must be the administrator
            beneficiary: Recipient of the vested funds
            start_time: Unix timestamp at which accrual starts
            cliff_time: Unix timestamp before which nothing can be withdrawn
            end_time: Unix timestamp at which the schedule is fully vested
            total_amount: Units deposited into custody for this schedule

        Returns:
            Index of the new schedule in the store
        """
        if not self.authorizer.is_admin(caller):
            raise Unauthorized(caller)

        async with self._lock:
            now = self.now()

            if total_amount <= 0:
                raise InvalidAmount(total_amount)
            if start_time < now:
                raise InvalidPeriod("start is in the past", start_time, cliff_time, end_time)
            if not start_time <= cliff_time <= end_time:
                raise InvalidPeriod("cliff must lie between start and end", start_time, cliff_time, end_time)
            if end_time - start_time < self.config.min_period:
                raise InvalidPeriod(
                    f"duration shorter than {self.config.min_period} seconds",
                    start_time, cliff_time, end_time,
                )
            if period_count(start_time, end_time, self.config.period_length) == 0:
                raise InvalidPeriod(
                    f"duration shorter than one {self.config.period_length} second period",
                    start_time, cliff_time, end_time,
                )

            per_period = amount_per_period(total_amount, start_time, end_time, self.config.period_length)
            if per_period == 0:
                raise InvalidAmount(total_amount)

            existing = self.store.index_of(beneficiary)
            if existing is not None and self.store[existing].locked_amount > 0:
                raise BeneficiaryAlreadyScheduled(beneficiary, existing)

            custodial_balance = checked_add(self.custodial_balance, total_amount)

            try:
                await self.assets.transfer_in(caller, total_amount)
            except AssetTransferError as e:
                logger.error(
                    "Schedule funding transfer failed",
                    caller=caller,
                    beneficiary=beneficiary,
                    amount=total_amount,
                    error=str(e),
                )
                raise AssetTransferFailed("in", caller, total_amount, e) from e

            index = self.store.append(
                VestingSchedule(
                    beneficiary=beneficiary,
                    start_time=start_time,
                    cliff_time=cliff_time,
                    end_time=end_time,
                    total_amount=total_amount,
                    amount_per_period=per_period,
                    last_accrual_time=start_time,
                )
            )
            self.custodial_balance = custodial_balance

        logger.info(
            "Vesting schedule created",
            index=index,
            beneficiary=beneficiary,
            total_amount=total_amount,
            amount_per_period=per_period,
        )
        self.notifications.publish(
            VestingEvent(
                event_type=EventType.SCHEDULE_CREATED,
                timestamp=now,
                beneficiary=beneficiary,
                index=index,
                amount=total_amount,
                data={
                    "start_time": start_time,
                    "cliff_time": cliff_time,
                    "end_time": end_time,
                    "amount_per_period": per_period,
                },
            )
        )
        return index

    def scan(self) -> List[int]:
        """Indices due for accrual starting at the cursor. Never mutates state."""
        return self.scanner.scan(self.cursor, self.now())

    def needs_rewind(self) -> bool:
        """True when nothing is due from the cursor onward but work waits before it."""
        if self.cursor == 0:
            return False
        now = self.now()
        return not self.scanner.scan(self.cursor, now) and self.scanner.has_due_before(self.cursor, now)

    async def apply(self, indices: List[int]) -> UpkeepResult:
        """
        Apply a batch of accruals selected by a previous scan.

        An empty batch rewinds the cursor to the start of the store, which is
        only accepted while nothing at or after the cursor is due.
        """
        async with self._lock:
            now = self.now()
            try:
                if indices:
                    result = self.applier.apply(indices, now)
                else:
                    result = self._rewind(now)
            except StaleOrInvalidBatch as e:
                logger.warning(
                    "Rejected upkeep batch",
                    reason=e.reason,
                    index=e.index,
                    cursor=self.cursor,
                )
                raise
            previous_cursor = self.cursor
            self.cursor = result.cursor

        if result.accruals:
            logger.info(
                "Processed vesting accruals",
                schedules=len(result.accruals),
                total_released=result.total_released,
                cursor=result.cursor,
            )
        else:
            logger.info("Rewound upkeep cursor", previous_cursor=previous_cursor)

        self.notifications.publish(
            VestingEvent(
                event_type=EventType.UPKEEP_PERFORMED,
                timestamp=now,
                amount=result.total_released,
                data={
                    "accruals": [
                        {"index": a.index, "beneficiary": a.beneficiary, "amount": a.amount}
                        for a in result.accruals
                    ],
                    "cursor": result.cursor,
                },
            )
        )
        return result

    def _rewind(self, now: int) -> UpkeepResult:
        if self.cursor == 0:
            raise StaleOrInvalidBatch("empty batch")
        if self.scanner.scan(self.cursor, now):
            raise StaleOrInvalidBatch(f"schedules after cursor {self.cursor} are still due")
        return UpkeepResult(cursor=0)

    async def withdraw(self, beneficiary: str, amount: int) -> Withdrawal:
        """Pay out part of a beneficiary's accrued balance."""
        async with self._lock:
            now = self.now()
            withdrawal = await self.withdrawals.withdraw(beneficiary, amount, now)
            # available <= total - withdrawn, so custody always covers the payout
            self.custodial_balance = checked_sub(self.custodial_balance, withdrawal.amount)

        self.notifications.publish(
            VestingEvent(
                event_type=EventType.WITHDRAWAL_COMPLETED,
                timestamp=now,
                beneficiary=beneficiary,
                index=withdrawal.index,
                amount=amount,
                data={"withdrawn_amount": withdrawal.withdrawn_amount},
            )
        )
        return withdrawal

    def get_schedule(self, beneficiary: str) -> VestingSchedule:
        schedule = self.store.get_by_beneficiary(beneficiary)
        if schedule is None:
            raise BeneficiaryNotFound(beneficiary)
        return schedule

    def list_schedules(self) -> List[VestingSchedule]:
        return list(self.store)


# Singleton instance
_engine: Optional[VestingEngine] = None


def get_engine() -> VestingEngine:
    """Get or create the process-wide vesting engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = VestingEngine(
            assets=InMemoryAssetLedger(
                settings.custody_address,
                balances={settings.admin_address: settings.admin_initial_balance},
            ),
            authorizer=AdminAuthorizer(settings.admin_address),
            config=EngineConfig.from_settings(settings),
        )
    return _engine


def set_engine(engine: Optional[VestingEngine]) -> None:
    """Replace the process-wide engine (None resets it)."""
    global _engine
    _engine = engine
