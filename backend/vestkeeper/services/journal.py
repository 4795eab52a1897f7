"""Journal service for recording vesting events and reconstructing past state."""
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vestkeeper.models.ledger_event import LedgerEvent
from vestkeeper.services.notifications import EventType, VestingEvent
from vestkeeper.services.schedule_store import ScheduleStore, VestingSchedule

logger = structlog.get_logger()


@dataclass
class LedgerState:
    """Engine state at a point in time."""
    timestamp: int
    store: ScheduleStore = field(default_factory=ScheduleStore)
    cursor: int = 0
    custodial_balance: int = 0


class JournalService:
    """Service for recording and replaying the vesting event journal."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(self, event: VestingEvent) -> LedgerEvent:
        """
        Record an engine event to the journal.

        Args:
            event: Committed event published by the engine

        Returns:
            The created LedgerEvent row
        """
        row = LedgerEvent(
            event_type=event.event_type,
            timestamp=event.timestamp,
            beneficiary=event.beneficiary,
            schedule_index=event.index,
            amount=event.amount,
            data=event.data,
        )

        self.db.add(row)
        await self.db.flush()

        logger.info(
            "Recorded ledger event",
            event_id=row.id,
            event_type=event.event_type.value,
            timestamp=event.timestamp,
            beneficiary=event.beneficiary,
        )
        return row

    async def list_events(
        self,
        beneficiary: Optional[str] = None,
        event_type: Optional[EventType] = None,
        until: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[LedgerEvent]:
        query = select(LedgerEvent)
        if beneficiary is not None:
            query = query.where(LedgerEvent.beneficiary == beneficiary)
        if event_type is not None:
            query = query.where(LedgerEvent.event_type == event_type)
        if until is not None:
            query = query.where(LedgerEvent.timestamp <= until)
        query = query.order_by(LedgerEvent.id).offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def reconstruct_at(self, timestamp: int) -> LedgerState:
        """
        Rebuild engine state as of ``timestamp`` by replaying the journal.

        Args:
            timestamp: Engine clock value to reconstruct at (inclusive)

        Returns:
            LedgerState holding a detached schedule store
        """
        result = await self.db.execute(
            select(LedgerEvent)
            .where(LedgerEvent.timestamp <= timestamp)
            .order_by(LedgerEvent.id)
        )
        events = result.scalars().all()

        state = LedgerState(timestamp=timestamp)
        for event in events:
            self._apply_event(state, event)

        logger.info(
            "Reconstructed ledger state",
            timestamp=timestamp,
            event_count=len(events),
            schedule_count=len(state.store),
        )
        return state

    def _apply_event(self, state: LedgerState, event: LedgerEvent) -> None:
        """Apply a single journal row to the state."""
        data = event.data or {}
        match event.event_type:
            case EventType.SCHEDULE_CREATED:
                state.store.append(
                    VestingSchedule(
                        beneficiary=event.beneficiary,
                        start_time=data["start_time"],
                        cliff_time=data["cliff_time"],
                        end_time=data["end_time"],
                        total_amount=event.amount,
                        amount_per_period=data["amount_per_period"],
                        last_accrual_time=data["start_time"],
                    )
                )
                state.custodial_balance += event.amount

            case EventType.UPKEEP_PERFORMED:
                for accrual in data.get("accruals", []):
                    schedule = state.store[accrual["index"]]
                    schedule.released_amount += accrual["amount"]
                    schedule.last_accrual_time = event.timestamp
                state.cursor = data.get("cursor", 0)

            case EventType.WITHDRAWAL_COMPLETED:
                schedule = state.store[event.schedule_index]
                schedule.withdrawn_amount += event.amount
                state.custodial_balance -= event.amount


class JournalRecorder:
    """Notification observer that writes each event in its own transaction."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def __call__(self, event: VestingEvent) -> None:
        async with self.session_factory() as db:
            await JournalService(db).record(event)
            await db.commit()
