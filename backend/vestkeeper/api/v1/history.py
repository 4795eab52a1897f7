"""Journal history API endpoints"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from vestkeeper.models.database import get_db
from vestkeeper.models.ledger_event import LedgerEvent
from vestkeeper.schemas.history import LedgerEventResponse, LedgerStateResponse
from vestkeeper.schemas.vesting import VestingScheduleResponse
from vestkeeper.services.journal import JournalService
from vestkeeper.services.notifications import EventType

router = APIRouter()


def _event_to_response(event: LedgerEvent) -> LedgerEventResponse:
    return LedgerEventResponse(
        id=event.id,
        event_type=event.event_type.value,
        timestamp=event.timestamp,
        beneficiary=event.beneficiary,
        schedule_index=event.schedule_index,
        amount=event.amount,
        data=event.data,
        created_at=event.created_at,
    )


@router.get("/events", response_model=List[LedgerEventResponse])
async def list_events(
    beneficiary: Optional[str] = None,
    event_type: Optional[EventType] = None,
    until: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """List journaled vesting events in commit order"""
    events = await JournalService(db).list_events(
        beneficiary=beneficiary,
        event_type=event_type,
        until=until,
        limit=limit,
        offset=skip,
    )
    return [_event_to_response(e) for e in events]


@router.get("/state", response_model=LedgerStateResponse)
async def get_state_at(
    at: int = Query(..., description="Unix timestamp to reconstruct at"),
    db: AsyncSession = Depends(get_db),
):
    """Reconstruct every schedule as it stood at a past timestamp"""
    state = await JournalService(db).reconstruct_at(at)
    return LedgerStateResponse(
        timestamp=state.timestamp,
        cursor=state.cursor,
        custodial_balance=state.custodial_balance,
        schedules=[
            VestingScheduleResponse.from_schedule(index, schedule)
            for index, schedule in enumerate(state.store)
        ],
    )
