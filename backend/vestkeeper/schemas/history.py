"""Journal history schemas"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from vestkeeper.schemas.vesting import VestingScheduleResponse


class LedgerEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    timestamp: int
    beneficiary: Optional[str] = None
    schedule_index: Optional[int] = None
    amount: Optional[int] = None
    data: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class LedgerStateResponse(BaseModel):
    timestamp: int
    cursor: int
    custodial_balance: int
    schedules: List[VestingScheduleResponse]
