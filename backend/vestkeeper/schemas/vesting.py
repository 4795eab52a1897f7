"""Vesting schemas"""
from pydantic import BaseModel, Field

from vestkeeper.services.schedule_store import VestingSchedule


class VestingScheduleResponse(BaseModel):
    index: int
    beneficiary: str
    start_time: int
    cliff_time: int
    end_time: int
    total_amount: int
    amount_per_period: int
    released_amount: int
    withdrawn_amount: int
    available_amount: int
    last_accrual_time: int
    is_exhausted: bool

    @classmethod
    def from_schedule(cls, index: int, schedule: VestingSchedule) -> "VestingScheduleResponse":
        return cls(
            index=index,
            available_amount=schedule.available_amount,
            is_exhausted=schedule.is_exhausted,
            **schedule.to_dict(),
        )


class CreateVestingRequest(BaseModel):
    """Create a new vesting schedule.

    The caller must be the administrator and is debited ``total_amount``,
    which is held in custody and accrues to the beneficiary one period at a
    time between ``start_time`` and ``end_time``.
    """
    beneficiary: str = Field(..., min_length=1, max_length=128)
    start_time: int  # Unix timestamp
    cliff_time: int  # Unix timestamp
    end_time: int  # Unix timestamp
    total_amount: int


class CreateVestingResponse(BaseModel):
    index: int
    schedule: VestingScheduleResponse


class WithdrawRequest(BaseModel):
    amount: int


class WithdrawResponse(BaseModel):
    beneficiary: str
    amount: int
    withdrawn_amount: int
    available_amount: int


class CustodyBalanceResponse(BaseModel):
    custodial_balance: int
    schedule_count: int
