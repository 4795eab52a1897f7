"""Automation (keeper) schemas"""
from typing import List

from pydantic import BaseModel


class CheckUpkeepRequest(BaseModel):
    check_data: str = ""  # Hex encoded, ignored by the engine


class CheckUpkeepResponse(BaseModel):
    work_pending: bool
    work_descriptor: str  # Hex encoded index list


class PerformUpkeepRequest(BaseModel):
    work_descriptor: str  # Hex encoded, as returned by check


class AccrualInfo(BaseModel):
    index: int
    beneficiary: str
    amount: int
    released_amount: int


class PerformUpkeepResponse(BaseModel):
    accruals: List[AccrualInfo]
    total_released: int
    cursor: int


class CursorResponse(BaseModel):
    cursor: int
    schedule_count: int
    batch_size: int
