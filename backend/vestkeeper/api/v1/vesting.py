"""Vesting API endpoints"""
from fastapi import APIRouter, Depends, Header, Path
from typing import List

from vestkeeper.schemas.vesting import (
    CreateVestingRequest,
    CreateVestingResponse,
    CustodyBalanceResponse,
    VestingScheduleResponse,
    WithdrawRequest,
    WithdrawResponse,
)
from vestkeeper.services.engine import VestingEngine, get_engine

router = APIRouter()


@router.get("", response_model=List[VestingScheduleResponse])
async def list_vesting_schedules(engine: VestingEngine = Depends(get_engine)):
    """List all vesting schedules in creation order"""
    return [
        VestingScheduleResponse.from_schedule(index, schedule)
        for index, schedule in enumerate(engine.list_schedules())
    ]


@router.get("/custody/balance", response_model=CustodyBalanceResponse)
async def get_custody_balance(engine: VestingEngine = Depends(get_engine)):
    """Units held in custody on behalf of all beneficiaries"""
    return CustodyBalanceResponse(
        custodial_balance=engine.custodial_balance,
        schedule_count=len(engine.store),
    )


@router.get("/{beneficiary}", response_model=VestingScheduleResponse)
async def get_vesting_schedule(
    beneficiary: str = Path(...),
    engine: VestingEngine = Depends(get_engine),
):
    """Get the current schedule of a beneficiary"""
    schedule = engine.get_schedule(beneficiary)
    return VestingScheduleResponse.from_schedule(engine.store.index_of(beneficiary), schedule)


@router.post("", response_model=CreateVestingResponse, status_code=201)
async def create_vesting_schedule(
    request: CreateVestingRequest,
    x_caller: str = Header(...),
    engine: VestingEngine = Depends(get_engine),
):
    """Create a new vesting schedule.

    Only the administrator may create schedules. The administrator's account
    on the asset ledger funds the full ``total_amount`` up front.
    """
    index = await engine.create_schedule(
        caller=x_caller,
        beneficiary=request.beneficiary,
        start_time=request.start_time,
        cliff_time=request.cliff_time,
        end_time=request.end_time,
        total_amount=request.total_amount,
    )
    return CreateVestingResponse(
        index=index,
        schedule=VestingScheduleResponse.from_schedule(index, engine.store[index]),
    )


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw(
    request: WithdrawRequest,
    x_caller: str = Header(...),
    engine: VestingEngine = Depends(get_engine),
):
    """Withdraw part of the caller's accrued balance"""
    withdrawal = await engine.withdraw(x_caller, request.amount)
    schedule = engine.store[withdrawal.index]
    return WithdrawResponse(
        beneficiary=withdrawal.beneficiary,
        amount=withdrawal.amount,
        withdrawn_amount=withdrawal.withdrawn_amount,
        available_amount=schedule.available_amount,
    )
