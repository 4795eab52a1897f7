"""Automation API endpoints consumed by the external keeper"""
from fastapi import APIRouter, Depends, HTTPException

from vestkeeper.schemas.automation import (
    AccrualInfo,
    CheckUpkeepRequest,
    CheckUpkeepResponse,
    CursorResponse,
    PerformUpkeepRequest,
    PerformUpkeepResponse,
)
from vestkeeper.services.automation import UpkeepAutomation
from vestkeeper.services.engine import VestingEngine, get_engine
from vestkeeper.services.errors import StaleOrInvalidBatch

router = APIRouter()


def get_automation(engine: VestingEngine = Depends(get_engine)) -> UpkeepAutomation:
    return UpkeepAutomation(engine)


def _from_hex(value: str) -> bytes:
    return bytes.fromhex(value.removeprefix("0x"))


@router.post("/check", response_model=CheckUpkeepResponse)
async def check_upkeep(
    request: CheckUpkeepRequest = CheckUpkeepRequest(),
    automation: UpkeepAutomation = Depends(get_automation),
):
    """Report whether accrual work is due and describe the next batch"""
    try:
        check_data = _from_hex(request.check_data)
    except ValueError:
        raise HTTPException(status_code=400, detail="check_data is not valid hex")
    work_pending, descriptor = automation.check_upkeep(check_data)
    return CheckUpkeepResponse(work_pending=work_pending, work_descriptor=descriptor.hex())


@router.post("/perform", response_model=PerformUpkeepResponse)
async def perform_upkeep(
    request: PerformUpkeepRequest,
    automation: UpkeepAutomation = Depends(get_automation),
):
    """Apply a batch previously returned by /check"""
    try:
        descriptor = _from_hex(request.work_descriptor)
    except ValueError:
        raise StaleOrInvalidBatch("work_descriptor is not valid hex")
    result = await automation.perform_upkeep(descriptor)
    return PerformUpkeepResponse(
        accruals=[
            AccrualInfo(
                index=a.index,
                beneficiary=a.beneficiary,
                amount=a.amount,
                released_amount=a.released_amount,
            )
            for a in result.accruals
        ],
        total_released=result.total_released,
        cursor=result.cursor,
    )


@router.get("/cursor", response_model=CursorResponse)
async def get_cursor(engine: VestingEngine = Depends(get_engine)):
    """Current scan position"""
    return CursorResponse(
        cursor=engine.cursor,
        schedule_count=len(engine.store),
        batch_size=engine.config.batch_size,
    )
