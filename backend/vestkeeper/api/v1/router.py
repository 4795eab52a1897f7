"""API v1 router aggregation"""
from fastapi import APIRouter

from vestkeeper.api.v1 import automation, history, vesting

api_router = APIRouter()

api_router.include_router(vesting.router, prefix="/vesting", tags=["Vesting"])
api_router.include_router(automation.router, prefix="/automation", tags=["Automation"])
api_router.include_router(history.router, prefix="/history", tags=["History"])
