"""API路由"""

from fastapi import APIRouter

from . import contracts

api_router = APIRouter()

api_router.include_router(contracts.router)
