"""
Schedule Router Module
"""
from fastapi import APIRouter

from .schedule import router as schedule_router

scheduling_router = APIRouter(prefix="/api")
scheduling_router.include_router(schedule_router, prefix="")

__all__ = [
    "scheduling_router",
    "schedule_router",
]
