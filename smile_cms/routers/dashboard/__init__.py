"""
Dashboard Router Module
"""
from fastapi import APIRouter

from .dashboard import router as dashboard_router

overview_router = APIRouter(prefix="/api")
overview_router.include_router(dashboard_router, prefix="")

__all__ = [
    "overview_router",
    "dashboard_router",
]
