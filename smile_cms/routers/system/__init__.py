"""
System Router Module - health and diagnostics
"""
from fastapi import APIRouter

from .health import router as health_router

system_router = APIRouter(prefix="/api/system")

# Do NOT re-apply tags here so subrouters keep their own tags
system_router.include_router(health_router, prefix="")

__all__ = [
    "system_router",
    "health_router",
]
