"""
Stock Router Module - dashboard stock management and the device status endpoint
"""
from fastapi import APIRouter

from .device import router as device_router
from .stock import router as stock_router

inventory_router = APIRouter(prefix="/api")
inventory_router.include_router(stock_router, prefix="")
inventory_router.include_router(device_router, prefix="")

__all__ = [
    "inventory_router",
    "stock_router",
    "device_router",
]
