"""
Units Router Module - units, their reward images and in-flight uploads
"""
from fastapi import APIRouter

from .images import router as images_router
from .units import router as units_router
from .uploads import router as uploads_router

unit_router = APIRouter(prefix="/api")
unit_router.include_router(units_router, prefix="")
unit_router.include_router(images_router, prefix="")
unit_router.include_router(uploads_router, prefix="")

__all__ = [
    "unit_router",
    "units_router",
    "images_router",
    "uploads_router",
]
