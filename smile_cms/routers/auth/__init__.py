"""
Auth Router Module - sign-in and caller identity endpoints
"""
from fastapi import APIRouter

from .authentication import router as authentication_router

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])
auth_router.include_router(authentication_router, prefix="")

__all__ = ["auth_router", "authentication_router"]
