"""
Users Router Module - admin management of CMS accounts
"""
from fastapi import APIRouter

from .users import router as users_router

user_router = APIRouter(prefix="/api")
user_router.include_router(users_router, prefix="")

__all__ = [
    "user_router",
    "users_router",
]
