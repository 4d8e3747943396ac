"""
User Management Router - admin-only user accounts
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.dependencies import get_current_user, get_user_service
from ...core.operations import operation_response
from ...models.schemas import CurrentUser, UserCreate, UserUpdate
from ...services.users.user_service import UserService

router = APIRouter(prefix="/users", tags=["user-management"])


@router.get("")
async def list_users(
    role: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """List user profiles, optionally filtered by role (Admin only)."""
    result = await user_service.list_users(current_user, role)
    return operation_response(result)


@router.post("", status_code=201)
async def create_user(
    payload: UserCreate,
    current_user: CurrentUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """Create the sign-in identity and the profile together (Admin only)."""
    result = await user_service.create_user(current_user, payload)
    return operation_response(result)


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    result = await user_service.get_user(current_user, user_id)
    return operation_response(result)


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    result = await user_service.update_user(current_user, user_id, payload)
    return operation_response(result)


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    result = await user_service.delete_user(current_user, user_id)
    return operation_response(result)
