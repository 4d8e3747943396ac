"""
Units Router - unit list, detail, create, update and delete
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.dependencies import get_current_user, get_unit_service, get_view_cache
from ...core.operations import operation_response
from ...models.schemas import CurrentUser, UnitCreate, UnitUpdate
from ...services.cache.view_cache import ViewCache, view_scope
from ...services.units.unit_service import UnitService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/units", tags=["units"])


@router.get("")
async def list_units(
    manager_id: Optional[str] = Query(None, alias="managerId"),
    current_user: CurrentUser = Depends(get_current_user),
    unit_service: UnitService = Depends(get_unit_service),
    view_cache: ViewCache = Depends(get_view_cache),
):
    """List units. Non-admins only see the units assigned to them."""
    scope = view_scope(current_user, manager_id)
    cached = await view_cache.get("/units", scope)
    if cached is not None:
        return cached

    result = await unit_service.list_units(current_user, manager_id)
    if result.success:
        await view_cache.set("/units", scope, result.data)
    return operation_response(result)


@router.post("", status_code=201)
async def create_unit(
    payload: UnitCreate,
    current_user: CurrentUser = Depends(get_current_user),
    unit_service: UnitService = Depends(get_unit_service),
):
    result = await unit_service.create_unit(current_user, payload)
    return operation_response(result)


@router.get("/{unit_id}")
async def get_unit(
    unit_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    unit_service: UnitService = Depends(get_unit_service),
    view_cache: ViewCache = Depends(get_view_cache),
):
    path = f"/units/{unit_id}"
    scope = view_scope(current_user)
    cached = await view_cache.get(path, scope)
    if cached is not None:
        return cached

    result = await unit_service.get_unit(current_user, unit_id)
    if result.success:
        await view_cache.set(path, scope, result.data)
    return operation_response(result)


@router.put("/{unit_id}")
async def update_unit(
    unit_id: str,
    payload: UnitUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    unit_service: UnitService = Depends(get_unit_service),
):
    """Update a unit. Name and manager changes are applied for admins only."""
    result = await unit_service.update_unit(current_user, unit_id, payload)
    return operation_response(result)


@router.delete("/{unit_id}")
async def delete_unit(
    unit_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    unit_service: UnitService = Depends(get_unit_service),
):
    result = await unit_service.delete_unit(current_user, unit_id)
    return operation_response(result)
