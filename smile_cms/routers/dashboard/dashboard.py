"""
Dashboard Router - counts and recent activity for the caller's units
"""
from fastapi import APIRouter, Depends, Query

from ...core.dependencies import get_current_user, get_dashboard_service, get_view_cache
from ...core.operations import operation_response
from ...models.schemas import CurrentUser
from ...services.cache.view_cache import ViewCache, view_scope
from ...services.dashboard.dashboard_service import ACTIVITY_LIMIT, DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("")
async def get_dashboard(
    limit: int = Query(ACTIVITY_LIMIT, ge=1, le=50),
    current_user: CurrentUser = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service),
    view_cache: ViewCache = Depends(get_view_cache),
):
    scope = view_scope(current_user, str(limit))
    cached = await view_cache.get("/dashboard", scope)
    if cached is not None:
        return cached

    result = await dashboard_service.get_overview(current_user, limit)
    if result.success:
        await view_cache.set("/dashboard", scope, result.data)
    return operation_response(result)
