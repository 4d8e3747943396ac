"""
Stock Router - prize stock per unit and the product catalogue
"""
from fastapi import APIRouter, Depends

from ...core.dependencies import get_current_user, get_stock_service, get_view_invalidator
from ...core.operations import operation_response
from ...models.schemas import CurrentUser, ProductCreate, StockUpdate
from ...services.cache.view_cache import ViewInvalidator
from ...services.stock.stock_service import StockService

router = APIRouter(prefix="", tags=["stock"])


@router.get("/units/{unit_id}/stock")
async def get_unit_stock(
    unit_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    stock_service: StockService = Depends(get_stock_service),
):
    result = await stock_service.get_unit_stock(current_user, unit_id)
    return operation_response(result)


@router.put("/units/{unit_id}/stock/{product_id}")
async def update_unit_stock(
    unit_id: str,
    product_id: str,
    payload: StockUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    stock_service: StockService = Depends(get_stock_service),
    invalidator: ViewInvalidator = Depends(get_view_invalidator),
):
    """Set the quantity of one product at one unit and refresh the unit status."""
    result = await stock_service.set_stock_quantity(
        current_user, unit_id, product_id, payload.quantity, payload.reason
    )
    if result.success:
        # Unit list and detail views carry the derived status
        await invalidator.invalidate_unit(unit_id)
    return operation_response(result)


@router.post("/products", status_code=201)
async def create_product(
    payload: ProductCreate,
    current_user: CurrentUser = Depends(get_current_user),
    stock_service: StockService = Depends(get_stock_service),
    invalidator: ViewInvalidator = Depends(get_view_invalidator),
):
    result = await stock_service.create_product(current_user, payload)
    if result.success and payload.unit_id:
        await invalidator.invalidate_unit(payload.unit_id)
    return operation_response(result)


@router.delete("/products/{product_id}")
async def deactivate_product(
    product_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    stock_service: StockService = Depends(get_stock_service),
    invalidator: ViewInvalidator = Depends(get_view_invalidator),
):
    result = await stock_service.deactivate_product(current_user, product_id)
    if result.success:
        await invalidator.invalidate("/units", "/dashboard")
    return operation_response(result)
