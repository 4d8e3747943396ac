"""
Device Router - stock status polled by the Smile Meter units themselves.

Devices send the unit's API key as a bearer token; there is no user session.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header

from ...core.dependencies import get_stock_service
from ...core.operations import operation_response
from ...services.stock.stock_service import StockService

router = APIRouter(prefix="/unit", tags=["device"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@router.get("/{unit_id}/status")
async def get_device_status(
    unit_id: str,
    authorization: Optional[str] = Header(None),
    stock_service: StockService = Depends(get_stock_service),
):
    result = await stock_service.get_device_status(unit_id, parse_bearer(authorization))
    response = operation_response(result)
    response.headers.update(NO_CACHE_HEADERS)
    return response
