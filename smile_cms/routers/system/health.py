"""
Health Router - liveness and backend configuration status
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ...core.config import AppConfig
from ...core.dependencies import (
    CosmosService,
    get_app_config,
    get_cosmos_service,
    get_storage_service,
    get_upload_registry,
    get_view_cache,
)
from ...services.cache.view_cache import ViewCache
from ...services.images.upload_registry import UploadRegistry
from ...services.storage.blob_service import StorageService
from ...utils.async_utils import run_sync

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["system-health"])


@router.get("/health")
async def get_system_health(
    config: AppConfig = Depends(get_app_config),
    cosmos_service: CosmosService = Depends(get_cosmos_service),
    storage_service: StorageService = Depends(get_storage_service),
    view_cache: ViewCache = Depends(get_view_cache),
    registry: UploadRegistry = Depends(get_upload_registry),
):
    """
    Report backend readiness.

    Cosmos is only checked for configuration; the blob container is probed.
    """
    blob_ok = await run_sync(storage_service.is_available)
    services = {
        "cosmos_db": "configured" if cosmos_service.is_available() else "not_configured",
        "blob_storage": "healthy" if blob_ok else "unreachable",
    }
    healthy = cosmos_service.is_available() and blob_ok
    if not healthy:
        logger.warning("Health check reports unavailable backends", extra={"services": services})

    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": config.app_version,
        "environment": config.environment,
        "services": services,
        "view_cache": await view_cache.get_cache_info(),
        "active_uploads": len(registry),
    }
