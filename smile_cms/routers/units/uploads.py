"""
Uploads Router - status and cancellation of in-flight image uploads
"""
from fastapi import APIRouter, Depends

from ...core.dependencies import get_current_user, get_upload_registry
from ...core.errors import PermissionError, ResourceNotFoundError
from ...models.schemas import CurrentUser
from ...services.images.upload_registry import UploadRegistry

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.get("/{upload_id}")
async def get_upload_status(
    upload_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    registry: UploadRegistry = Depends(get_upload_registry),
):
    handle = registry.get(upload_id)
    if handle is None:
        raise ResourceNotFoundError("Upload", upload_id)
    if handle.owner_id != current_user.id and not current_user.is_admin:
        raise PermissionError("You do not have permission to view this upload", details={"upload_id": upload_id})
    return {"success": True, "data": handle.as_dict()}


@router.post("/{upload_id}/cancel")
async def cancel_upload(
    upload_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    registry: UploadRegistry = Depends(get_upload_registry),
):
    """Cancel an upload that has not committed its object yet."""
    handle = registry.cancel(upload_id, current_user)
    data = handle.as_dict()
    data["cancel_accepted"] = handle.token.cancelled and not handle.token.committed
    return {"success": True, "data": data}
