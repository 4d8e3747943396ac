"""
Unit Images Router - reward image upload, listing and removal
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ...core.dependencies import get_current_user, get_image_upload_service, get_upload_registry
from ...core.operations import operation_response
from ...models.schemas import CurrentUser
from ...services.images.image_validation import ImageFile
from ...services.images.upload_registry import UploadRegistry
from ...services.images.upload_service import ImageUploadService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/units/{unit_id}/images", tags=["unit-images"])


@router.get("")
async def get_unit_images(
    unit_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    upload_service: ImageUploadService = Depends(get_image_upload_service),
):
    """Current image per reward category."""
    result = await upload_service.get_unit_images(current_user, unit_id)
    return operation_response(result, envelope=True)


@router.post("")
async def upload_unit_image(
    unit_id: str,
    image: UploadFile = File(...),
    category: Optional[str] = Form(None),
    upload_id: Optional[str] = Form(None),
    current_user: CurrentUser = Depends(get_current_user),
    upload_service: ImageUploadService = Depends(get_image_upload_service),
    registry: UploadRegistry = Depends(get_upload_registry),
):
    """
    Upload a reward image for one category of a unit.

    A client-supplied ``upload_id`` lets the same client cancel the upload
    through ``POST /api/uploads/{upload_id}/cancel`` while it is in flight.
    """
    upload_id = upload_id or str(uuid.uuid4())
    handle = registry.register(upload_id, current_user, unit_id, category or "")
    try:
        data = await image.read()
        file = ImageFile(
            filename=image.filename or "",
            content_type=image.content_type or "",
            data=data,
        )
        result = await upload_service.upload_image(
            unit_id,
            category,
            file,
            current_user,
            cancel_token=handle.token,
            on_status=handle.set_status,
        )
    finally:
        registry.release(upload_id)
        await image.close()

    logger.info(
        "Upload finished",
        extra={"upload_id": upload_id, "status": result.status.value, "failed_step": result.failed_step},
    )
    return operation_response(result.to_operation_result(), envelope=True)


@router.delete("/{category}")
async def delete_unit_image(
    unit_id: str,
    category: str,
    current_user: CurrentUser = Depends(get_current_user),
    upload_service: ImageUploadService = Depends(get_image_upload_service),
):
    result = await upload_service.delete_unit_image(current_user, unit_id, category)
    return operation_response(result, envelope=True)
