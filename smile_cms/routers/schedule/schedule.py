"""
Schedule Router - reward images queued for a future day
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ...core.dependencies import get_current_user, get_schedule_service, get_view_invalidator
from ...core.operations import operation_response
from ...models.schemas import CurrentUser
from ...services.images.image_validation import ImageFile
from ...services.cache.view_cache import ViewInvalidator
from ...services.schedule.schedule_service import ScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.get("")
async def list_scheduled_images(
    unit_id: Optional[str] = Query(None, alias="unitId"),
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
):
    """Scheduled images the caller can see, ordered by date, with a derived status."""
    result = await schedule_service.list_scheduled_images(current_user, unit_id)
    return operation_response(result, envelope=True)


@router.post("", status_code=201)
async def schedule_image(
    image: UploadFile = File(...),
    unit_id: str = Form(...),
    category: Optional[str] = Form(None),
    scheduled_date: Optional[str] = Form(None),
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
    invalidator: ViewInvalidator = Depends(get_view_invalidator),
):
    try:
        data = await image.read()
    finally:
        await image.close()

    file = ImageFile(
        filename=image.filename or "",
        content_type=image.content_type or "",
        data=data,
    )
    result = await schedule_service.schedule_image(current_user, unit_id, category, file, scheduled_date)
    if result.success:
        # The dashboard activity feed lists new schedules
        await invalidator.invalidate("/dashboard")
    return operation_response(result, envelope=True)


@router.delete("/{schedule_id}")
async def delete_scheduled_image(
    schedule_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    schedule_service: ScheduleService = Depends(get_schedule_service),
    invalidator: ViewInvalidator = Depends(get_view_invalidator),
):
    result = await schedule_service.delete_scheduled_image(current_user, schedule_id)
    if result.success:
        await invalidator.invalidate("/dashboard")
    return operation_response(result)
