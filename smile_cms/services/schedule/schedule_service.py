"""
Scheduled reward images: images queued to become a unit's active image on a given day.

Status is never stored. It is derived on every read from the calendar day of
``scheduled_date`` compared with today.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from ...core.config import AppConfig
from ...core.errors import ApplicationError, ResourceNotFoundError, StorageError, ValidationError
from ...core.operations import operation
from ...models.roles import ScheduleStatus
from ...models.schemas import CurrentUser
from ..auth.unit_permissions import ensure_unit_access, require_caller
from ..images.image_validation import ImageFile, generate_object_key, parse_category, validate_image

if TYPE_CHECKING:
    from ...core.dependencies import CosmosService
    from ..storage.blob_service import StorageService

logger = logging.getLogger(__name__)

SCHEDULE_CONTAINER = "scheduled_images"


def parse_schedule_date(value: Union[str, date, datetime, None]) -> date:
    """Accept a date, a datetime or an ISO string and return the calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError("Scheduled date is required", field="scheduled_date")
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError("Scheduled date must be an ISO date (YYYY-MM-DD)", field="scheduled_date")


def derive_schedule_status(scheduled_date: Union[str, date, datetime], today: Optional[date] = None) -> ScheduleStatus:
    """Later than today is pending, today is active, earlier is expired."""
    day = parse_schedule_date(scheduled_date)
    today = today or date.today()
    if day > today:
        return ScheduleStatus.PENDING
    if day == today:
        return ScheduleStatus.ACTIVE
    return ScheduleStatus.EXPIRED


class ScheduleService:
    def __init__(self, cosmos_service: "CosmosService", storage_service: "StorageService", config: AppConfig):
        self.cosmos = cosmos_service
        self.storage = storage_service
        self.max_size_mb = config.max_image_size_mb
        self.allowed_types = config.allowed_image_types_list

    async def _visible_unit_names(self, caller: CurrentUser) -> Dict[str, str]:
        if caller.is_admin:
            units = await self.cosmos.query_items("units", "SELECT * FROM c")
        else:
            units = await self.cosmos.query_items(
                "units",
                "SELECT * FROM c WHERE c.assigned_manager_id = @manager_id",
                [{"name": "@manager_id", "value": caller.id}],
            )
        return {u["id"]: u.get("name") for u in units}

    @operation("list scheduled images")
    async def list_scheduled_images(
        self, caller: Optional[CurrentUser], unit_id: Optional[str] = None, today: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        caller = require_caller(caller)
        unit_names = await self._visible_unit_names(caller)
        if unit_id:
            if unit_id not in unit_names:
                await ensure_unit_access(self.cosmos, caller, unit_id)
            rows = await self.cosmos.query_items(
                SCHEDULE_CONTAINER,
                "SELECT * FROM c WHERE c.unit_id = @unit_id",
                [{"name": "@unit_id", "value": unit_id}],
            )
        elif caller.is_admin:
            rows = await self.cosmos.query_items(SCHEDULE_CONTAINER, "SELECT * FROM c")
        else:
            if not unit_names:
                return []
            rows = await self.cosmos.query_items(
                SCHEDULE_CONTAINER,
                "SELECT * FROM c WHERE ARRAY_CONTAINS(@unit_ids, c.unit_id)",
                [{"name": "@unit_ids", "value": sorted(unit_names)}],
            )

        result = []
        for row in sorted(rows, key=lambda r: str(r.get("scheduled_date") or "")):
            item = {k: v for k, v in row.items() if not k.startswith("_")}
            item["unit_name"] = unit_names.get(row.get("unit_id"))
            item["status"] = derive_schedule_status(row["scheduled_date"], today).value
            result.append(item)
        return result

    @operation("schedule image", success_status=201)
    async def schedule_image(
        self,
        caller: Optional[CurrentUser],
        unit_id: str,
        category: Optional[str],
        file: ImageFile,
        scheduled_date: Union[str, date, None],
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Access check, validation, blob write, then the row. A failed row write removes the blob."""
        caller = require_caller(caller)
        await ensure_unit_access(
            self.cosmos, caller, unit_id, "You do not have permission to schedule images for this unit"
        )

        reward_category = parse_category(category)
        day = parse_schedule_date(scheduled_date)
        if day < (today or date.today()):
            raise ValidationError("Scheduled date cannot be in the past", field="scheduled_date")
        validation = validate_image(file.size, file.content_type, self.max_size_mb, self.allowed_types)
        if not validation.valid:
            raise ValidationError(validation.error, field="file")

        object_path = "scheduled/" + generate_object_key(unit_id, reward_category.value, file.filename)
        await self.storage.upload_bytes(object_path, file.data, file.content_type)

        row = {
            "id": str(uuid.uuid4()),
            "unit_id": unit_id,
            "category": reward_category.value,
            "image_url": self.storage.get_public_url(object_path),
            "object_path": object_path,
            "scheduled_date": day.isoformat(),
            "scheduled_by": caller.id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            created = await self.cosmos.create_item(SCHEDULE_CONTAINER, row)
        except ApplicationError:
            try:
                await self.storage.remove([object_path])
            except StorageError as e:
                logger.error(
                    "Could not remove scheduled object after row failure",
                    extra={"object_path": object_path, "error_message": e.message},
                )
            raise

        result = {k: v for k, v in created.items() if not k.startswith("_")}
        result["status"] = derive_schedule_status(day, today).value
        return result

    @operation("delete scheduled image")
    async def delete_scheduled_image(self, caller: Optional[CurrentUser], schedule_id: str) -> Dict[str, Any]:
        """Delete the row first, then its object."""
        caller = require_caller(caller)
        row = await self.cosmos.find_item(SCHEDULE_CONTAINER, schedule_id)
        if row is None:
            raise ResourceNotFoundError("Scheduled image", schedule_id)
        await ensure_unit_access(
            self.cosmos, caller, row["unit_id"], "You do not have permission to delete images for this unit"
        )

        await self.cosmos.delete_item(SCHEDULE_CONTAINER, schedule_id)
        if row.get("object_path"):
            try:
                await self.storage.remove([row["object_path"]])
            except StorageError as e:
                logger.warning(
                    "Scheduled row deleted but object removal failed",
                    extra={"object_path": row["object_path"], "error_message": e.message},
                )
        return {"success": True}
