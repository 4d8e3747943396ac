"""
Unit records: list, read, create, update and delete.

Admins manage every unit. Store managers read and touch only the units
assigned to them, and cannot rename or reassign them.
"""
import logging
import secrets
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ...core.errors import ApplicationError, ResourceNotFoundError, StorageError, ValidationError
from ...core.operations import operation
from ...models.roles import RewardCategory, StockStatus
from ...models.schemas import CurrentUser, UnitCreate, UnitUpdate
from ..auth.unit_permissions import ensure_unit_access, require_admin, require_caller
from ..images.image_validation import extract_category_from_path

if TYPE_CHECKING:
    from ...core.dependencies import CosmosService
    from ..cache.view_cache import ViewInvalidator
    from ..storage.blob_service import StorageService

logger = logging.getLogger(__name__)

UNITS_CONTAINER = "units"
IMAGES_CONTAINER = "unit_images"
STATUS_CONTAINER = "unit_status"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_api_key() -> str:
    return f"sm_{secrets.token_urlsafe(24)}"


def public_unit(unit: Dict[str, Any]) -> Dict[str, Any]:
    """Strip Cosmos system fields and the device secret from a unit row."""
    return {k: v for k, v in unit.items() if not k.startswith("_") and k != "api_key"}


class UnitService:
    def __init__(
        self,
        cosmos_service: "CosmosService",
        storage_service: "StorageService",
        invalidator: "ViewInvalidator",
    ):
        self.cosmos = cosmos_service
        self.storage = storage_service
        self.invalidator = invalidator

    async def _statuses_for(self, unit_ids: List[str]) -> Dict[str, str]:
        if not unit_ids:
            return {}
        rows = await self.cosmos.query_items(
            STATUS_CONTAINER,
            "SELECT * FROM c WHERE ARRAY_CONTAINS(@ids, c.id)",
            [{"name": "@ids", "value": unit_ids}],
        )
        return {row["id"]: row.get("status", StockStatus.UNKNOWN.value) for row in rows}

    async def _manager_emails(self, manager_ids: List[str]) -> Dict[str, Optional[str]]:
        if not manager_ids:
            return {}
        rows = await self.cosmos.query_items(
            "users",
            "SELECT * FROM c WHERE ARRAY_CONTAINS(@ids, c.id)",
            [{"name": "@ids", "value": manager_ids}],
        )
        return {row["id"]: row.get("email") for row in rows}

    @operation("list units")
    async def list_units(self, caller: Optional[CurrentUser], manager_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List units visible to the caller.

        Non-admins always get their own units; ``manager_id`` only filters for admins.
        """
        caller = require_caller(caller)
        if not caller.is_admin:
            manager_id = caller.id

        if manager_id:
            units = await self.cosmos.query_items(
                UNITS_CONTAINER,
                "SELECT * FROM c WHERE c.assigned_manager_id = @manager_id",
                [{"name": "@manager_id", "value": manager_id}],
            )
        else:
            units = await self.cosmos.query_items(UNITS_CONTAINER, "SELECT * FROM c")

        statuses = await self._statuses_for([u["id"] for u in units])
        managers = await self._manager_emails(
            sorted({u["assigned_manager_id"] for u in units if u.get("assigned_manager_id")})
        )

        result = []
        for unit in sorted(units, key=lambda u: u.get("name") or ""):
            row = public_unit(unit)
            row["status"] = statuses.get(unit["id"], StockStatus.UNKNOWN.value)
            row["manager_name"] = managers.get(unit.get("assigned_manager_id"))
            result.append(row)
        return result

    @operation("fetch unit")
    async def get_unit(self, caller: Optional[CurrentUser], unit_id: str) -> Dict[str, Any]:
        """Unit with its images grouped by category and its manager profile."""
        caller = require_caller(caller)
        if caller.is_admin:
            unit = await self.cosmos.find_item(UNITS_CONTAINER, unit_id)
            if unit is None:
                raise ResourceNotFoundError("Unit", unit_id)
        else:
            unit = await ensure_unit_access(self.cosmos, caller, unit_id)

        images: Dict[str, Optional[Dict[str, Any]]] = {c.value: None for c in RewardCategory}
        for row in await self.cosmos.query_items(
            IMAGES_CONTAINER,
            "SELECT * FROM c WHERE c.unit_id = @unit_id",
            [{"name": "@unit_id", "value": unit_id}],
        ):
            category = row.get("category") or extract_category_from_path(row.get("object_path"))
            if category in images:
                images[category] = {k: v for k, v in row.items() if not k.startswith("_")}

        manager = None
        if unit.get("assigned_manager_id"):
            profile = await self.cosmos.get_user_by_id(unit["assigned_manager_id"])
            if profile:
                manager = {"id": profile["id"], "email": profile.get("email"), "role": profile.get("role")}

        status_row = await self.cosmos.find_item(STATUS_CONTAINER, unit_id)

        result = public_unit(unit)
        result["images"] = images
        result["manager"] = manager
        result["status"] = (status_row or {}).get("status", StockStatus.UNKNOWN.value)
        return result

    @operation("create unit", success_status=201)
    async def create_unit(self, caller: Optional[CurrentUser], payload: UnitCreate) -> Dict[str, Any]:
        require_admin(caller)
        name = (payload.name or "").strip()
        if not name:
            raise ValidationError("Unit name is required", field="name")

        now = _now()
        unit = {
            "id": str(uuid.uuid4()),
            "name": name,
            "assigned_manager_id": payload.assigned_manager_id or None,
            "api_key": generate_api_key(),
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        created = await self.cosmos.create_item(UNITS_CONTAINER, unit)
        await self.invalidator.invalidate_unit(unit["id"])
        logger.info("Unit created", extra={"unit_id": unit["id"], "user_id": caller.id})
        # the device key is only ever returned here
        return {k: v for k, v in created.items() if not k.startswith("_")}

    @operation("update unit")
    async def update_unit(self, caller: Optional[CurrentUser], unit_id: str, payload: UnitUpdate) -> Dict[str, Any]:
        """
        Update a unit.

        Only admins may change ``name`` or ``assigned_manager_id``; the same
        fields sent by an assigned manager are ignored and only
        ``updated_at`` moves.
        """
        caller = require_caller(caller)
        if caller.is_admin:
            unit = await self.cosmos.find_item(UNITS_CONTAINER, unit_id)
            if unit is None:
                raise ResourceNotFoundError("Unit", unit_id)
        else:
            unit = await ensure_unit_access(
                self.cosmos, caller, unit_id, "You do not have permission to update this unit"
            )

        if caller.is_admin:
            fields = payload.model_fields_set
            if "name" in fields:
                name = (payload.name or "").strip()
                if not name:
                    raise ValidationError("Unit name is required", field="name")
                unit["name"] = name
            if "assigned_manager_id" in fields:
                unit["assigned_manager_id"] = payload.assigned_manager_id or None
        elif payload.model_fields_set & {"name", "assigned_manager_id"}:
            logger.info("Ignoring admin-only unit fields from non-admin", extra={"unit_id": unit_id, "user_id": caller.id})

        unit["updated_at"] = _now()
        updated = await self.cosmos.replace_item(UNITS_CONTAINER, unit_id, unit)
        await self.invalidator.invalidate_unit(unit_id)
        return public_unit(updated)

    @operation("delete unit")
    async def delete_unit(self, caller: Optional[CurrentUser], unit_id: str) -> Dict[str, Any]:
        """
        Delete a unit and its image rows.

        Image rows go first, then the unit. If the unit delete fails the image
        rows are restored from the snapshot. Stored objects are removed only
        after both deletes succeed.
        """
        require_admin(caller)
        if await self.cosmos.find_item(UNITS_CONTAINER, unit_id) is None:
            raise ResourceNotFoundError("Unit", unit_id)

        snapshot = await self.cosmos.query_items(
            IMAGES_CONTAINER,
            "SELECT * FROM c WHERE c.unit_id = @unit_id",
            [{"name": "@unit_id", "value": unit_id}],
        )
        deleted: List[Dict[str, Any]] = []
        try:
            for row in snapshot:
                await self.cosmos.delete_item(IMAGES_CONTAINER, row["id"])
                deleted.append(row)
            await self.cosmos.delete_item(UNITS_CONTAINER, unit_id)
        except ApplicationError:
            await self._restore_images(unit_id, deleted)
            raise

        paths = [row["object_path"] for row in snapshot if row.get("object_path")]
        if paths:
            try:
                await self.storage.remove(paths)
            except StorageError as e:
                logger.warning(
                    "Unit deleted but some image objects could not be removed",
                    extra={"unit_id": unit_id, "error_message": e.message},
                )

        await self.invalidator.invalidate_unit(unit_id)
        logger.info("Unit deleted", extra={"unit_id": unit_id, "images_removed": len(snapshot)})
        return {"success": True}

    async def _restore_images(self, unit_id: str, rows: List[Dict[str, Any]]) -> None:
        for row in rows:
            body = {k: v for k, v in row.items() if not k.startswith("_")}
            try:
                await self.cosmos.upsert_item(IMAGES_CONTAINER, body)
            except ApplicationError as e:
                logger.error(
                    "Failed to restore image row after unit delete failure",
                    extra={"unit_id": unit_id, "row_id": row.get("id"), "error_message": e.message},
                )
