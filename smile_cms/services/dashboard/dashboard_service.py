"""
Dashboard overview: unit and user counts plus a recent-activity feed.

The feed is assembled from the rows the other services already write
(image rows, schedule rows and stock transactions). There is no separate
activity log.
"""
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ...core.operations import operation
from ...models.schemas import CurrentUser
from ..auth.unit_permissions import require_caller

if TYPE_CHECKING:
    from ...core.dependencies import CosmosService

logger = logging.getLogger(__name__)

ACTIVITY_LIMIT = 10


def category_label(category: Optional[str]) -> str:
    return (category or "").replace("_", " ").title()


def _upload_activity(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "type": "upload",
        "unit_id": row.get("unit_id"),
        "user_id": row.get("updated_by"),
        "action": f"uploaded a new image for {category_label(row.get('category'))}",
        "time": row.get("updated_at"),
        "category": row.get("category"),
    }


def _schedule_activity(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "type": "schedule",
        "unit_id": row.get("unit_id"),
        "user_id": row.get("scheduled_by"),
        "action": f"scheduled a {category_label(row.get('category'))} image for {row.get('scheduled_date')}",
        "time": row.get("created_at"),
        "category": row.get("category"),
    }


def _stock_activity(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "type": "update",
        "unit_id": row.get("unit_id"),
        "user_id": row.get("performed_by"),
        "action": f"changed stock from {row.get('quantity_before')} to {row.get('quantity_after')}",
        "time": row.get("created_at"),
        "category": None,
    }


ACTIVITY_SOURCES = (
    ("unit_images", _upload_activity),
    ("scheduled_images", _schedule_activity),
    ("stock_transactions", _stock_activity),
)


class DashboardService:
    def __init__(self, cosmos_service: "CosmosService"):
        self.cosmos = cosmos_service

    async def _visible_units(self, caller: CurrentUser) -> List[Dict[str, Any]]:
        if caller.is_admin:
            return await self.cosmos.query_items("units", "SELECT * FROM c")
        return await self.cosmos.query_items(
            "units",
            "SELECT * FROM c WHERE c.assigned_manager_id = @manager_id",
            [{"name": "@manager_id", "value": caller.id}],
        )

    async def _user_emails(self, user_ids: List[str]) -> Dict[str, Optional[str]]:
        if not user_ids:
            return {}
        rows = await self.cosmos.query_items(
            "users",
            "SELECT * FROM c WHERE ARRAY_CONTAINS(@ids, c.id)",
            [{"name": "@ids", "value": user_ids}],
        )
        return {row["id"]: row.get("email") for row in rows}

    async def recent_activity(
        self, unit_names: Dict[str, Optional[str]], limit: int = ACTIVITY_LIMIT
    ) -> List[Dict[str, Any]]:
        """Newest uploads, schedules and stock changes across ``unit_names``."""
        if not unit_names:
            return []
        params = [{"name": "@ids", "value": sorted(unit_names)}]
        items: List[Dict[str, Any]] = []
        for container, to_activity in ACTIVITY_SOURCES:
            rows = await self.cosmos.query_items(
                container, "SELECT * FROM c WHERE ARRAY_CONTAINS(@ids, c.unit_id)", params
            )
            items.extend(to_activity(row) for row in rows)

        items.sort(key=lambda item: item["time"] or "", reverse=True)
        items = items[:limit]

        emails = await self._user_emails(sorted({i["user_id"] for i in items if i["user_id"]}))
        feed = []
        for item in items:
            unit_id = item.pop("unit_id")
            user_id = item.pop("user_id")
            item["unit"] = {"id": unit_id, "name": unit_names.get(unit_id)}
            item["user"] = {"id": user_id, "email": emails.get(user_id)}
            feed.append(item)
        return feed

    @operation("fetch dashboard")
    async def get_overview(self, caller: Optional[CurrentUser], limit: int = ACTIVITY_LIMIT) -> Dict[str, Any]:
        """
        Counts and the activity feed for the units the caller can see.

        Admins see every unit and the user count. Everyone else sees only
        their assigned units, and ``total_users`` is None.
        """
        caller = require_caller(caller)
        units = await self._visible_units(caller)

        total_users = None
        if caller.is_admin:
            total_users = len(await self.cosmos.query_items("users", "SELECT * FROM c"))

        unit_names = {u["id"]: u.get("name") for u in units}
        logger.debug("Building dashboard", extra={"user_id": caller.id, "units": len(units)})
        return {
            "stats": {
                "total_units": len(units),
                "active_units": sum(1 for u in units if u.get("is_active", True)),
                "total_users": total_users,
            },
            "recent_activity": await self.recent_activity(unit_names, limit),
        }
