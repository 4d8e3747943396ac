"""
Prize stock per unit, the stock audit trail and the derived unit status.
"""
import logging
import secrets
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ...core.errors import (
    ApplicationError,
    AuthenticationError,
    PermissionError,
    ResourceNotFoundError,
    ValidationError,
)
from ...core.operations import operation
from ...models.roles import STOCK_MANAGER_ROLES
from ...models.schemas import CurrentUser, ProductCreate
from ..auth.unit_permissions import ensure_unit_access, require_caller
from .unit_status import derive_unit_status, product_status, status_messages, summarize_stock

if TYPE_CHECKING:
    from ...core.dependencies import CosmosService

logger = logging.getLogger(__name__)

PRODUCTS_CONTAINER = "products"
STOCK_CONTAINER = "unit_stock"
TRANSACTIONS_CONTAINER = "stock_transactions"
STATUS_CONTAINER = "unit_status"

INVALID_DEVICE_CREDENTIALS = "Invalid unit ID or API key"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def stock_row_id(unit_id: str, product_id: str) -> str:
    return f"{unit_id}:{product_id}"


def _require_stock_manager(caller: Optional[CurrentUser]) -> CurrentUser:
    caller = require_caller(caller)
    if caller.role not in STOCK_MANAGER_ROLES:
        raise PermissionError("You do not have permission to manage products", details={"user_id": caller.id})
    return caller


class StockService:
    def __init__(self, cosmos_service: "CosmosService"):
        self.cosmos = cosmos_service

    async def _ensure_stock_access(self, caller: Optional[CurrentUser], unit_id: str) -> None:
        caller = require_caller(caller)
        if caller.role in STOCK_MANAGER_ROLES:
            if await self.cosmos.find_item("units", unit_id) is None:
                raise ResourceNotFoundError("Unit", unit_id)
            return
        await ensure_unit_access(
            self.cosmos, caller, unit_id, "You do not have permission to manage stock for this unit"
        )

    async def _active_products(self) -> Dict[str, Dict[str, Any]]:
        rows = await self.cosmos.query_items(
            PRODUCTS_CONTAINER, "SELECT * FROM c WHERE c.is_active = true"
        )
        return {p["id"]: p for p in rows}

    async def _stock_rows(self, unit_id: str) -> List[Dict[str, Any]]:
        return await self.cosmos.query_items(
            STOCK_CONTAINER,
            "SELECT * FROM c WHERE c.unit_id = @unit_id",
            [{"name": "@unit_id", "value": unit_id}],
        )

    async def _stocked_products(self, unit_id: str) -> List[Dict[str, Any]]:
        """Stock rows of active products, each with the product name and label."""
        products = await self._active_products()
        items = []
        for row in await self._stock_rows(unit_id):
            product = products.get(row.get("product_id"))
            if product is None:
                continue
            quantity = int(row.get("quantity") or 0)
            items.append({
                "id": product["id"],
                "name": product.get("name"),
                "category": product.get("category") or "uncategorized",
                "quantity": quantity,
                "status": product_status(quantity).value,
            })
        return sorted(items, key=lambda i: i["name"] or "")

    async def recompute_unit_status(self, unit_id: str) -> Dict[str, Any]:
        items = await self._stocked_products(unit_id)
        quantities = [i["quantity"] for i in items]
        status = derive_unit_status(quantities)
        row = {
            "id": unit_id,
            "unit_id": unit_id,
            "status": status.value,
            "total_stock": sum(quantities),
            "updated_at": _now(),
        }
        try:
            await self.cosmos.upsert_item(STATUS_CONTAINER, row)
        except ApplicationError as e:
            logger.error("Failed to store unit status", extra={"unit_id": unit_id, "error_message": e.message})
        return {"items": items, "status": status, "row": row}

    @operation("fetch unit stock")
    async def get_unit_stock(self, caller: Optional[CurrentUser], unit_id: str) -> Dict[str, Any]:
        """Every active product with this unit's quantity (0 when never stocked)."""
        await self._ensure_stock_access(caller, unit_id)
        products = await self._active_products()
        quantities = {row.get("product_id"): int(row.get("quantity") or 0) for row in await self._stock_rows(unit_id)}

        items = []
        for product in sorted(products.values(), key=lambda p: p.get("name") or ""):
            quantity = quantities.get(product["id"], 0)
            items.append({
                "product_id": product["id"],
                "name": product.get("name"),
                "description": product.get("description"),
                "quantity": quantity,
                "status": product_status(quantity).value,
            })
        stocked = [q for pid, q in quantities.items() if pid in products]
        return {
            "unit_id": unit_id,
            "status": derive_unit_status(stocked).value,
            "stock_summary": summarize_stock(stocked).as_dict(),
            "products": items,
        }

    @operation("update stock")
    async def set_stock_quantity(
        self,
        caller: Optional[CurrentUser],
        unit_id: str,
        product_id: str,
        quantity: int,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Write the new quantity, append the audit entry, then refresh the unit status."""
        if quantity is None or int(quantity) < 0:
            raise ValidationError("Quantity must be zero or more", field="quantity")
        await self._ensure_stock_access(caller, unit_id)
        product = await self.cosmos.find_item(PRODUCTS_CONTAINER, product_id)
        if product is None or not product.get("is_active", True):
            raise ResourceNotFoundError("Product", product_id)

        row_id = stock_row_id(unit_id, product_id)
        existing = await self.cosmos.find_item(STOCK_CONTAINER, row_id)
        before = int((existing or {}).get("quantity") or 0)
        after = int(quantity)

        saved = await self.cosmos.upsert_item(STOCK_CONTAINER, {
            "id": row_id,
            "unit_id": unit_id,
            "product_id": product_id,
            "quantity": after,
            "last_updated_by": caller.id,
            "updated_at": _now(),
        })
        await self._log_transaction(unit_id, product_id, before, after, reason or "Admin adjustment", caller.id)
        refreshed = await self.recompute_unit_status(unit_id)

        return {
            "unit_id": unit_id,
            "product_id": product_id,
            "quantity": saved.get("quantity", after),
            "status": product_status(after).value,
            "unit_status": refreshed["status"].value,
        }

    async def _log_transaction(
        self, unit_id: str, product_id: str, before: int, after: int, reason: str, performed_by: str
    ) -> None:
        entry = {
            "id": str(uuid.uuid4()),
            "unit_id": unit_id,
            "product_id": product_id,
            "transaction_type": "adjustment",
            "quantity_before": before,
            "quantity_after": after,
            "quantity_change": after - before,
            "reason": reason,
            "performed_by": performed_by,
            "created_at": _now(),
        }
        try:
            await self.cosmos.create_item(TRANSACTIONS_CONTAINER, entry)
        except ApplicationError as e:
            # Audit failures are logged but don't roll back the stock change
            logger.error(
                "Failed to record stock transaction",
                extra={"unit_id": unit_id, "product_id": product_id, "error_message": e.message},
            )

    @operation("create product", success_status=201)
    async def create_product(self, caller: Optional[CurrentUser], payload: ProductCreate) -> Dict[str, Any]:
        caller = _require_stock_manager(caller)
        name = payload.name.strip()
        if not name:
            raise ValidationError("Product name is required", field="name")
        if payload.initial_stock and not payload.unit_id:
            raise ValidationError("A unit is required to set initial stock", field="unit_id")
        if payload.unit_id and await self.cosmos.find_item("units", payload.unit_id) is None:
            raise ResourceNotFoundError("Unit", payload.unit_id)

        product = {
            "id": str(uuid.uuid4()),
            "name": name,
            "description": payload.description,
            "is_active": True,
            "created_at": _now(),
        }
        created = await self.cosmos.create_item(PRODUCTS_CONTAINER, product)

        if payload.unit_id and payload.initial_stock:
            await self.cosmos.upsert_item(STOCK_CONTAINER, {
                "id": stock_row_id(payload.unit_id, product["id"]),
                "unit_id": payload.unit_id,
                "product_id": product["id"],
                "quantity": payload.initial_stock,
                "last_updated_by": caller.id,
                "updated_at": _now(),
            })
            await self._log_transaction(
                payload.unit_id, product["id"], 0, payload.initial_stock,
                "Initial stock on product creation", caller.id,
            )
            await self.recompute_unit_status(payload.unit_id)

        return {k: v for k, v in created.items() if not k.startswith("_")}

    @operation("deactivate product")
    async def deactivate_product(self, caller: Optional[CurrentUser], product_id: str) -> Dict[str, Any]:
        """Soft delete: the product stays for the audit trail but stops counting."""
        _require_stock_manager(caller)
        product = await self.cosmos.find_item(PRODUCTS_CONTAINER, product_id)
        if product is None:
            raise ResourceNotFoundError("Product", product_id)
        product["is_active"] = False
        product["updated_at"] = _now()
        await self.cosmos.replace_item(PRODUCTS_CONTAINER, product_id, product)

        affected = {row.get("unit_id") for row in await self.cosmos.query_items(
            STOCK_CONTAINER,
            "SELECT * FROM c WHERE c.product_id = @product_id",
            [{"name": "@product_id", "value": product_id}],
        )}
        for unit_id in sorted(u for u in affected if u):
            await self.recompute_unit_status(unit_id)
        return {"success": True}

    @operation("fetch device status")
    async def get_device_status(self, unit_id: str, api_key: Optional[str]) -> Dict[str, Any]:
        """
        Stock report for a polling device, authenticated by the unit's API key.

        Only active units with a matching key are answered; anything else is
        the same 401.
        """
        if not api_key:
            raise AuthenticationError("Missing or invalid authorization header")
        unit = await self.cosmos.find_item("units", unit_id)
        if (
            unit is None
            or not unit.get("is_active", False)
            or not unit.get("api_key")
            or not secrets.compare_digest(str(unit["api_key"]).encode("utf-8"), api_key.encode("utf-8"))
        ):
            raise AuthenticationError(INVALID_DEVICE_CREDENTIALS)

        refreshed = await self.recompute_unit_status(unit_id)
        items = refreshed["items"]
        status = refreshed["status"]
        return {
            "unit_id": unit_id,
            "unit_name": unit.get("name"),
            "status": status.value,
            "timestamp": _now(),
            "stock_summary": summarize_stock(i["quantity"] for i in items).as_dict(),
            "products": items,
            "status_messages": status_messages(status),
        }
