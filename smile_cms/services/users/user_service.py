"""
User accounts: an identity record (credentials) paired with a profile row (role).

Every operation here is admin-only. The identity is the parent: it is
created first and deleted last, and a failed second step undoes the first.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ...core.errors import ApplicationError, DocumentNotFoundError, ResourceNotFoundError, ValidationError
from ...core.operations import operation
from ...models.roles import UserRole, parse_role
from ...models.schemas import CurrentUser, UserCreate, UserUpdate
from ..auth.unit_permissions import require_admin

if TYPE_CHECKING:
    from ...core.dependencies import CosmosService
    from ..auth.authentication_service import AuthenticationService
    from ..cache.view_cache import ViewInvalidator

logger = logging.getLogger(__name__)

USERS_CONTAINER = "users"
PUBLIC_FIELDS = ("id", "email", "role", "created_at", "updated_at")


def public_user(profile: Dict[str, Any]) -> Dict[str, Any]:
    return {k: profile.get(k) for k in PUBLIC_FIELDS}


def _parse_role_or_fail(value: Optional[str]) -> UserRole:
    role = parse_role(value)
    if role is None:
        raise ValidationError(
            "Invalid role. Expected one of: " + ", ".join(r.value for r in UserRole),
            field="role",
        )
    return role


class UserService:
    def __init__(
        self,
        cosmos_service: "CosmosService",
        auth_service: "AuthenticationService",
        invalidator: "ViewInvalidator",
    ):
        self.cosmos = cosmos_service
        self.auth = auth_service
        self.invalidator = invalidator

    async def _get_profile(self, user_id: str) -> Dict[str, Any]:
        profile = await self.cosmos.get_user_by_id(user_id)
        if profile is None:
            raise ResourceNotFoundError("User", user_id)
        return profile

    @operation("list users")
    async def list_users(self, caller: Optional[CurrentUser], role: Optional[str] = None) -> List[Dict[str, Any]]:
        require_admin(caller)
        if role:
            wanted = _parse_role_or_fail(role)
            rows = await self.cosmos.query_items(
                USERS_CONTAINER,
                "SELECT * FROM c WHERE c.role = @role",
                [{"name": "@role", "value": wanted.value}],
            )
        else:
            rows = await self.cosmos.query_items(USERS_CONTAINER, "SELECT * FROM c")
        return [public_user(r) for r in sorted(rows, key=lambda r: str(r.get("email") or "").lower())]

    @operation("fetch user")
    async def get_user(self, caller: Optional[CurrentUser], user_id: str) -> Dict[str, Any]:
        require_admin(caller)
        return public_user(await self._get_profile(user_id))

    @operation("create user", success_status=201)
    async def create_user(self, caller: Optional[CurrentUser], payload: UserCreate) -> Dict[str, Any]:
        """Create the identity, then the profile. A failed profile write removes the identity."""
        require_admin(caller)
        if not payload.email or not payload.password or not payload.role:
            raise ValidationError("Email, password, and role are required")
        role = _parse_role_or_fail(payload.role)

        user_id = str(uuid.uuid4())
        await self.auth.create_identity(user_id, payload.email, payload.password)

        now = datetime.now(timezone.utc).isoformat()
        profile = {
            "id": user_id,
            "email": payload.email,
            "role": role.value,
            "created_at": now,
            "updated_at": now,
        }
        try:
            created = await self.cosmos.create_item(USERS_CONTAINER, profile)
        except ApplicationError:
            try:
                await self.auth.delete_identity(user_id)
            except ApplicationError as rollback_error:
                logger.error(
                    "Failed to roll back identity after profile creation failure",
                    extra={"user_id": user_id, "error_message": rollback_error.message},
                )
            raise

        logger.info("User created", extra={"user_id": user_id, "role": role.value})
        return public_user(created)

    @operation("update user")
    async def update_user(self, caller: Optional[CurrentUser], user_id: str, payload: UserUpdate) -> Dict[str, Any]:
        """Identity changes (email, password) land first, then the profile row."""
        require_admin(caller)
        profile = await self._get_profile(user_id)
        role = _parse_role_or_fail(payload.role) if payload.role else None

        identity_snapshot = None
        if payload.email or payload.password:
            identity_snapshot = await self.cosmos.find_item(self.auth.CONTAINER, user_id)
            await self.auth.update_identity(user_id, email=payload.email, password=payload.password)

        if payload.email:
            profile["email"] = payload.email
        if role is not None:
            profile["role"] = role.value
        profile["updated_at"] = datetime.now(timezone.utc).isoformat()

        try:
            updated = await self.cosmos.replace_item(USERS_CONTAINER, user_id, profile)
        except ApplicationError:
            if identity_snapshot is not None:
                await self._restore(self.auth.CONTAINER, identity_snapshot)
            raise
        await self.invalidator.invalidate_user(user_id)
        return public_user(updated)

    @operation("delete user")
    async def delete_user(self, caller: Optional[CurrentUser], user_id: str) -> Dict[str, Any]:
        """Delete the profile, then the identity. A failed identity delete restores the profile."""
        require_admin(caller)
        profile = await self._get_profile(user_id)

        await self.cosmos.delete_item(USERS_CONTAINER, user_id)
        try:
            await self.auth.delete_identity(user_id)
        except DocumentNotFoundError:
            logger.warning("User had no identity record", extra={"user_id": user_id})
        except ApplicationError:
            await self._restore(USERS_CONTAINER, profile)
            raise

        await self.invalidator.invalidate_user(user_id)
        logger.info("User deleted", extra={"user_id": user_id})
        return {"success": True}

    async def _restore(self, container: str, snapshot: Dict[str, Any]) -> None:
        body = {k: v for k, v in snapshot.items() if not k.startswith("_")}
        try:
            await self.cosmos.upsert_item(container, body)
        except ApplicationError as e:
            logger.error(
                "Failed to restore document after a failed follow-up step",
                extra={"container": container, "document_id": body.get("id"), "error_message": e.message},
            )
