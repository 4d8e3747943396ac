"""
Dependency injection for the Smile Meter CMS API.

Every backend client and service is built once per process by an
``lru_cache`` factory and handed to routers through FastAPI ``Depends``.
"""
import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from azure.cosmos import ContainerProxy, CosmosClient
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError
from azure.identity import DefaultAzureCredential
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..models.roles import parse_role
from ..models.schemas import CurrentUser
from ..utils.async_utils import run_sync
from .config import AppConfig, get_config
from .errors import (
    AuthenticationError,
    DatabaseError,
    DocumentConflictError,
    DocumentNotFoundError,
    PermissionError,
    QueryError,
)
from .jwt_utils import TokenDecodeError, decode_token, extract_subject

if TYPE_CHECKING:
    from ..services.auth.authentication_service import AuthenticationService
    from ..services.cache.view_cache import ViewCache, ViewInvalidator
    from ..services.dashboard.dashboard_service import DashboardService
    from ..services.images.upload_registry import UploadRegistry
    from ..services.images.upload_service import ImageUploadService
    from ..services.schedule.schedule_service import ScheduleService
    from ..services.stock.stock_service import StockService
    from ..services.storage.blob_service import StorageService
    from ..services.units.unit_service import UnitService
    from ..services.users.user_service import UserService


logger = logging.getLogger(__name__)

# auto_error=False so a missing header yields our 401 payload instead of FastAPI's 403
security = HTTPBearer(auto_error=False)


# === Configuration Dependencies ===
def get_app_config() -> AppConfig:
    return get_config()


# === Database Service ===
class CosmosService:
    """
    Thin async wrapper around the Cosmos DB containers.

    Every container is partitioned on ``/id``. SDK calls are synchronous and
    run in the threadpool. SDK exceptions never leave this class: a missing
    document becomes ``DocumentNotFoundError``, an id collision becomes
    ``DocumentConflictError`` and anything else becomes ``QueryError``
    carrying the backend message.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self._client: Optional[CosmosClient] = None
        self._database = None
        self._containers: Dict[str, ContainerProxy] = {}

    def is_available(self) -> bool:
        """Check whether Cosmos credentials are configured."""
        return bool(self.config.cosmos_endpoint)

    @property
    def client(self) -> CosmosClient:
        """Lazy-initialize Cosmos client"""
        if self._client is None:
            endpoint = self.config.cosmos_endpoint
            if not endpoint:
                raise RuntimeError("Cosmos DB endpoint not configured. Set 'AZURE_COSMOS_ENDPOINT' env var.")

            if self.config.cosmos_key:
                logger.info("Using Cosmos key auth for Cosmos client initialization")
                self._client = CosmosClient(url=endpoint, credential=self.config.cosmos_key)
            else:
                logger.info("No Cosmos key configured; attempting DefaultAzureCredential")
                self._client = CosmosClient(url=endpoint, credential=DefaultAzureCredential())
        return self._client

    @property
    def database(self):
        """Get database reference"""
        if self._database is None:
            self._database = self.client.get_database_client(self.config.cosmos_database)
        return self._database

    def get_container(self, container_name: str) -> ContainerProxy:
        """Get container reference with caching"""
        if container_name not in self._containers:
            actual_name = self.config.cosmos_containers.get(container_name, container_name)
            self._containers[container_name] = self.database.get_container_client(actual_name)
        return self._containers[container_name]

    async def _call(
        self,
        container_name: str,
        action: str,
        fn: Callable[[ContainerProxy], Any],
        *,
        document_id: Optional[str] = None,
    ) -> Any:
        try:
            container = self.get_container(container_name)
            return await run_sync(fn, container)
        except CosmosResourceNotFoundError as e:
            raise DocumentNotFoundError(container_name, document_id or "") from e
        except CosmosHttpResponseError as e:
            if e.status_code == 409:
                raise DocumentConflictError(container_name, document_id) from e
            logger.error(
                "Cosmos request failed",
                exc_info=True,
                extra={
                    "container": container_name,
                    "action": action,
                    "document_id": document_id,
                    "status_code": e.status_code,
                    "error_message": str(e),
                },
            )
            raise QueryError(container_name, getattr(e, "message", None) or str(e), e.status_code) from e
        except Exception as e:
            logger.error(
                "Unexpected error talking to Cosmos",
                exc_info=True,
                extra={"container": container_name, "action": action, "document_id": document_id},
            )
            raise QueryError(container_name, str(e) or type(e).__name__) from e

    async def query_items(
        self,
        container_name: str,
        query: str,
        parameters: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Run a parameterised SQL query across partitions."""
        return await self._call(
            container_name,
            "query",
            lambda c: list(
                c.query_items(
                    query=query,
                    parameters=parameters or [],
                    enable_cross_partition_query=True,
                )
            ),
        )

    async def read_item(self, container_name: str, item_id: str) -> Dict[str, Any]:
        """Point read. Raises ``DocumentNotFoundError`` when absent."""
        return await self._call(
            container_name,
            "read",
            lambda c: c.read_item(item=item_id, partition_key=item_id),
            document_id=item_id,
        )

    async def find_item(self, container_name: str, item_id: str) -> Optional[Dict[str, Any]]:
        """Point read that returns None for a missing document."""
        try:
            return await self.read_item(container_name, item_id)
        except DocumentNotFoundError:
            return None

    async def create_item(self, container_name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call(
            container_name, "create", lambda c: c.create_item(body=body), document_id=body.get("id")
        )

    async def upsert_item(self, container_name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call(
            container_name, "upsert", lambda c: c.upsert_item(body=body), document_id=body.get("id")
        )

    async def replace_item(self, container_name: str, item_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call(
            container_name,
            "replace",
            lambda c: c.replace_item(item=item_id, body=body),
            document_id=item_id,
        )

    async def delete_item(self, container_name: str, item_id: str) -> None:
        """Delete by id. Raises ``DocumentNotFoundError`` when absent."""
        await self._call(
            container_name,
            "delete",
            lambda c: c.delete_item(item=item_id, partition_key=item_id),
            document_id=item_id,
        )

    # === User profile helpers ===

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.find_item("users", user_id)

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user profile by email address (case-insensitive)."""
        items = await self.query_items(
            "users",
            "SELECT * FROM c WHERE LOWER(c.email) = LOWER(@email)",
            [{"name": "@email", "value": email}],
        )
        return items[0] if items else None


@lru_cache()
def _build_cosmos_service() -> CosmosService:
    config = get_config()
    return CosmosService(config)


def get_cosmos_service() -> CosmosService:
    """Get the cached CosmosDB service instance."""
    return _build_cosmos_service()


# === Authentication Dependencies ===
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    cosmos_service: CosmosService = Depends(get_cosmos_service),
) -> CurrentUser:
    """Resolve the caller from the bearer token and their profile row."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    try:
        payload = decode_token(credentials.credentials)
    except TokenDecodeError as e:
        logger.info("Rejected bearer token", extra={"reason": str(e)})
        raise AuthenticationError() from e

    user_id, _ = extract_subject(payload)
    if not user_id:
        raise AuthenticationError()

    try:
        profile = await cosmos_service.get_user_by_id(user_id)
    except DatabaseError as e:
        logger.error(
            "Cosmos DB error during user authentication",
            extra={"user_id": user_id, "error_message": e.message},
        )
        raise AuthenticationError("Authentication service unavailable") from e

    if not profile:
        raise AuthenticationError()

    role = parse_role(profile.get("role"))
    if role is None:
        logger.warning("User profile carries an unknown role", extra={"user_id": user_id, "role": profile.get("role")})
        raise PermissionError()

    return CurrentUser(id=profile["id"], email=profile.get("email"), role=role)


# === Service Providers ===

@lru_cache()
def _build_storage_service() -> "StorageService":
    from ..services.storage.blob_service import StorageService
    return StorageService(get_config())


def get_storage_service() -> "StorageService":
    """Provide StorageService instance for dependency injection."""
    return _build_storage_service()


@lru_cache()
def _build_view_cache() -> "ViewCache":
    from ..services.cache.view_cache import ViewCache
    return ViewCache(default_ttl=get_config().view_cache_ttl_seconds)


def get_view_cache() -> "ViewCache":
    return _build_view_cache()


def get_view_invalidator(view_cache: "ViewCache" = Depends(get_view_cache)) -> "ViewInvalidator":
    from ..services.cache.view_cache import ViewInvalidator
    return ViewInvalidator(view_cache)


@lru_cache()
def _build_upload_registry() -> "UploadRegistry":
    from ..services.images.upload_registry import UploadRegistry
    return UploadRegistry()


def get_upload_registry() -> "UploadRegistry":
    """Process-wide registry of in-flight uploads."""
    return _build_upload_registry()


@lru_cache()
def _build_authentication_service() -> "AuthenticationService":
    from ..services.auth.authentication_service import AuthenticationService
    return AuthenticationService(get_cosmos_service())


def get_authentication_service() -> "AuthenticationService":
    return _build_authentication_service()


def get_image_upload_service(
    cosmos_service: CosmosService = Depends(get_cosmos_service),
    storage_service: "StorageService" = Depends(get_storage_service),
    invalidator: "ViewInvalidator" = Depends(get_view_invalidator),
    config: AppConfig = Depends(get_app_config),
) -> "ImageUploadService":
    from ..services.images.upload_service import ImageUploadService
    return ImageUploadService(cosmos_service, storage_service, invalidator, config)


def get_unit_service(
    cosmos_service: CosmosService = Depends(get_cosmos_service),
    storage_service: "StorageService" = Depends(get_storage_service),
    invalidator: "ViewInvalidator" = Depends(get_view_invalidator),
) -> "UnitService":
    from ..services.units.unit_service import UnitService
    return UnitService(cosmos_service, storage_service, invalidator)


def get_user_service(
    cosmos_service: CosmosService = Depends(get_cosmos_service),
    auth_service: "AuthenticationService" = Depends(get_authentication_service),
    invalidator: "ViewInvalidator" = Depends(get_view_invalidator),
) -> "UserService":
    from ..services.users.user_service import UserService
    return UserService(cosmos_service, auth_service, invalidator)


def get_schedule_service(
    cosmos_service: CosmosService = Depends(get_cosmos_service),
    storage_service: "StorageService" = Depends(get_storage_service),
    config: AppConfig = Depends(get_app_config),
) -> "ScheduleService":
    from ..services.schedule.schedule_service import ScheduleService
    return ScheduleService(cosmos_service, storage_service, config)


def get_stock_service(cosmos_service: CosmosService = Depends(get_cosmos_service)) -> "StockService":
    from ..services.stock.stock_service import StockService
    return StockService(cosmos_service)


def get_dashboard_service(cosmos_service: CosmosService = Depends(get_cosmos_service)) -> "DashboardService":
    from ..services.dashboard.dashboard_service import DashboardService
    return DashboardService(cosmos_service)


# === Exports ===
__all__ = [
    "CosmosService",
    "get_app_config",
    "get_authentication_service",
    "get_cosmos_service",
    "get_current_user",
    "get_dashboard_service",
    "get_image_upload_service",
    "get_schedule_service",
    "get_stock_service",
    "get_storage_service",
    "get_unit_service",
    "get_upload_registry",
    "get_user_service",
    "get_view_cache",
    "get_view_invalidator",
    "reset_dependency_caches",
]


def reset_dependency_caches() -> None:
    """Clear cached dependency instances (useful for testing)."""
    _build_cosmos_service.cache_clear()
    _build_storage_service.cache_clear()
    _build_view_cache.cache_clear()
    _build_upload_registry.cache_clear()
    _build_authentication_service.cache_clear()
