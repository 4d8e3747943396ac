"""
Shared pytest fixtures for the Smile Meter CMS API tests.

Cosmos containers and blob storage are replaced with in-memory fakes that
honour the same error semantics as the Azure SDKs (404 on a missing
document, 409 on a duplicate create), so services run unmodified on top.
"""

import os
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional

import pytest

# Set test environment variables before importing app modules
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["ENVIRONMENT"] = "development"
os.environ["AZURE_STORAGE_ACCOUNT_URL"] = "https://teststorage.blob.core.windows.net"
os.environ.pop("AZURE_COSMOS_ENDPOINT", None)

from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError

from smile_cms.core.config import AppConfig, get_config
from smile_cms.core.dependencies import CosmosService, reset_dependency_caches
from smile_cms.core.errors import BlobUploadError
from smile_cms.core.jwt_utils import create_access_token
from smile_cms.models.roles import UserRole
from smile_cms.models.schemas import CurrentUser
from smile_cms.services.auth.authentication_service import AuthenticationService, get_password_hash
from smile_cms.services.cache.view_cache import ViewCache, ViewInvalidator
from smile_cms.services.dashboard.dashboard_service import DashboardService
from smile_cms.services.images.upload_registry import UploadRegistry
from smile_cms.services.images.upload_service import ImageUploadService
from smile_cms.services.schedule.schedule_service import ScheduleService
from smile_cms.services.stock.stock_service import StockService
from smile_cms.services.units.unit_service import UnitService
from smile_cms.services.users.user_service import UserService


# ============================================================================
# In-memory Azure fakes
# ============================================================================

_QUERY = re.compile(r"SELECT \* FROM c(?: WHERE (?P<where>.+))?", re.IGNORECASE)
_LOWER_EQ = re.compile(r"LOWER\(c\.(\w+)\)\s*=\s*LOWER\((@\w+)\)", re.IGNORECASE)
_ARRAY_CONTAINS = re.compile(r"ARRAY_CONTAINS\((@\w+),\s*c\.(\w+)\)", re.IGNORECASE)
_FIELD_EQ = re.compile(r"c\.(\w+)\s*=\s*(@\w+|true|false)", re.IGNORECASE)


def _condition_matches(condition: str, row: Dict[str, Any], params: Dict[str, Any]) -> bool:
    m = _LOWER_EQ.fullmatch(condition)
    if m:
        return str(row.get(m.group(1)) or "").lower() == str(params[m.group(2)]).lower()
    m = _ARRAY_CONTAINS.fullmatch(condition)
    if m:
        return row.get(m.group(2)) in params[m.group(1)]
    m = _FIELD_EQ.fullmatch(condition)
    if m:
        rhs = m.group(2)
        expected = params[rhs] if rhs.startswith("@") else rhs.lower() == "true"
        return row.get(m.group(1)) == expected
    raise ValueError(f"Unsupported query condition: {condition}")


class InMemoryContainer:
    """
    Dict-backed stand-in for ``azure.cosmos.ContainerProxy``.

    ``fail_on`` maps an operation name (``create``, ``upsert``, ``replace``,
    ``delete``, ``read``, ``query``) to an exception raised on every such call.
    """

    def __init__(self, name: str):
        self.name = name
        self.items: Dict[str, Dict[str, Any]] = {}
        self.fail_on: Dict[str, Exception] = {}
        self.calls: List[str] = []

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        exc = self.fail_on.get(op)
        if exc is not None:
            raise exc

    @staticmethod
    def _stored(body: Dict[str, Any]) -> Dict[str, Any]:
        return {**body, "_rid": "test-rid", "_etag": "test-etag"}

    def _not_found(self, item_id: str) -> CosmosResourceNotFoundError:
        return CosmosResourceNotFoundError(status_code=404, message=f"{item_id} not found in {self.name}")

    def query_items(self, query: str, parameters=None, enable_cross_partition_query=False):
        self._enter("query")
        m = _QUERY.fullmatch(query.strip())
        if not m:
            raise ValueError(f"Unsupported query: {query}")
        params = {p["name"]: p["value"] for p in parameters or []}
        conditions = re.split(r"\s+AND\s+", m.group("where"), flags=re.IGNORECASE) if m.group("where") else []
        return [
            dict(row)
            for row in self.items.values()
            if all(_condition_matches(c.strip(), row, params) for c in conditions)
        ]

    def read_item(self, item, partition_key=None):
        self._enter("read")
        if item not in self.items:
            raise self._not_found(item)
        return dict(self.items[item])

    def create_item(self, body):
        self._enter("create")
        if body["id"] in self.items:
            raise CosmosHttpResponseError(status_code=409, message="Entity with the specified id already exists")
        self.items[body["id"]] = self._stored(body)
        return dict(self.items[body["id"]])

    def upsert_item(self, body):
        self._enter("upsert")
        self.items[body["id"]] = self._stored(body)
        return dict(self.items[body["id"]])

    def replace_item(self, item, body):
        self._enter("replace")
        if item not in self.items:
            raise self._not_found(item)
        self.items[item] = self._stored(body)
        return dict(self.items[item])

    def delete_item(self, item, partition_key=None):
        self._enter("delete")
        if item not in self.items:
            raise self._not_found(item)
        del self.items[item]


class InMemoryBlobStore:
    """Stand-in for ``StorageService`` that keeps objects in a dict."""

    def __init__(self, base_url: str = "https://teststorage.blob.core.windows.net/unit-images"):
        self.base_url = base_url
        self.objects: Dict[str, bytes] = {}
        self.removed: List[str] = []
        self.upload_error: Optional[Exception] = None
        self.remove_error: Optional[Exception] = None
        # Optional asyncio.Event an upload waits on, to hold it in flight
        self.upload_gate = None
        self.upload_started = None
        self.available = True

    async def upload_bytes(self, object_path: str, data: bytes, content_type: Optional[str] = None) -> str:
        if self.upload_started is not None:
            self.upload_started.set()
        if self.upload_gate is not None:
            await self.upload_gate.wait()
        if self.upload_error is not None:
            raise self.upload_error
        if object_path in self.objects:
            raise BlobUploadError(object_path, "BlobAlreadyExists")
        self.objects[object_path] = data
        return object_path

    def get_public_url(self, object_path: str) -> str:
        return f"{self.base_url}/{object_path}"

    async def remove(self, object_paths) -> None:
        if self.remove_error is not None:
            raise self.remove_error
        for path in object_paths:
            self.objects.pop(path, None)
            self.removed.append(path)

    def is_available(self) -> bool:
        return self.available


# ============================================================================
# Configuration & backend fixtures
# ============================================================================

@pytest.fixture
def test_config() -> AppConfig:
    get_config.cache_clear()
    return get_config()


@pytest.fixture
def containers(test_config) -> Dict[str, InMemoryContainer]:
    return {name: InMemoryContainer(name) for name in test_config.cosmos_containers}


@pytest.fixture
def cosmos_service(test_config, containers) -> CosmosService:
    service = CosmosService(test_config)
    service._containers = dict(containers)
    return service


@pytest.fixture
def storage() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def view_cache() -> ViewCache:
    return ViewCache(default_ttl=60)


@pytest.fixture
def invalidator(view_cache) -> ViewInvalidator:
    return ViewInvalidator(view_cache)


@pytest.fixture
def upload_registry() -> UploadRegistry:
    return UploadRegistry()


# ============================================================================
# Callers & seed data
# ============================================================================

@pytest.fixture
def admin_user() -> CurrentUser:
    return CurrentUser(id="admin-1", email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def manager_user() -> CurrentUser:
    return CurrentUser(id="manager-1", email="manager1@example.com", role=UserRole.STORE_MANAGER)


@pytest.fixture
def other_manager() -> CurrentUser:
    return CurrentUser(id="manager-2", email="manager2@example.com", role=UserRole.STORE_MANAGER)


@pytest.fixture
def cs_user() -> CurrentUser:
    return CurrentUser(id="cs-1", email="cs@example.com", role=UserRole.CUSTOMER_SERVICE)


SEED_PASSWORD = "Secret123!"


@lru_cache()
def _seed_password_hash() -> str:
    # bcrypt is slow; hash once per session
    return get_password_hash(SEED_PASSWORD)


@pytest.fixture
def seeded(containers, admin_user, manager_user, other_manager, cs_user) -> Dict[str, InMemoryContainer]:
    """Profiles and identities for every caller, plus unit-1 (manager-1) and unit-2 (manager-2)."""
    password_hash = _seed_password_hash()
    for user in (admin_user, manager_user, other_manager, cs_user):
        containers["users"].items[user.id] = {
            "id": user.id,
            "email": user.email,
            "role": user.role.value,
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
        }
        containers["identities"].items[user.id] = {
            "id": user.id,
            "email": user.email,
            "hashed_password": password_hash,
        }
    containers["units"].items["unit-1"] = {
        "id": "unit-1",
        "name": "Mall Entrance",
        "assigned_manager_id": manager_user.id,
        "api_key": "sm_unit1-key",
        "is_active": True,
    }
    containers["units"].items["unit-2"] = {
        "id": "unit-2",
        "name": "Airport Gate",
        "assigned_manager_id": other_manager.id,
        "api_key": "sm_unit2-key",
        "is_active": True,
    }
    return containers


def make_auth_headers(user: CurrentUser) -> Dict[str, str]:
    token = create_access_token({"id": user.id, "email": user.email, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return make_auth_headers


# ============================================================================
# Service fixtures
# ============================================================================

@pytest.fixture
def auth_service(cosmos_service) -> AuthenticationService:
    return AuthenticationService(cosmos_service)


@pytest.fixture
def upload_service(cosmos_service, storage, invalidator, test_config) -> ImageUploadService:
    return ImageUploadService(cosmos_service, storage, invalidator, test_config)


@pytest.fixture
def unit_service(cosmos_service, storage, invalidator) -> UnitService:
    return UnitService(cosmos_service, storage, invalidator)


@pytest.fixture
def user_service(cosmos_service, auth_service, invalidator) -> UserService:
    return UserService(cosmos_service, auth_service, invalidator)


@pytest.fixture
def schedule_service(cosmos_service, storage, test_config) -> ScheduleService:
    return ScheduleService(cosmos_service, storage, test_config)


@pytest.fixture
def stock_service(cosmos_service) -> StockService:
    return StockService(cosmos_service)


@pytest.fixture
def dashboard_service(cosmos_service) -> DashboardService:
    return DashboardService(cosmos_service)


# ============================================================================
# FastAPI client
# ============================================================================

@pytest.fixture
def app_client(cosmos_service, storage, view_cache, upload_registry, auth_service):
    """TestClient with every backend dependency pointed at the in-memory fakes."""
    from fastapi.testclient import TestClient

    from smile_cms.core import dependencies
    from smile_cms.main import app

    app.dependency_overrides[dependencies.get_cosmos_service] = lambda: cosmos_service
    app.dependency_overrides[dependencies.get_storage_service] = lambda: storage
    app.dependency_overrides[dependencies.get_view_cache] = lambda: view_cache
    app.dependency_overrides[dependencies.get_upload_registry] = lambda: upload_registry
    app.dependency_overrides[dependencies.get_authentication_service] = lambda: auth_service

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
    reset_dependency_caches()
