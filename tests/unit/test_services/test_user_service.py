"""
Unit tests for UserService

Tests cover:
- Admin-only CRUD over identity + profile pairs
- Cached unit views dropped after a profile change
- Compensation: identity rolled back on profile failure, profile restored on
  identity failure, identity restored on profile update failure
"""
import pytest
from azure.cosmos.exceptions import CosmosHttpResponseError

from smile_cms.models.schemas import UserCreate, UserUpdate
from smile_cms.services.auth.authentication_service import verify_password


def backend_down() -> CosmosHttpResponseError:
    return CosmosHttpResponseError(status_code=500, message="backend down")


@pytest.mark.unit
@pytest.mark.asyncio
class TestUserReads:

    async def test_list_users_sorted_by_email(self, user_service, seeded, admin_user):
        result = await user_service.list_users(admin_user)

        emails = [u["email"] for u in result.data]
        assert emails == sorted(emails)
        assert set(result.data[0]) == {"id", "email", "role", "created_at", "updated_at"}

    async def test_list_users_filtered_by_role(self, user_service, seeded, admin_user):
        result = await user_service.list_users(admin_user, role="store_manager")

        assert {u["id"] for u in result.data} == {"manager-1", "manager-2"}

    async def test_list_users_rejects_unknown_role(self, user_service, seeded, admin_user):
        result = await user_service.list_users(admin_user, role="wizard")

        assert result.status_code == 400

    async def test_non_admin_cannot_list(self, user_service, seeded, manager_user):
        result = await user_service.list_users(manager_user)

        assert result.status_code == 403
        assert result.error == "Admin privileges required"

    async def test_get_missing_user_is_not_found(self, user_service, seeded, admin_user):
        result = await user_service.get_user(admin_user, "ghost")

        assert result.status_code == 404


@pytest.mark.unit
@pytest.mark.critical
@pytest.mark.asyncio
class TestCreateUser:

    async def test_creates_identity_then_profile(self, user_service, seeded, containers, admin_user):
        result = await user_service.create_user(
            admin_user, UserCreate(email="new@example.com", password="pw-123456", role="customer_service")
        )

        assert result.success is True
        assert result.status_code == 201
        user_id = result.data["id"]
        assert containers["users"].items[user_id]["role"] == "customer_service"
        identity = containers["identities"].items[user_id]
        assert verify_password("pw-123456", identity["hashed_password"])
        assert "hashed_password" not in result.data

    @pytest.mark.parametrize(
        "payload",
        [
            UserCreate(email="a@example.com", password="pw"),
            UserCreate(email="a@example.com", role="admin"),
            UserCreate(password="pw", role="admin"),
        ],
    )
    async def test_missing_fields_are_rejected(self, user_service, seeded, admin_user, payload):
        result = await user_service.create_user(admin_user, payload)

        assert result.status_code == 400
        assert result.error == "Email, password, and role are required"

    async def test_invalid_role_is_rejected(self, user_service, seeded, containers, admin_user):
        before = len(containers["identities"].items)

        result = await user_service.create_user(
            admin_user, UserCreate(email="a@example.com", password="pw", role="owner")
        )

        assert result.status_code == 400
        assert len(containers["identities"].items) == before

    async def test_duplicate_email_conflicts(self, user_service, seeded, admin_user):
        result = await user_service.create_user(
            admin_user, UserCreate(email="MANAGER1@example.com", password="pw", role="admin")
        )

        assert result.status_code == 409

    async def test_profile_failure_rolls_back_identity(self, user_service, seeded, containers, admin_user):
        containers["users"].fail_on["create"] = backend_down()
        before = set(containers["identities"].items)

        result = await user_service.create_user(
            admin_user, UserCreate(email="new@example.com", password="pw", role="admin")
        )

        assert result.success is False
        assert result.status_code == 500
        assert set(containers["identities"].items) == before


@pytest.mark.unit
@pytest.mark.asyncio
class TestUpdateUser:

    async def test_update_role_and_email(self, user_service, seeded, containers, admin_user):
        result = await user_service.update_user(
            admin_user, "manager-1", UserUpdate(email="m1-new@example.com", role="customer_service")
        )

        assert result.success is True
        assert containers["users"].items["manager-1"]["role"] == "customer_service"
        assert containers["identities"].items["manager-1"]["email"] == "m1-new@example.com"

    async def test_role_change_drops_cached_unit_views(self, user_service, seeded, view_cache, admin_user):
        await view_cache.set("/units", "manager-1:store_manager:", [{"id": "unit-1"}])
        await view_cache.set("/units/unit-1", "manager-1:store_manager", {"id": "unit-1"})

        await user_service.update_user(admin_user, "manager-1", UserUpdate(role="customer_service"))

        assert await view_cache.get("/units", "manager-1:store_manager:") is None
        assert await view_cache.get("/units/unit-1", "manager-1:store_manager") is None

    async def test_password_change_rehashes(self, user_service, seeded, containers, admin_user):
        await user_service.update_user(admin_user, "manager-1", UserUpdate(password="changed-pw"))

        assert verify_password("changed-pw", containers["identities"].items["manager-1"]["hashed_password"])

    async def test_email_taken_by_another_identity_conflicts(self, user_service, seeded, admin_user):
        result = await user_service.update_user(admin_user, "manager-1", UserUpdate(email="manager2@example.com"))

        assert result.status_code == 409

    async def test_profile_failure_restores_identity(self, user_service, seeded, containers, admin_user):
        containers["users"].fail_on["replace"] = backend_down()

        result = await user_service.update_user(admin_user, "manager-1", UserUpdate(email="m1-new@example.com"))

        assert result.success is False
        assert containers["identities"].items["manager-1"]["email"] == "manager1@example.com"


@pytest.mark.unit
@pytest.mark.critical
@pytest.mark.asyncio
class TestDeleteUser:

    async def test_deletes_profile_then_identity(self, user_service, seeded, containers, admin_user):
        result = await user_service.delete_user(admin_user, "manager-2")

        assert result.data == {"success": True}
        assert "manager-2" not in containers["users"].items
        assert "manager-2" not in containers["identities"].items

    async def test_delete_drops_cached_unit_views(self, user_service, seeded, view_cache, admin_user):
        await view_cache.set("/units/unit-2", "admin-1:admin", {"manager": {"id": "manager-2"}})

        await user_service.delete_user(admin_user, "manager-2")

        assert await view_cache.get("/units/unit-2", "admin-1:admin") is None

    async def test_identity_failure_restores_profile(self, user_service, seeded, containers, admin_user):
        containers["identities"].fail_on["delete"] = backend_down()

        result = await user_service.delete_user(admin_user, "manager-2")

        assert result.success is False
        assert containers["users"].items["manager-2"]["email"] == "manager2@example.com"
        assert "manager-2" in containers["identities"].items

    async def test_missing_identity_still_deletes_profile(self, user_service, seeded, containers, admin_user):
        del containers["identities"].items["manager-2"]

        result = await user_service.delete_user(admin_user, "manager-2")

        assert result.success is True
        assert "manager-2" not in containers["users"].items

    async def test_non_admin_cannot_delete(self, user_service, seeded, containers, manager_user):
        result = await user_service.delete_user(manager_user, "manager-2")

        assert result.status_code == 403
        assert "manager-2" in containers["users"].items
