"""
Integration tests for admin user management over HTTP.
"""
import pytest


@pytest.mark.integration
class TestUsersEndpoints:
    def test_admin_lists_users_filtered_by_role(self, app_client, seeded, admin_user, auth_headers):
        response = app_client.get("/api/users", params={"role": "store_manager"}, headers=auth_headers(admin_user))

        assert response.status_code == 200
        assert [u["id"] for u in response.json()] == ["manager-1", "manager-2"]

    def test_unknown_role_filter_is_400(self, app_client, seeded, admin_user, auth_headers):
        response = app_client.get("/api/users", params={"role": "intern"}, headers=auth_headers(admin_user))

        assert response.status_code == 400

    def test_non_admin_is_403(self, app_client, seeded, cs_user, auth_headers):
        response = app_client.get("/api/users", headers=auth_headers(cs_user))

        assert response.status_code == 403
        assert response.json()["error"] == "Admin privileges required"

    def test_created_user_can_sign_in(self, app_client, seeded, containers, admin_user, auth_headers):
        created = app_client.post(
            "/api/users",
            json={"email": "new@example.com", "password": "Welcome1!", "role": "customer_service"},
            headers=auth_headers(admin_user),
        )

        assert created.status_code == 201
        user_id = created.json()["id"]
        assert user_id in containers["users"].items
        assert user_id in containers["identities"].items

        login = app_client.post("/api/auth/login", json={"email": "new@example.com", "password": "Welcome1!"})
        assert login.json()["user"]["role"] == "customer_service"

    def test_duplicate_email_is_409(self, app_client, seeded, admin_user, auth_headers):
        response = app_client.post(
            "/api/users",
            json={"email": "CS@example.com", "password": "x", "role": "admin"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 409

    def test_update_and_delete_user(self, app_client, seeded, containers, admin_user, auth_headers):
        headers = auth_headers(admin_user)

        updated = app_client.put("/api/users/cs-1", json={"role": "store_manager"}, headers=headers)
        assert updated.json()["role"] == "store_manager"

        deleted = app_client.delete("/api/users/cs-1", headers=headers)
        assert deleted.json() == {"success": True}
        assert "cs-1" not in containers["users"].items
        assert "cs-1" not in containers["identities"].items
        assert app_client.get("/api/users/cs-1", headers=headers).status_code == 404
