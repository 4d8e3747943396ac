"""
Unit tests for AuthenticationService and token handling.
"""
import pytest
from starlette.requests import Request

from smile_cms.core.jwt_utils import TokenDecodeError, create_access_token, decode_token, extract_subject
from smile_cms.services.auth.authentication_service import extract_ip_address


def _request(headers=None, client=("10.0.0.9", 1234)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.mark.unit
@pytest.mark.asyncio
class TestSignIn:

    async def test_valid_credentials_return_token(self, auth_service, seeded):
        result = await auth_service.sign_in("Manager1@Example.com", "Secret123!")

        assert result.success is True
        assert result.data["token_type"] == "bearer"
        assert result.data["user"] == {"id": "manager-1", "email": "manager1@example.com", "role": "store_manager"}
        payload = decode_token(result.data["access_token"])
        assert extract_subject(payload) == ("manager-1", "manager1@example.com")

    @pytest.mark.parametrize(
        "email, password",
        [("manager1@example.com", "wrong"), ("nobody@example.com", "Secret123!"), ("", "x"), ("a@b.c", None)],
    )
    async def test_bad_credentials_share_one_message(self, auth_service, seeded, email, password):
        result = await auth_service.sign_in(email, password)

        assert result.status_code == 401
        assert result.error == "Invalid email or password"

    async def test_identity_without_profile_is_rejected(self, auth_service, seeded, containers):
        del containers["users"].items["manager-1"]

        result = await auth_service.sign_in("manager1@example.com", "Secret123!")

        assert result.status_code == 401


@pytest.mark.unit
class TestTokens:
    def test_tampered_token_fails_to_decode(self):
        token = create_access_token({"id": "u1", "email": "u@example.com", "role": "admin"})

        with pytest.raises(TokenDecodeError):
            decode_token(token + "x")

    def test_expired_token_fails_to_decode(self):
        token = create_access_token({"id": "u1"}, expires_minutes=-1)

        with pytest.raises(TokenDecodeError):
            decode_token(token)


@pytest.mark.unit
class TestExtractIpAddress:
    def test_forwarded_for_takes_first_hop(self):
        assert extract_ip_address(_request({"X-Forwarded-For": "1.1.1.1, 2.2.2.2"})) == "1.1.1.1"

    def test_real_ip_header(self):
        assert extract_ip_address(_request({"X-Real-IP": "3.3.3.3"})) == "3.3.3.3"

    def test_falls_back_to_peer(self):
        assert extract_ip_address(_request()) == "10.0.0.9"

    def test_unknown_without_peer(self):
        assert extract_ip_address(_request(client=None)) == "unknown"
