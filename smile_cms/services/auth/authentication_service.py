"""
Authentication Service - credential checks and identity records

This service handles ONLY identity-related operations:
- Password hashing and verification
- Identity record lifecycle (the email/password half of an account)
- Issuing access tokens on sign-in

Profiles (role, display data) live in the ``users`` container and are
managed by the UserService.
"""
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from fastapi import Request
from passlib.context import CryptContext

from ...core.errors import AuthenticationError, ConflictError, ResourceNotFoundError
from ...core.jwt_utils import create_access_token
from ...core.operations import operation
from ...utils.logging_config import get_logger

if TYPE_CHECKING:
    from ...core.dependencies import CosmosService

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

INVALID_CREDENTIALS = "Invalid email or password"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def extract_ip_address(request: Request) -> str:
    """
    Extract client IP address from request headers.

    Forwarded headers win over the socket peer so clients behind a load
    balancer are told apart.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first one
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return getattr(request.client, "host", "unknown") if request.client else "unknown"


class AuthenticationService:
    """
    Dedicated service for identity records and sign-in.

    An identity shares its id with the user profile it belongs to.
    """

    CONTAINER = "identities"

    def __init__(self, cosmos_service: "CosmosService"):
        self.cosmos = cosmos_service
        self.logger = get_logger(__name__)

    async def get_identity_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        items = await self.cosmos.query_items(
            self.CONTAINER,
            "SELECT * FROM c WHERE LOWER(c.email) = LOWER(@email)",
            [{"name": "@email", "value": email}],
        )
        return items[0] if items else None

    async def create_identity(self, user_id: str, email: str, password: str) -> Dict[str, Any]:
        """
        Create the identity record for a new account.

        Raises:
            ConflictError: If another identity already uses ``email``.
        """
        if await self.get_identity_by_email(email):
            raise ConflictError("A user with this email already exists", details={"email": email})

        now = datetime.now(timezone.utc).isoformat()
        identity = {
            "id": user_id,
            "email": email,
            "hashed_password": get_password_hash(password),
            "created_at": now,
            "updated_at": now,
        }
        created = await self.cosmos.create_item(self.CONTAINER, identity)
        self.logger.info(f"Created identity for user {user_id}")
        return created

    async def update_identity(
        self, user_id: str, *, email: Optional[str] = None, password: Optional[str] = None
    ) -> Dict[str, Any]:
        identity = await self.cosmos.find_item(self.CONTAINER, user_id)
        if identity is None:
            raise ResourceNotFoundError("Identity", user_id)

        if email and email.lower() != str(identity.get("email", "")).lower():
            existing = await self.get_identity_by_email(email)
            if existing and existing.get("id") != user_id:
                raise ConflictError("A user with this email already exists", details={"email": email})
            identity["email"] = email
        if password:
            identity["hashed_password"] = get_password_hash(password)
        identity["updated_at"] = datetime.now(timezone.utc).isoformat()
        return await self.cosmos.replace_item(self.CONTAINER, user_id, identity)

    async def delete_identity(self, user_id: str) -> None:
        await self.cosmos.delete_item(self.CONTAINER, user_id)
        self.logger.info(f"Deleted identity for user {user_id}")

    @operation("sign in")
    async def sign_in(self, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        """
        Verify credentials and issue an access token.

        Unknown email, wrong password and a missing profile all answer with
        the same 401 so accounts cannot be probed.
        """
        if not email or not password:
            raise AuthenticationError(INVALID_CREDENTIALS)

        identity = await self.get_identity_by_email(email)
        if not identity or not verify_password(password, identity.get("hashed_password", "")):
            self.logger.info("Sign-in rejected", extra={"email": email})
            raise AuthenticationError(INVALID_CREDENTIALS)

        profile = await self.cosmos.get_user_by_id(identity["id"])
        if not profile:
            self.logger.warning("Identity has no profile row", extra={"user_id": identity["id"]})
            raise AuthenticationError(INVALID_CREDENTIALS)

        token = create_access_token(profile)
        return {
            "access_token": token,
            "token_type": "bearer",
            "user": {"id": profile["id"], "email": profile.get("email"), "role": profile.get("role")},
        }
