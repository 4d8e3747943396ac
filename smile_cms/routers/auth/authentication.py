"""
Authentication Router - sign-in and the current caller
"""
import logging

from fastapi import APIRouter, Depends, Request

from ...core.dependencies import get_authentication_service, get_current_user
from ...core.errors import ValidationError
from ...core.operations import operation_response
from ...models.schemas import CurrentUser
from ...services.auth.authentication_service import AuthenticationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["authentication"])


@router.post("/login")
async def login_for_access_token(
    request: Request,
    auth_service: AuthenticationService = Depends(get_authentication_service),
):
    """Handle user login and token generation."""
    try:
        data = await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be JSON") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    email = data.get("email")
    password = data.get("password")
    missing_fields = [
        field for field, value in {"email": email, "password": password}.items() if not value
    ]
    if missing_fields:
        logger.warning("Login attempt with missing credentials: %s", missing_fields)
        raise ValidationError(
            "Email and password are required",
            details={"missing_fields": missing_fields},
        )

    result = await auth_service.sign_in(email, password)
    return operation_response(result)


@router.get("/me")
async def read_current_user(current_user: CurrentUser = Depends(get_current_user)):
    """Return the authenticated caller's profile."""
    return {
        "id": current_user.id,
        "email": current_user.email,
        "role": current_user.role.value,
    }
