"""
Bearer tokens for dashboard users.

The token only identifies the caller. ``role`` is copied in for clients that
want to render menus, but every request re-reads the profile row and trusts
that instead.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from jose import JWTError, jwt

from .config import get_config


class TokenDecodeError(Exception):
    """The token is malformed, expired or signed with another key."""


def create_access_token(profile: Dict[str, Any], *, expires_minutes: Optional[int] = None) -> str:
    config = get_config()
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.jwt_access_token_expire_minutes)
    claims = {
        "sub": profile.get("id"),
        "email": profile.get("email"),
        "role": profile.get("role"),
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, config.jwt_secret_key, algorithm=config.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    config = get_config()
    try:
        return jwt.decode(token, config.jwt_secret_key, algorithms=[config.jwt_algorithm])
    except JWTError as e:
        raise TokenDecodeError(str(e)) from e


def extract_subject(claims: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(user_id, email)`` from decoded claims."""
    return claims.get("sub"), claims.get("email")
