"""
Role and unit-assignment checks shared by every unit-scoped operation.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from ...core.errors import AdminRequiredError, AuthenticationError, DatabaseError, PermissionError
from ...models.roles import UserRole, parse_role
from ...models.schemas import CurrentUser

if TYPE_CHECKING:
    from ...core.dependencies import CosmosService

logger = logging.getLogger(__name__)

GRANTED = "granted"
NOT_ASSIGNED = "not_assigned"
NOT_FOUND = "not_found"
LOOKUP_FAILED = "lookup_failed"


def can_access_unit(caller_role: Any, caller_id: Optional[str], assigned_manager_id: Optional[str]) -> bool:
    """Admins reach every unit; anyone else only the units assigned to them."""
    if parse_role(caller_role) is UserRole.ADMIN:
        return True
    if not assigned_manager_id or not caller_id:
        return False
    return assigned_manager_id == caller_id


@dataclass
class UnitAccess:
    allowed: bool
    reason: str
    unit: Optional[Dict[str, Any]] = None


async def check_unit_access(cosmos: "CosmosService", caller: CurrentUser, unit_id: str) -> UnitAccess:
    """
    Read the unit and decide whether ``caller`` may act on it.

    Never raises. A missing unit and a failed read are both denials; the
    failed read is also logged at error level.
    """
    try:
        unit = await cosmos.find_item("units", unit_id)
    except DatabaseError as e:
        logger.error(
            "Unit lookup failed during access check",
            extra={"unit_id": unit_id, "user_id": caller.id, "error_message": e.message},
        )
        return UnitAccess(allowed=False, reason=LOOKUP_FAILED)

    if unit is None:
        return UnitAccess(allowed=False, reason=NOT_FOUND)

    if can_access_unit(caller.role, caller.id, unit.get("assigned_manager_id")):
        return UnitAccess(allowed=True, reason=GRANTED, unit=unit)

    logger.info(
        "Unit access denied",
        extra={"unit_id": unit_id, "user_id": caller.id, "role": caller.role.value},
    )
    return UnitAccess(allowed=False, reason=NOT_ASSIGNED, unit=unit)


def require_caller(caller: Optional[CurrentUser]) -> CurrentUser:
    if caller is None:
        raise AuthenticationError()
    return caller


def require_admin(caller: Optional[CurrentUser]) -> CurrentUser:
    caller = require_caller(caller)
    if caller.role is not UserRole.ADMIN:
        raise AdminRequiredError(details={"user_id": caller.id})
    return caller


async def ensure_unit_access(
    cosmos: "CosmosService",
    caller: Optional[CurrentUser],
    unit_id: str,
    message: str = "You do not have permission to access this unit",
) -> Dict[str, Any]:
    """Raise ``PermissionError`` unless ``caller`` may act on the unit; return the unit row."""
    caller = require_caller(caller)
    access = await check_unit_access(cosmos, caller, unit_id)
    if not access.allowed:
        raise PermissionError(message, details={"unit_id": unit_id, "reason": access.reason})
    return access.unit
