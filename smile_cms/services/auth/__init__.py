"""
Authentication and Authorization Services

- Identity records, password hashing and sign-in
- Unit-scoped access checks
"""

from .authentication_service import AuthenticationService
from .unit_permissions import UnitAccess, can_access_unit, check_unit_access

__all__ = [
    'AuthenticationService',
    'UnitAccess',
    'can_access_unit',
    'check_unit_access',
]
