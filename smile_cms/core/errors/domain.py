from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable codes returned in the ``error_code`` field of every error body."""

    # Authentication & Authorization
    UNAUTHORIZED = "AUTH_001"

    # Resources
    RESOURCE_NOT_FOUND = "RES_001"
    RESOURCE_CONFLICT = "RES_002"

    # Validation
    INVALID_INPUT = "VAL_001"

    # Business rules
    INSUFFICIENT_PERMISSIONS = "BIZ_001"
    RATE_LIMITED = "BIZ_002"
    OPERATION_CANCELED = "BIZ_003"

    # System
    INTERNAL_ERROR = "SYS_001"
    EXTERNAL_SERVICE_ERROR = "SYS_003"


def merge_details(base: Dict[str, Any], extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = dict(base)
    if extra:
        merged.update(extra)
    return merged


class ApplicationError(Exception):
    """
    Base for every error the API reports to a client.

    Subclasses set ``default_code`` and ``default_status``; a caller may still
    override either for a one-off error.
    """

    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.status_code = status_code or self.default_status
        self.details: Dict[str, Any] = details or {}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "error_code": self.error_code.value,
            "details": self.details,
        }


class AuthenticationError(ApplicationError):
    default_code = ErrorCode.UNAUTHORIZED
    default_status = 401

    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details)


class PermissionError(ApplicationError):
    default_code = ErrorCode.INSUFFICIENT_PERMISSIONS
    default_status = 403

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)


class AdminRequiredError(PermissionError):
    def __init__(self, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("Admin privileges required", details)


class ResourceNotFoundError(ApplicationError):
    default_code = ErrorCode.RESOURCE_NOT_FOUND
    default_status = 404

    def __init__(self, resource_type: str, resource_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            details=merge_details({"resource_type": resource_type, "resource_id": resource_id}, details),
        )


class ValidationError(ApplicationError):
    """Bad client input. ``field`` names the offending input when there is one."""

    default_code = ErrorCode.INVALID_INPUT
    default_status = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=merge_details({"field": field} if field else {}, details))


class ConflictError(ApplicationError):
    default_code = ErrorCode.RESOURCE_CONFLICT
    default_status = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details)


class RateLimitError(ApplicationError):
    default_code = ErrorCode.RATE_LIMITED
    default_status = 429

    def __init__(self, retry_after: int, details: Optional[Dict[str, Any]] = None) -> None:
        self.retry_after = retry_after
        super().__init__("Too many requests", details=merge_details({"retry_after": retry_after}, details))
