from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    """Closed set of dashboard roles."""
    ADMIN = "admin"
    STORE_MANAGER = "store_manager"
    CUSTOMER_SERVICE = "customer_service"


class RewardCategory(str, Enum):
    """Reward tiers, one active image per unit and tier."""
    SMALL_PRIZE = "small_prize"
    MEDIUM_PRIZE = "medium_prize"
    TOP_PRIZE = "top_prize"


class UploadStatus(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"
    CANCELED = "canceled"


class ScheduleStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


class StockStatus(str, Enum):
    AVAILABLE = "available"
    CRITICAL = "critical"
    EMPTY = "empty"
    UNKNOWN = "unknown"


def parse_role(value: Optional[str]) -> Optional[UserRole]:
    """Return the ``UserRole`` for ``value``, or None for anything unrecognised."""
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(str(value).lower())
    except ValueError:
        return None


# Roles allowed to manage unit stock in the customer-service sub-app
STOCK_MANAGER_ROLES = frozenset({UserRole.ADMIN, UserRole.CUSTOMER_SERVICE})
