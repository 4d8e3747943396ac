from .roles import (
    RewardCategory,
    ScheduleStatus,
    StockStatus,
    UploadStatus,
    UserRole,
    parse_role,
)
from .schemas import CurrentUser

__all__ = [
    "CurrentUser",
    "RewardCategory",
    "ScheduleStatus",
    "StockStatus",
    "UploadStatus",
    "UserRole",
    "parse_role",
]
