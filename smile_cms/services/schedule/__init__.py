from .schedule_service import ScheduleService, derive_schedule_status

__all__ = [
    'ScheduleService',
    'derive_schedule_status',
]
