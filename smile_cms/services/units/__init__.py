from .unit_service import UnitService

__all__ = [
    'UnitService',
]
