from .stock_service import StockService
from .unit_status import derive_unit_status, product_status, status_messages

__all__ = [
    'StockService',
    'derive_unit_status',
    'product_status',
    'status_messages',
]
