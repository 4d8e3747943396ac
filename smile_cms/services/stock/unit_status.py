"""
Stock-level labels for units and products.

A product is ``empty`` at 0, ``critical`` at 5 or fewer and ``available``
above that. A unit is ``empty`` when its total is 0, and ``critical`` when the
total is 5 or fewer, or two or more products are empty, or two or more
products are critical.
"""
from dataclasses import dataclass
from typing import Dict, Iterable

from ...models.roles import StockStatus

CRITICAL_THRESHOLD = 5

STATUS_MESSAGES: Dict[StockStatus, Dict[str, str]] = {
    StockStatus.AVAILABLE: {"id": "Hadiah Tersedia", "en": "Prizes Available"},
    StockStatus.CRITICAL: {"id": "Hadiah Hampir Habis", "en": "Prizes Running Low"},
    StockStatus.EMPTY: {"id": "Hadiah Habis", "en": "No Prizes Available"},
    StockStatus.UNKNOWN: {"id": "Status Tidak Diketahui", "en": "Unknown Status"},
}


@dataclass
class StockSummary:
    total_stock: int
    total_products: int
    empty_products: int
    critical_products: int
    available_products: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "total_stock": self.total_stock,
            "total_products": self.total_products,
            "empty_products": self.empty_products,
            "critical_products": self.critical_products,
            "available_products": self.available_products,
        }


def product_status(quantity: int) -> StockStatus:
    if quantity <= 0:
        return StockStatus.EMPTY
    if quantity <= CRITICAL_THRESHOLD:
        return StockStatus.CRITICAL
    return StockStatus.AVAILABLE


def summarize_stock(quantities: Iterable[int]) -> StockSummary:
    values = [max(int(q or 0), 0) for q in quantities]
    labels = [product_status(q) for q in values]
    return StockSummary(
        total_stock=sum(values),
        total_products=len(values),
        empty_products=labels.count(StockStatus.EMPTY),
        critical_products=labels.count(StockStatus.CRITICAL),
        available_products=labels.count(StockStatus.AVAILABLE),
    )


def derive_unit_status(quantities: Iterable[int]) -> StockStatus:
    summary = summarize_stock(quantities)
    if summary.total_stock == 0:
        return StockStatus.EMPTY
    if (
        summary.total_stock <= CRITICAL_THRESHOLD
        or summary.empty_products >= 2
        or summary.critical_products >= 2
    ):
        return StockStatus.CRITICAL
    return StockStatus.AVAILABLE


def status_messages(status: StockStatus) -> Dict[str, str]:
    return dict(STATUS_MESSAGES.get(status, STATUS_MESSAGES[StockStatus.UNKNOWN]))
