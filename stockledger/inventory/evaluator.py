"""
Low Stock Evaluation
"""

from enum import Enum


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"


def evaluate(stock_pcs: int, min_stock_level: int) -> StockStatus:
    """LOW_STOCK when piece stock is at or below the threshold.

    Computed fresh on every read, without memory of the previous status.
    """
    if stock_pcs <= min_stock_level:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def is_low_stock(stock_pcs: int, min_stock_level: int) -> bool:
    return evaluate(stock_pcs, min_stock_level) is StockStatus.LOW_STOCK
