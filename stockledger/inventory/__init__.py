"""
Inventory Module

Stock ledger, snapshot aggregation, unit conversion and the product unit
registry.
"""
from .aggregator import StockSnapshot
from .catalog import ProductCatalog
from .evaluator import StockStatus, evaluate
from .identity import Actor, Role
from .ledger import StockLedger
from .service import SnapshotReport, StockChange, StockService
from .units import ProductUnitRegistry

__all__ = [
    "StockSnapshot",
    "ProductCatalog",
    "StockStatus",
    "evaluate",
    "Actor",
    "Role",
    "StockLedger",
    "SnapshotReport",
    "StockChange",
    "StockService",
    "ProductUnitRegistry",
]
