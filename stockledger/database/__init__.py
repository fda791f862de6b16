"""
Database Module
"""
from .connection import init_database, close_database, get_db, get_db_dependency
from .models import Base, Product, StockMovement, ProductUnit, MovementDirection, UnitType

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_db_dependency",
    "Base",
    "Product",
    "StockMovement",
    "ProductUnit",
    "MovementDirection",
    "UnitType",
]
