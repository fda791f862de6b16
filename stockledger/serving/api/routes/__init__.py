"""
API Routes Module
"""
from .health import router as health_router
from .products import router as products_router
from .stock import router as stock_router
from .units import product_units_router, units_router
from .conversions import router as conversions_router

__all__ = [
    "health_router",
    "products_router",
    "stock_router",
    "product_units_router",
    "units_router",
    "conversions_router",
]
