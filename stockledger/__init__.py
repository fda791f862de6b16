"""
Stock Ledger

Inventory stock ledger and unit conversion for a retail point-of-sale
catalog.
"""

__version__ = "1.0.0"
