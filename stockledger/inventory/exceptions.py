"""
Inventory Error Taxonomy

Validation errors carry the offending field and the violated constraint so
the API can report them verbatim. InsufficientStock carries the available
quantity in the unit the caller asked for.
"""

from typing import Any, Dict, Optional
from uuid import UUID


class StockLedgerError(Exception):
    """Base class for all inventory errors"""

    code = "stock_ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(StockLedgerError):
    """Input rejected before any write"""

    code = "validation_error"

    def __init__(self, field: str, constraint: str, value: Any = None):
        super().__init__(f"{field}: {constraint}")
        self.field = field
        self.constraint = constraint
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "field": self.field,
            "constraint": self.constraint,
        }


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"

    def __init__(self, value: Any, field: str = "quantity", constraint: str = "must be a positive whole number"):
        super().__init__(field, constraint, value)


class InvalidConversionFactor(ValidationError):
    code = "invalid_conversion_factor"

    def __init__(self, value: Any, field: str = "conversion_factor", constraint: str = "must be a finite number greater than 0"):
        super().__init__(field, constraint, value)


class InvalidMovementData(ValidationError):
    code = "invalid_movement_data"


class InvalidProductData(ValidationError):
    code = "invalid_product_data"


class InsufficientStock(StockLedgerError):
    """Outbound movement would drive piece stock below zero"""

    code = "insufficient_stock"

    def __init__(self, available: int, unit: str, requested: int):
        super().__init__(f"Not enough stock. Available: {available} {unit}")
        self.available = available
        self.unit = unit
        self.requested = requested

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "available": self.available,
            "requested": self.requested,
            "unit": self.unit,
        }


class CannotRemoveBaseUnit(StockLedgerError):
    code = "cannot_remove_base_unit"

    def __init__(self, unit_id: UUID, unit_name: str):
        super().__init__(f"Unit '{unit_name}' is the base unit and cannot be removed")
        self.unit_id = unit_id


class DuplicateUnit(StockLedgerError):
    code = "duplicate_unit"

    def __init__(self, unit_name: str):
        super().__init__(f"Unit '{unit_name}' already exists for this product")
        self.unit_name = unit_name


class DuplicateSku(StockLedgerError):
    code = "duplicate_sku"

    def __init__(self, sku: str):
        super().__init__(f"SKU '{sku}' is already in use")
        self.sku = sku


class ProductNotFound(StockLedgerError):
    code = "product_not_found"

    def __init__(self, product_id: UUID):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class UnitNotFound(StockLedgerError):
    code = "unit_not_found"

    def __init__(self, unit_id: UUID):
        super().__init__(f"Unit {unit_id} not found")
        self.unit_id = unit_id


class PermissionDenied(StockLedgerError):
    code = "permission_denied"

    def __init__(self, role: Optional[str], action: str):
        super().__init__(f"Role '{role}' may not {action}")
        self.role = role
        self.action = action


class SnapshotReconciliationError(StockLedgerError):
    """
    The movement was appended but the product snapshot could not be
    recomputed or written.

    With `committed` set the append is already durable, so the cached snapshot
    no longer matches the ledger and must be repaired with a replay, not by
    retrying the partial write. Without it the append shares the failed
    transaction and is rolled back with it.
    """

    code = "snapshot_reconciliation_error"

    def __init__(self, product_id: UUID, movement_id: Optional[UUID], reason: str, committed: bool = True):
        if committed:
            message = (
                f"Stock movement {movement_id} was recorded but the snapshot of product "
                f"{product_id} was not updated: {reason}"
            )
        else:
            message = (
                f"Stock change for product {product_id} was not recorded because the "
                f"snapshot could not be updated: {reason}"
            )
        super().__init__(message)
        self.product_id = product_id
        self.movement_id = movement_id
        self.reason = reason
        self.committed = committed


class MissingBaseUnit:
    """
    Warning, not an error: no active unit of the product is flagged as base.
    Conversion examples fall back to a neutral label when this is present.
    """

    code = "missing_base_unit"

    def __init__(self, product_id: UUID):
        self.product_id = product_id
        self.message = f"Product {product_id} has no active base unit"

    def to_dict(self) -> Dict[str, Any]:
        return {"warning": self.code, "message": self.message}

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MissingBaseUnit) and other.product_id == self.product_id

    def __repr__(self) -> str:
        return f"MissingBaseUnit({self.product_id})"
