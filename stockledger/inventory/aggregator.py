"""
Stock Aggregation

The product's stock fields are a cache over the movement ledger. This module
is the single fold that produces them: `apply` advances a snapshot by one
movement, `replay` folds the whole history from the initial snapshot. Both
paths share the same per-movement step, so a snapshot built incrementally
is always reproducible from initial stock plus history.
"""

from dataclasses import dataclass, asdict, replace
from typing import Dict, Iterable, Optional, Protocol, Tuple

import structlog

from stockledger.database.models import MovementDirection, UnitType
from stockledger.inventory.conversion import to_base_units, to_pieces, validate_factor
from stockledger.inventory.exceptions import InsufficientStock

logger = structlog.get_logger(__name__)

PIECES_LABEL = "pcs"


class MovementLike(Protocol):
    direction: MovementDirection
    quantity: int
    unit_type: UnitType
    quantity_pcs: Optional[int]


@dataclass(frozen=True)
class StockSnapshot:
    """Stock figures cached on a product"""
    stock_quantity: int
    stock_pcs: int
    total_added: int = 0
    total_reduced: int = 0
    movement_count: int = 0

    @classmethod
    def initial(cls, stock_quantity: int, stock_pcs: int) -> "StockSnapshot":
        return cls(stock_quantity=stock_quantity, stock_pcs=stock_pcs)

    @classmethod
    def from_product(cls, product) -> "StockSnapshot":
        return cls(
            stock_quantity=product.stock_quantity,
            stock_pcs=product.stock_pcs,
            total_added=product.total_stock_added,
            total_reduced=product.total_stock_reduced,
            movement_count=product.stock_movement_count,
        )

    @classmethod
    def initial_of(cls, product) -> "StockSnapshot":
        return cls.initial(product.initial_stock_quantity, product.initial_stock_pcs)

    def write_to(self, product) -> None:
        """Copy the snapshot onto a product record."""
        product.stock_quantity = self.stock_quantity
        product.stock_pcs = self.stock_pcs
        product.total_stock_added = self.total_added
        product.total_stock_reduced = self.total_reduced
        product.stock_movement_count = self.movement_count

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def movement_pieces(quantity: int, unit_type: UnitType, factor: int) -> int:
    """Piece equivalent of a movement quantity."""
    if UnitType(unit_type) is UnitType.BASE_UNIT:
        return to_pieces(quantity, factor)
    return quantity


def check_available(
    snapshot: StockSnapshot,
    pieces: int,
    quantity: int,
    unit_type: UnitType,
    factor: int,
    base_unit: str = "base_unit",
) -> None:
    """Raise InsufficientStock if removing `pieces` would go below zero."""
    if pieces <= snapshot.stock_pcs:
        return
    if UnitType(unit_type) is UnitType.BASE_UNIT:
        available = to_base_units(max(snapshot.stock_pcs, 0), factor)
        unit = base_unit
    else:
        available = max(snapshot.stock_pcs, 0)
        unit = PIECES_LABEL
    raise InsufficientStock(available=available, unit=unit, requested=quantity)


def _step(snapshot: StockSnapshot, direction: MovementDirection, pieces: int, factor: int) -> StockSnapshot:
    if MovementDirection(direction) is MovementDirection.INBOUND:
        stock_pcs = snapshot.stock_pcs + pieces
        added, reduced = snapshot.total_added + pieces, snapshot.total_reduced
    else:
        stock_pcs = snapshot.stock_pcs - pieces
        added, reduced = snapshot.total_added, snapshot.total_reduced + pieces

    return StockSnapshot(
        stock_quantity=to_base_units(stock_pcs, factor),
        stock_pcs=stock_pcs,
        total_added=added,
        total_reduced=reduced,
        movement_count=snapshot.movement_count + 1,
    )


def apply(
    snapshot: StockSnapshot,
    direction: MovementDirection,
    quantity: int,
    unit_type: UnitType,
    factor: int,
    base_unit: str = "base_unit",
) -> StockSnapshot:
    """
    Advance a snapshot by one movement.

    The quantity is converted to pieces (base-unit movements are multiplied
    by the factor), added or subtracted from the piece stock, and the
    base-unit stock is re-derived from pieces with floor rounding. Totals grow
    by the piece equivalent and the movement count by one.

    Raises:
        InsufficientStock: outbound movement larger than the piece stock
        InvalidConversionFactor: factor is not a positive finite number
    """
    validate_factor(factor, field="pcs_per_base_unit")
    pieces = movement_pieces(quantity, unit_type, factor)
    if MovementDirection(direction) is MovementDirection.OUTBOUND:
        check_available(snapshot, pieces, quantity, unit_type, factor, base_unit)
    return _step(snapshot, direction, pieces, factor)


def replay(initial: StockSnapshot, movements: Iterable[MovementLike], factor: int) -> StockSnapshot:
    """
    Fold the full ordered history (oldest first) over the initial snapshot.

    Each movement contributes the piece equivalent recorded when it was
    accepted. The history is not re-validated against stock sufficiency:
    it already happened.
    """
    validate_factor(factor, field="pcs_per_base_unit")
    snapshot = replace(initial, total_added=0, total_reduced=0, movement_count=0)
    for movement in movements:
        pieces = movement.quantity_pcs
        if pieces is None:
            pieces = movement_pieces(movement.quantity, movement.unit_type, factor)
        snapshot = _step(snapshot, movement.direction, pieces, factor)
    return snapshot


def drift(stored: StockSnapshot, replayed: StockSnapshot) -> Dict[str, Tuple[int, int]]:
    """Fields where the stored snapshot differs from the replayed one."""
    stored_fields, replayed_fields = stored.to_dict(), replayed.to_dict()
    return {
        name: (value, replayed_fields[name])
        for name, value in stored_fields.items()
        if value != replayed_fields[name]
    }
