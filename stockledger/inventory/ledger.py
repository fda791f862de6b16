"""
Stock Movement Ledger

Append-only access to stock movements. There is no update or delete:
corrections are new movements in the opposite direction.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal
from numbers import Real
from typing import List, Optional, Union
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.config import get_settings
from stockledger.database.models import MovementDirection, StockMovement, UnitType
from stockledger.inventory.aggregator import movement_pieces
from stockledger.inventory.exceptions import InvalidMovementData, InvalidQuantity
from stockledger.inventory.identity import Actor

logger = structlog.get_logger(__name__)
settings = get_settings()


def validate_quantity(quantity, field: str = "quantity") -> int:
    """Movement quantities are positive whole numbers in their unit."""
    if isinstance(quantity, bool) or not isinstance(quantity, (Real, Decimal)):
        raise InvalidQuantity(quantity, field=field, constraint="must be a number")
    if isinstance(quantity, Decimal):
        if not quantity.is_finite():
            raise InvalidQuantity(quantity, field=field, constraint="must be finite")
    elif not math.isfinite(quantity):
        raise InvalidQuantity(quantity, field=field, constraint="must be finite")
    if quantity <= 0:
        raise InvalidQuantity(quantity, field=field, constraint="must be greater than 0")
    if quantity != int(quantity):
        raise InvalidQuantity(quantity, field=field, constraint="must be a whole number")
    return int(quantity)


def parse_direction(value: Union[str, MovementDirection]) -> MovementDirection:
    try:
        return MovementDirection(value)
    except ValueError:
        raise InvalidMovementData(
            "direction", f"must be one of {[d.value for d in MovementDirection]}", value
        ) from None


def parse_unit_type(value: Union[str, UnitType]) -> UnitType:
    try:
        return UnitType(value)
    except ValueError:
        raise InvalidMovementData(
            "unit_type", f"must be one of {[u.value for u in UnitType]}", value
        ) from None


def reference_number(direction: MovementDirection, created_at: datetime) -> str:
    """Human-auditable token: prefix plus creation time in epoch milliseconds."""
    prefix = (
        settings.inventory.inbound_reference_prefix
        if direction is MovementDirection.INBOUND
        else settings.inventory.outbound_reference_prefix
    )
    return f"{prefix}-{int(created_at.timestamp() * 1000)}"


class StockLedger:
    """
    Ledger of stock movements backed by the `stock_movements` table.

    Example:
        ledger = StockLedger(db)
        movement = await ledger.append(product.id, "inbound", 2, "base_unit", 12, actor)
        history = await ledger.list_by_product(product.id)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        product_id: UUID,
        direction: Union[str, MovementDirection],
        quantity,
        unit_type: Union[str, UnitType],
        pcs_per_base_unit: int,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> StockMovement:
        """
        Record one movement.

        Validates the quantity and enum values, stamps the acceptance time and
        reference number, and flushes the row so it has an id.

        Raises:
            InvalidQuantity: quantity is not a positive whole number
            InvalidMovementData: direction or unit_type not recognized
        """
        quantity = validate_quantity(quantity)
        direction = parse_direction(direction)
        unit_type = parse_unit_type(unit_type)

        created_at = datetime.now(timezone.utc)
        movement = StockMovement(
            product_id=product_id,
            direction=direction,
            quantity=quantity,
            unit_type=unit_type,
            quantity_pcs=movement_pieces(quantity, unit_type, pcs_per_base_unit),
            reference_number=reference_number(direction, created_at),
            notes=notes,
            created_by=actor.user_id,
            created_at=created_at,
        )
        self.session.add(movement)
        await self.session.flush()

        logger.info(
            "Stock movement appended",
            product_id=str(product_id),
            movement_id=str(movement.id),
            reference=movement.reference_number,
            direction=direction.value,
            quantity=quantity,
            unit_type=unit_type.value,
            quantity_pcs=movement.quantity_pcs,
        )
        return movement

    async def list_by_product(self, product_id: UUID) -> List[StockMovement]:
        """Full history, newest first."""
        result = await self.session.execute(
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.created_at.desc())
        )
        return list(result.scalars().all())

    async def replay_order(self, product_id: UUID) -> List[StockMovement]:
        """Full history, oldest first, for aggregation."""
        history = await self.list_by_product(product_id)
        history.reverse()
        return history
