"""
Product Unit Registry

Alternate named units per product (dus, lusin, kg, ...), each with a factor
relative to the product's base unit. This is display/sales metadata and does
not touch the stock ledger.

Promotion to base is a single logical operation: the current active base
unit is demoted in the same session before the new one is flagged, so at
most one active base unit exists per product.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.config import get_settings
from stockledger.database.models import Product, ProductUnit
from stockledger.inventory.conversion import validate_factor
from stockledger.inventory.exceptions import (
    CannotRemoveBaseUnit,
    DuplicateUnit,
    InvalidConversionFactor,
    InvalidProductData,
    MissingBaseUnit,
    ProductNotFound,
    UnitNotFound,
)
from stockledger.inventory.identity import Actor, require_writer

logger = structlog.get_logger(__name__)
settings = get_settings()

UPDATABLE_FIELDS = {"unit_name", "conversion_factor", "is_base_unit"}


def _factor(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidConversionFactor(value)
    try:
        factor = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidConversionFactor(value) from None
    return validate_factor(factor)


def format_factor(value) -> str:
    """12.0000 -> '12', 0.5000 -> '0.5'"""
    normalized = Decimal(str(value)).normalize()
    return format(normalized, "f")


@dataclass
class ConversionExamples:
    lines: List[str]
    base_unit: Optional[str]
    warnings: List[MissingBaseUnit] = field(default_factory=list)


class ProductUnitRegistry:
    """
    Example:
        registry = ProductUnitRegistry(db)
        await registry.create(actor, product.id, "pcs", 1, is_base_unit=True)
        await registry.create(actor, product.id, "dus", 12)
        examples = await registry.conversion_examples(product.id)
        # ["1 pcs = 1 pcs", "1 dus = 12 pcs"]
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _product(self, product_id: UUID) -> Product:
        product = await self.session.get(Product, product_id)
        if product is None or not product.is_active:
            raise ProductNotFound(product_id)
        return product

    async def get(self, unit_id: UUID) -> ProductUnit:
        unit = await self.session.get(ProductUnit, unit_id)
        if unit is None or not unit.is_active:
            raise UnitNotFound(unit_id)
        return unit

    async def _ensure_name_free(self, product_id: UUID, unit_name: str, exclude: Optional[UUID] = None) -> None:
        query = select(ProductUnit.id).where(
            ProductUnit.product_id == product_id,
            ProductUnit.unit_name == unit_name,
            ProductUnit.is_active.is_(True),
        )
        if exclude is not None:
            query = query.where(ProductUnit.id != exclude)
        if (await self.session.execute(query)).first() is not None:
            raise DuplicateUnit(unit_name)

    async def _demote_base_units(self, product_id: UUID, keep: Optional[UUID] = None) -> None:
        stmt = (
            update(ProductUnit)
            .where(
                ProductUnit.product_id == product_id,
                ProductUnit.is_active.is_(True),
                ProductUnit.is_base_unit.is_(True),
            )
            .values(is_base_unit=False)
            .execution_options(synchronize_session="fetch")
        )
        if keep is not None:
            stmt = stmt.where(ProductUnit.id != keep)
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.info("Base unit demoted", product_id=str(product_id), count=result.rowcount)

    async def create(
        self,
        actor: Actor,
        product_id: UUID,
        unit_name: str,
        conversion_factor,
        is_base_unit: bool = False,
    ) -> ProductUnit:
        require_writer(actor, "manage units")
        await self._product(product_id)

        if not isinstance(unit_name, str) or not unit_name.strip():
            raise InvalidProductData("unit_name", "must not be empty", unit_name)
        unit_name = unit_name.strip()
        factor = _factor(conversion_factor)
        await self._ensure_name_free(product_id, unit_name)

        if is_base_unit:
            await self._demote_base_units(product_id)

        unit = ProductUnit(
            product_id=product_id,
            unit_name=unit_name,
            conversion_factor=factor,
            is_base_unit=bool(is_base_unit),
            is_active=True,
            created_by=actor.user_id,
        )
        self.session.add(unit)
        await self.session.flush()

        logger.info(
            "Unit created",
            product_id=str(product_id),
            unit_id=str(unit.id),
            unit_name=unit_name,
            conversion_factor=str(factor),
            is_base_unit=unit.is_base_unit,
        )
        return unit

    async def update(self, actor: Actor, unit_id: UUID, fields: Dict[str, Any]) -> ProductUnit:
        """
        Change name, factor or base flag.

        Clearing the flag on the only base unit is allowed; the product then
        reports MissingBaseUnit until another unit is promoted.
        """
        require_writer(actor, "manage units")

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidProductData(sorted(unknown)[0], "is not editable")

        unit = await self.get(unit_id)

        if "unit_name" in fields:
            name = fields["unit_name"]
            if not isinstance(name, str) or not name.strip():
                raise InvalidProductData("unit_name", "must not be empty", name)
            name = name.strip()
            if name != unit.unit_name:
                await self._ensure_name_free(unit.product_id, name, exclude=unit.id)
            unit.unit_name = name
        if "conversion_factor" in fields:
            unit.conversion_factor = _factor(fields["conversion_factor"])
        if "is_base_unit" in fields:
            promote = fields["is_base_unit"]
            if not isinstance(promote, bool):
                raise InvalidProductData("is_base_unit", "must be true or false", promote)
            if promote and not unit.is_base_unit:
                await self._demote_base_units(unit.product_id, keep=unit.id)
            unit.is_base_unit = promote
            await self.session.flush()
            if not promote and await self.base_unit(unit.product_id) is None:
                logger.warning(
                    "Product left without base unit",
                    product_id=str(unit.product_id),
                    unit_id=str(unit.id),
                )

        await self.session.flush()
        logger.info("Unit updated", unit_id=str(unit.id), fields=sorted(fields))
        return unit

    async def deactivate(self, actor: Actor, unit_id: UUID) -> ProductUnit:
        """Soft-delete a unit. The base unit cannot be removed."""
        require_writer(actor, "manage units")
        unit = await self.get(unit_id)
        if unit.is_base_unit:
            raise CannotRemoveBaseUnit(unit.id, unit.unit_name)
        unit.is_active = False
        await self.session.flush()
        logger.info("Unit deactivated", unit_id=str(unit.id), unit_name=unit.unit_name)
        return unit

    async def list(self, product_id: UUID) -> List[ProductUnit]:
        """Active units, base unit first, then creation order."""
        await self._product(product_id)
        result = await self.session.execute(
            select(ProductUnit)
            .where(ProductUnit.product_id == product_id, ProductUnit.is_active.is_(True))
            .order_by(ProductUnit.is_base_unit.desc(), ProductUnit.created_at, ProductUnit.unit_name)
        )
        return list(result.scalars().all())

    async def base_unit(self, product_id: UUID) -> Optional[ProductUnit]:
        result = await self.session.execute(
            select(ProductUnit)
            .where(
                ProductUnit.product_id == product_id,
                ProductUnit.is_active.is_(True),
                ProductUnit.is_base_unit.is_(True),
            )
            .order_by(ProductUnit.created_at)
        )
        return result.scalars().first()

    async def conversion_examples(self, product_id: UUID) -> ConversionExamples:
        """One "1 {unit} = {factor} {base}" line per active unit."""
        units = await self.list(product_id)
        base = next((u for u in units if u.is_base_unit), None)

        warnings: List[MissingBaseUnit] = []
        if base is None:
            label = settings.inventory.missing_base_unit_label
            if units:
                warning = MissingBaseUnit(product_id)
                warnings.append(warning)
                logger.warning(warning.message, product_id=str(product_id))
        else:
            label = base.unit_name

        lines = [f"1 {u.unit_name} = {format_factor(u.conversion_factor)} {label}" for u in units]
        return ConversionExamples(
            lines=lines,
            base_unit=base.unit_name if base else None,
            warnings=warnings,
        )
