"""
Product Units API Endpoints

Alternate named units per product and their conversion examples.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.database.connection import get_db_dependency
from stockledger.inventory.identity import Actor
from stockledger.inventory.units import ProductUnitRegistry
from stockledger.serving.api.dependencies import get_actor

product_units_router = APIRouter()
units_router = APIRouter()


class UnitCreate(BaseModel):
    unit_name: str
    conversion_factor: Decimal = Decimal(1)
    is_base_unit: bool = False


class UnitUpdate(BaseModel):
    unit_name: Optional[str] = None
    conversion_factor: Optional[Decimal] = None
    is_base_unit: Optional[bool] = None


class UnitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    unit_name: str
    conversion_factor: float
    is_base_unit: bool
    is_active: bool
    created_at: Optional[datetime] = None


class ConversionExamplesResponse(BaseModel):
    base_unit: Optional[str]
    examples: List[str]
    warnings: List[Dict[str, Any]]


@product_units_router.get("/{product_id}/units", response_model=List[UnitResponse])
async def list_units(
    product_id: UUID,
    db: AsyncSession = Depends(get_db_dependency),
) -> List[UnitResponse]:
    """Active units, base unit first."""
    units = await ProductUnitRegistry(db).list(product_id)
    return [UnitResponse.model_validate(u) for u in units]


@product_units_router.post("/{product_id}/units", response_model=UnitResponse, status_code=201)
async def create_unit(
    product_id: UUID,
    payload: UnitCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> UnitResponse:
    """Add a unit; flagging it as base demotes the current base unit."""
    unit = await ProductUnitRegistry(db).create(
        actor,
        product_id,
        payload.unit_name,
        payload.conversion_factor,
        is_base_unit=payload.is_base_unit,
    )
    await db.commit()
    return UnitResponse.model_validate(unit)


@product_units_router.get("/{product_id}/units/conversions", response_model=ConversionExamplesResponse)
async def get_conversion_examples(
    product_id: UUID,
    db: AsyncSession = Depends(get_db_dependency),
) -> ConversionExamplesResponse:
    """'1 {unit} = {factor} {base unit}' for every active unit."""
    examples = await ProductUnitRegistry(db).conversion_examples(product_id)
    return ConversionExamplesResponse(
        base_unit=examples.base_unit,
        examples=examples.lines,
        warnings=[w.to_dict() for w in examples.warnings],
    )


@units_router.patch("/{unit_id}", response_model=UnitResponse)
async def update_unit(
    unit_id: UUID,
    payload: UnitUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> UnitResponse:
    unit = await ProductUnitRegistry(db).update(actor, unit_id, payload.model_dump(exclude_unset=True))
    await db.commit()
    return UnitResponse.model_validate(unit)


@units_router.delete("/{unit_id}", status_code=204)
async def deactivate_unit(
    unit_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> Response:
    """Soft-delete a unit. The base unit is rejected with 409."""
    await ProductUnitRegistry(db).deactivate(actor, unit_id)
    await db.commit()
    return Response(status_code=204)
