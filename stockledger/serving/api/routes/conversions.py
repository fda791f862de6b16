"""
Conversion API Endpoints

Stateless helpers for the product form: recalculating the paired stock
field and listing the common unit presets.
"""

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, model_validator

from stockledger.inventory.conversion import (
    COMMON_UNITS,
    recalculate_from_base,
    recalculate_from_pieces,
)

router = APIRouter()


class RecalculateRequest(BaseModel):
    """Exactly one of base_quantity or pieces is the edited field."""
    conversion_factor: Decimal
    base_quantity: Optional[Decimal] = None
    pieces: Optional[Decimal] = None

    @model_validator(mode="after")
    def check_one_side(self) -> "RecalculateRequest":
        if (self.base_quantity is None) == (self.pieces is None):
            raise ValueError("provide exactly one of base_quantity or pieces")
        return self


class RecalculateResponse(BaseModel):
    base_quantity: Decimal
    pieces: Decimal
    conversion_factor: Decimal


class UnitPresetResponse(BaseModel):
    name: str
    label: str
    pieces: Optional[int] = None


@router.post("/recalculate", response_model=RecalculateResponse)
async def recalculate(payload: RecalculateRequest) -> RecalculateResponse:
    """Pieces follow base units exactly; base units follow pieces rounded down."""
    if payload.base_quantity is not None:
        pair = recalculate_from_base(payload.base_quantity, payload.conversion_factor)
    else:
        pair = recalculate_from_pieces(payload.pieces, payload.conversion_factor)
    return RecalculateResponse(
        base_quantity=Decimal(pair.base_quantity),
        pieces=Decimal(pair.pieces),
        conversion_factor=payload.conversion_factor,
    )


@router.get("/presets", response_model=List[UnitPresetResponse])
async def list_presets() -> List[UnitPresetResponse]:
    """Common unit names offered when defining a product."""
    return [
        UnitPresetResponse(name=p.name, label=p.label, pieces=p.pieces)
        for p in COMMON_UNITS
    ]
