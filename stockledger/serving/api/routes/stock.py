"""
Stock API Endpoints

Stock changes, movement history and snapshot reconciliation for a product.
"""

from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.database.connection import get_db_dependency
from stockledger.database.models import MovementDirection, UnitType
from stockledger.inventory.evaluator import StockStatus
from stockledger.inventory.identity import Actor
from stockledger.inventory.reports import summarize_movements
from stockledger.inventory.service import SnapshotReport, StockChange, StockService
from stockledger.serving.api.dependencies import get_actor
from stockledger.serving.cache import products_cache

router = APIRouter()


class StockChangeRequest(BaseModel):
    quantity: float
    unit_type: str = UnitType.BASE_UNIT.value
    notes: Optional[str] = None


class MovementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    direction: MovementDirection
    quantity: int
    unit_type: UnitType
    quantity_pcs: int
    reference_number: str
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class SnapshotResponse(BaseModel):
    stock_quantity: int
    stock_pcs: int
    total_added: int
    total_reduced: int
    movement_count: int


class StockChangeResponse(BaseModel):
    movement: MovementResponse
    before: SnapshotResponse
    after: SnapshotResponse
    stock_status: StockStatus

    @classmethod
    def from_change(cls, change: StockChange) -> "StockChangeResponse":
        return cls(
            movement=MovementResponse.model_validate(change.movement),
            before=SnapshotResponse(**change.before.to_dict()),
            after=SnapshotResponse(**change.after.to_dict()),
            stock_status=change.status,
        )


class DailyMovementSummary(BaseModel):
    day: date
    inbound_pcs: int
    outbound_pcs: int
    net_pcs: int
    movements: int


class SnapshotReportResponse(BaseModel):
    product_id: UUID
    consistent: bool
    repaired: bool
    stored: SnapshotResponse
    replayed: SnapshotResponse
    drift: Dict[str, List[int]]

    @classmethod
    def from_report(cls, report: SnapshotReport) -> "SnapshotReportResponse":
        return cls(
            product_id=report.product_id,
            consistent=report.consistent,
            repaired=report.repaired,
            stored=SnapshotResponse(**report.stored.to_dict()),
            replayed=SnapshotResponse(**report.replayed.to_dict()),
            drift={name: list(values) for name, values in report.drift.items()},
        )


@router.post("/{product_id}/stock/add", response_model=StockChangeResponse, status_code=201)
async def add_stock(
    product_id: UUID,
    payload: StockChangeRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> StockChangeResponse:
    """Append an inbound movement."""
    change = await StockService(db).add_stock(
        actor, product_id, payload.quantity, payload.unit_type, payload.notes
    )
    await db.commit()
    await products_cache.delete(str(product_id))
    return StockChangeResponse.from_change(change)


@router.post("/{product_id}/stock/reduce", response_model=StockChangeResponse, status_code=201)
async def reduce_stock(
    product_id: UUID,
    payload: StockChangeRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> StockChangeResponse:
    """Append an outbound movement if enough stock is on hand."""
    change = await StockService(db).reduce_stock(
        actor, product_id, payload.quantity, payload.unit_type, payload.notes
    )
    await db.commit()
    await products_cache.delete(str(product_id))
    return StockChangeResponse.from_change(change)


@router.get("/{product_id}/movements", response_model=List[MovementResponse])
async def get_movement_history(
    product_id: UUID,
    db: AsyncSession = Depends(get_db_dependency),
) -> List[MovementResponse]:
    """Full movement history, newest first."""
    movements = await StockService(db).history(product_id)
    return [MovementResponse.model_validate(m) for m in movements]


@router.get("/{product_id}/movements/summary", response_model=List[DailyMovementSummary])
async def get_movement_summary(
    product_id: UUID,
    db: AsyncSession = Depends(get_db_dependency),
) -> List[DailyMovementSummary]:
    """Per-day inbound and outbound piece totals."""
    movements = await StockService(db).history(product_id)
    return [DailyMovementSummary(**row) for row in summarize_movements(movements)]


@router.get("/{product_id}/snapshot/verify", response_model=SnapshotReportResponse)
async def verify_snapshot(
    product_id: UUID,
    db: AsyncSession = Depends(get_db_dependency),
) -> SnapshotReportResponse:
    """Compare cached stock with a replay of the ledger."""
    report = await StockService(db).verify(product_id)
    return SnapshotReportResponse.from_report(report)


@router.post("/{product_id}/snapshot/reconcile", response_model=SnapshotReportResponse)
async def reconcile_snapshot(
    product_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> SnapshotReportResponse:
    """Rebuild cached stock from initial stock plus the ledger."""
    report = await StockService(db).reconcile(actor, product_id)
    await db.commit()
    if report.repaired:
        await products_cache.delete(str(product_id))
    return SnapshotReportResponse.from_report(report)
