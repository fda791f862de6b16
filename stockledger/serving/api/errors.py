"""
Exception Handlers

Maps inventory errors to HTTP responses. Validation errors name the field
and constraint; InsufficientStock reports the available quantity; anything
that breaks the snapshot invariant returns a generic failure notice.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from stockledger.inventory.exceptions import (
    CannotRemoveBaseUnit,
    DuplicateSku,
    DuplicateUnit,
    InsufficientStock,
    PermissionDenied,
    ProductNotFound,
    SnapshotReconciliationError,
    StockLedgerError,
    UnitNotFound,
    ValidationError,
)

logger = structlog.get_logger(__name__)

STATUS_CODES = [
    (ValidationError, 422),
    (InsufficientStock, 409),
    (CannotRemoveBaseUnit, 409),
    (DuplicateUnit, 409),
    (DuplicateSku, 409),
    (ProductNotFound, 404),
    (UnitNotFound, 404),
    (PermissionDenied, 403),
]


def status_for(exc: StockLedgerError) -> int:
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 400


async def stock_ledger_error_handler(request: Request, exc: StockLedgerError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        "Request rejected",
        path=request.url.path,
        error=exc.code,
        status_code=status_code,
        detail=exc.message,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def reconciliation_error_handler(request: Request, exc: SnapshotReconciliationError) -> JSONResponse:
    logger.error(
        "Stock snapshot out of sync with ledger",
        path=request.url.path,
        product_id=str(exc.product_id),
        movement_id=str(exc.movement_id) if exc.movement_id else None,
        reason=exc.reason,
        committed=exc.committed,
    )
    if exc.committed:
        message = "The stock movement was recorded but stock figures were not updated. Stock figures need reconciliation."
    else:
        message = "The stock change could not be completed and was not recorded."
    return JSONResponse(
        status_code=500,
        content={
            "error": exc.code,
            "message": message,
            "recorded": exc.committed,
            "product_id": str(exc.product_id),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SnapshotReconciliationError, reconciliation_error_handler)
    app.add_exception_handler(StockLedgerError, stock_ledger_error_handler)
