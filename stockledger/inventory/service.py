"""
Stock Service

Orchestrates one stock change: validate against the cached snapshot, append
the movement to the ledger, then write the next snapshot onto the product.

With `INVENTORY_ATOMIC_WRITES` enabled (default) both writes share the
session transaction and commit or roll back together. With it disabled the
ledger append is committed on its own first, as on stores without
multi-statement transactions. A failure after the append is raised as
SnapshotReconciliationError. In the atomic mode the append is rolled back
with it; otherwise the repair path is `reconcile`, which replays the full
history.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union
from uuid import UUID

import structlog
from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.config import get_settings
from stockledger.database.models import MovementDirection, Product, StockMovement, UnitType
from stockledger.inventory import aggregator
from stockledger.inventory.aggregator import StockSnapshot
from stockledger.inventory.catalog import ProductCatalog
from stockledger.inventory.evaluator import StockStatus, evaluate
from stockledger.inventory.exceptions import SnapshotReconciliationError, StockLedgerError
from stockledger.inventory.identity import Actor, require_reconciler, require_writer
from stockledger.inventory.ledger import StockLedger, parse_unit_type, validate_quantity

logger = structlog.get_logger(__name__)
settings = get_settings()


# =============================================================================
# METRICS
# =============================================================================

STOCK_MOVEMENTS = Counter(
    "stockledger_movements_total",
    "Stock movements recorded",
    ["direction", "unit_type"],
)

STOCK_CHANGES_REJECTED = Counter(
    "stockledger_stock_changes_rejected_total",
    "Stock changes rejected before any write",
    ["direction", "error"],
)

SNAPSHOT_FAILURES = Counter(
    "stockledger_snapshot_failures_total",
    "Snapshot writes that failed after the ledger append",
)

SNAPSHOT_DRIFT = Counter(
    "stockledger_snapshot_drift_total",
    "Snapshots found to differ from a ledger replay",
    ["repaired"],
)


@dataclass
class StockChange:
    """Outcome of one accepted movement"""
    movement: StockMovement
    before: StockSnapshot
    after: StockSnapshot
    status: StockStatus


@dataclass
class SnapshotReport:
    """Stored snapshot compared with a replay of the ledger"""
    product_id: UUID
    stored: StockSnapshot
    replayed: StockSnapshot
    drift: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    repaired: bool = False

    @property
    def consistent(self) -> bool:
        return not self.drift


class StockService:
    """
    Example:
        service = StockService(db)
        change = await service.add_stock(actor, product.id, 2, "base_unit")
        change.after.stock_pcs
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.ledger = StockLedger(session)
        self.catalog = ProductCatalog(session)

    async def add_stock(
        self,
        actor: Actor,
        product_id: UUID,
        quantity,
        unit_type: Union[str, UnitType] = UnitType.BASE_UNIT,
        notes: Optional[str] = None,
    ) -> StockChange:
        return await self._record(
            actor,
            product_id,
            MovementDirection.INBOUND,
            quantity,
            unit_type,
            notes or settings.inventory.inbound_default_note,
        )

    async def reduce_stock(
        self,
        actor: Actor,
        product_id: UUID,
        quantity,
        unit_type: Union[str, UnitType] = UnitType.BASE_UNIT,
        notes: Optional[str] = None,
    ) -> StockChange:
        """
        Raises:
            InsufficientStock: more than the on-hand piece stock requested
        """
        return await self._record(
            actor,
            product_id,
            MovementDirection.OUTBOUND,
            quantity,
            unit_type,
            notes or settings.inventory.outbound_default_note,
        )

    async def _record(
        self,
        actor: Actor,
        product_id: UUID,
        direction: MovementDirection,
        quantity,
        unit_type: Union[str, UnitType],
        notes: str,
    ) -> StockChange:
        # Validation and the next snapshot are computed before any write
        try:
            require_writer(actor, "change stock")
            quantity = validate_quantity(quantity)
            unit_type = parse_unit_type(unit_type)

            product = await self.catalog.get(product_id)
            before = StockSnapshot.from_product(product)
            after = aggregator.apply(
                before,
                direction,
                quantity,
                unit_type,
                product.pcs_per_base_unit,
                base_unit=product.base_unit,
            )
        except StockLedgerError as e:
            STOCK_CHANGES_REJECTED.labels(direction=direction.value, error=e.code).inc()
            raise

        movement = await self.ledger.append(
            product.id,
            direction,
            quantity,
            unit_type,
            product.pcs_per_base_unit,
            actor,
            notes=notes,
        )
        if not settings.inventory.atomic_writes:
            await self.session.commit()

        try:
            after.write_to(product)
            await self.session.flush()
        except Exception as e:
            SNAPSHOT_FAILURES.inc()
            logger.error(
                "Snapshot update failed after ledger append",
                product_id=str(product_id),
                movement_id=str(movement.id),
                reference=movement.reference_number,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SnapshotReconciliationError(
                product_id, movement.id, str(e), committed=not settings.inventory.atomic_writes
            ) from e

        STOCK_MOVEMENTS.labels(direction=direction.value, unit_type=unit_type.value).inc()

        status = evaluate(after.stock_pcs, product.min_stock_level)
        logger.info(
            "Stock updated",
            product_id=str(product_id),
            direction=direction.value,
            stock_pcs=after.stock_pcs,
            stock_quantity=after.stock_quantity,
            status=status.value,
        )
        if status is StockStatus.LOW_STOCK:
            logger.warning(
                "Product at or below minimum stock",
                product_id=str(product_id),
                stock_pcs=after.stock_pcs,
                min_stock_level=product.min_stock_level,
            )
        return StockChange(movement=movement, before=before, after=after, status=status)

    async def history(self, product_id: UUID) -> List[StockMovement]:
        """Movements of a product, newest first."""
        await self.catalog.get(product_id)
        return await self.ledger.list_by_product(product_id)

    async def _replay(self, product: Product) -> SnapshotReport:
        movements = await self.ledger.replay_order(product.id)
        stored = StockSnapshot.from_product(product)
        replayed = aggregator.replay(StockSnapshot.initial_of(product), movements, product.pcs_per_base_unit)
        return SnapshotReport(
            product_id=product.id,
            stored=stored,
            replayed=replayed,
            drift=aggregator.drift(stored, replayed),
        )

    async def verify(self, product_id: UUID) -> SnapshotReport:
        """Compare the cached snapshot with a replay of the ledger. No writes."""
        product = await self.catalog.get(product_id)
        report = await self._replay(product)
        if not report.consistent:
            SNAPSHOT_DRIFT.labels(repaired="false").inc()
            logger.warning("Snapshot drift detected", product_id=str(product_id), drift=report.drift)
        return report

    async def reconcile(self, actor: Actor, product_id: UUID) -> SnapshotReport:
        """
        Overwrite the cached snapshot with the replayed one.

        Idempotent: running it again on a repaired product changes nothing.
        """
        require_reconciler(actor)
        product = await self.catalog.get(product_id)
        return await self._repair(product)

    async def _repair(self, product: Product) -> SnapshotReport:
        report = await self._replay(product)
        if report.consistent:
            return report
        report.replayed.write_to(product)
        await self.session.flush()
        report.repaired = True
        SNAPSHOT_DRIFT.labels(repaired="true").inc()
        logger.warning(
            "Snapshot reconciled from ledger",
            product_id=str(product.id),
            drift=report.drift,
        )
        return report

    async def reconcile_all(
        self,
        actor: Actor,
        include_inactive: bool = True,
        repair: bool = True,
    ) -> List[SnapshotReport]:
        """Replay every product; with repair=False only report the drift."""
        require_reconciler(actor)
        query = select(Product).order_by(Product.sku)
        if not include_inactive:
            query = query.where(Product.is_active.is_(True))
        products = (await self.session.execute(query)).scalars().all()
        if not repair:
            return [await self._replay(product) for product in products]
        return [await self._repair(product) for product in products]
