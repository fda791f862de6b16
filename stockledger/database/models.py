"""
Database Models - Stock Ledger Schema

Three tables back the stock ledger:

- Product: catalog record carrying a cached stock snapshot in base units and
  pieces plus running totals derived from the movement history.
- StockMovement: append-only ledger entry, one per stock change.
- ProductUnit: alternate named units per product, each with a conversion
  factor relative to the product's single active base unit.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class MovementDirection(str, Enum):
    """Direction of a stock movement"""
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class UnitType(str, Enum):
    """Unit a movement quantity is denominated in"""
    PIECES = "pieces"
    BASE_UNIT = "base_unit"


# =============================================================================
# CATALOG
# =============================================================================

class Product(Base):
    """
    Product Table

    Static catalog attributes plus the cached stock snapshot. The snapshot
    columns (stock_quantity, stock_pcs, totals, movement count) are derived
    from initial stock and the movement ledger; they are only written by the
    stock service, except for manual stock entry through the catalog.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)  # owned by the category service

    # Unit configuration: 1 base unit = pcs_per_base_unit pieces
    base_unit: Mapped[str] = mapped_column(String(50), nullable=False, default="pcs")
    pcs_per_base_unit: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Pricing
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_per_piece: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    # Cached stock snapshot
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stock_pcs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_stock_level: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    # Initial snapshot, written once at creation
    initial_stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    initial_stock_pcs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Running totals, in pieces
    total_stock_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_stock_reduced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stock_movement_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Audit
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    movements: Mapped[List["StockMovement"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", passive_deletes=True
    )
    units: Mapped[List["ProductUnit"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("pcs_per_base_unit > 0", name="ck_products_pcs_per_base_unit_positive"),
        Index("ix_products_is_active", "is_active"),
        Index("ix_products_category_id", "category_id"),
        Index("ix_products_stock_tracking", "total_stock_added", "total_stock_reduced", "stock_movement_count"),
    )

    def __repr__(self) -> str:
        return (
            f"<Product {self.sku} qty={self.stock_quantity} {self.base_unit} "
            f"pcs={self.stock_pcs} moves={self.stock_movement_count}>"
        )


# =============================================================================
# LEDGER
# =============================================================================

class StockMovement(Base):
    """
    Stock Movement Ledger

    Append-only. Rows are never updated or deleted by the service; a mistaken
    movement is reversed by appending one in the opposite direction.
    """
    __tablename__ = "stock_movements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )

    direction: Mapped[MovementDirection] = mapped_column(
        SQLEnum(MovementDirection, name="movement_direction", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)  # denominated in unit_type
    unit_type: Mapped[UnitType] = mapped_column(
        SQLEnum(UnitType, name="movement_unit_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    quantity_pcs: Mapped[int] = mapped_column(Integer, nullable=False)  # piece equivalent at acceptance

    reference_number: Mapped[str] = mapped_column(String(50), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    product: Mapped["Product"] = relationship(back_populates="movements")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        Index("ix_stock_movements_product_created", "product_id", "created_at"),
        Index("ix_stock_movements_direction", "direction"),
    )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.reference_number} {self.direction.value} "
            f"{self.quantity} {self.unit_type.value} ({self.quantity_pcs} pcs)>"
        )


# =============================================================================
# ALTERNATE UNITS
# =============================================================================

class ProductUnit(Base):
    """
    Product Unit Table

    Named sales/display units. conversion_factor states how many of the
    product's base unit equal one of this unit. At most one active row per
    product is flagged as the base unit.
    """
    __tablename__ = "product_units"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    unit_name: Mapped[str] = mapped_column(String(50), nullable=False)
    conversion_factor: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=1)
    is_base_unit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    product: Mapped["Product"] = relationship(back_populates="units")

    __table_args__ = (
        CheckConstraint("conversion_factor > 0", name="ck_product_units_factor_positive"),
        Index("ix_product_units_product_base", "product_id", "is_base_unit"),
    )
