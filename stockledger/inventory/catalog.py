"""
Product Catalog

Create, edit, soft-delete and query products. Stock entered here is the
product's opening stock; afterwards stock changes go through the ledger.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.config import get_settings
from stockledger.database.models import Product
from stockledger.inventory.conversion import to_pieces
from stockledger.inventory.exceptions import (
    DuplicateSku,
    InvalidConversionFactor,
    InvalidProductData,
    ProductNotFound,
)
from stockledger.inventory.identity import Actor, require_writer

logger = structlog.get_logger(__name__)
settings = get_settings()

EDITABLE_FIELDS = {
    "name",
    "sku",
    "description",
    "category_id",
    "base_unit",
    "pcs_per_base_unit",
    "price",
    "price_per_piece",
    "stock_quantity",
    "stock_pcs",
    "min_stock_level",
}


def _validate_factor(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConversionFactor(value, field="pcs_per_base_unit", constraint="must be a whole number greater than 0")
    return value


def _validate_count(field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidProductData(field, "must be a whole number", value)
    if value < 0:
        raise InvalidProductData(field, "must not be negative", value)
    return value


def _validate_money(field: str, value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidProductData(field, "must be a number", value) from None
    if not amount.is_finite() or amount < 0:
        raise InvalidProductData(field, "must be a non-negative amount", value)
    return amount


def _validate_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidProductData(field, "must not be empty", value)
    return value.strip()


class ProductCatalog:
    """
    Product record management.

    Example:
        catalog = ProductCatalog(db)
        product = await catalog.create(actor, name="Teh Botol", sku="TB-01",
                                       price=60000, base_unit="dus",
                                       pcs_per_base_unit=12, stock_quantity=5)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _ensure_sku_free(self, sku: str, exclude: Optional[UUID] = None) -> None:
        query = select(Product.id).where(Product.sku == sku)
        if exclude is not None:
            query = query.where(Product.id != exclude)
        if (await self.session.execute(query)).first() is not None:
            raise DuplicateSku(sku)

    async def create(
        self,
        actor: Actor,
        *,
        name: str,
        sku: str,
        price,
        base_unit: Optional[str] = None,
        pcs_per_base_unit: int = 1,
        price_per_piece=0,
        stock_quantity: int = 0,
        stock_pcs: Optional[int] = None,
        min_stock_level: Optional[int] = None,
        description: Optional[str] = None,
        category_id: Optional[UUID] = None,
    ) -> Product:
        """
        Create a product with its opening stock.

        When stock_pcs is omitted it is derived from stock_quantity. The
        entered stock becomes the initial snapshot; totals start at zero.
        """
        require_writer(actor, "create products")

        name = _validate_text("name", name)
        sku = _validate_text("sku", sku)
        factor = _validate_factor(pcs_per_base_unit)
        stock_quantity = _validate_count("stock_quantity", stock_quantity)
        if stock_pcs is None:
            stock_pcs = to_pieces(stock_quantity, factor)
        stock_pcs = _validate_count("stock_pcs", stock_pcs)
        if min_stock_level is None:
            min_stock_level = settings.inventory.default_min_stock_level
        min_stock_level = _validate_count("min_stock_level", min_stock_level)

        await self._ensure_sku_free(sku)

        product = Product(
            name=name,
            sku=sku,
            description=description,
            category_id=category_id,
            base_unit=(base_unit or settings.inventory.default_base_unit).strip(),
            pcs_per_base_unit=factor,
            price=_validate_money("price", price),
            price_per_piece=_validate_money("price_per_piece", price_per_piece),
            stock_quantity=stock_quantity,
            stock_pcs=stock_pcs,
            min_stock_level=min_stock_level,
            initial_stock_quantity=stock_quantity,
            initial_stock_pcs=stock_pcs,
            total_stock_added=0,
            total_stock_reduced=0,
            stock_movement_count=0,
            is_active=True,
            created_by=actor.user_id,
        )
        self.session.add(product)
        await self.session.flush()

        logger.info(
            "Product created",
            product_id=str(product.id),
            sku=sku,
            stock_quantity=stock_quantity,
            stock_pcs=stock_pcs,
        )
        return product

    async def update(self, actor: Actor, product_id: UUID, fields: Dict[str, Any]) -> Product:
        """
        Edit static fields and the manually entered stock snapshot.

        Initial stock and running totals are derived state and cannot be
        edited here.
        """
        require_writer(actor, "edit products")

        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise InvalidProductData(sorted(unknown)[0], "is not editable")

        product = await self.get(product_id)

        if "name" in fields:
            product.name = _validate_text("name", fields["name"])
        if "sku" in fields:
            sku = _validate_text("sku", fields["sku"])
            if sku != product.sku:
                await self._ensure_sku_free(sku, exclude=product.id)
            product.sku = sku
        if "description" in fields:
            product.description = fields["description"]
        if "category_id" in fields:
            product.category_id = fields["category_id"]
        if "base_unit" in fields:
            product.base_unit = _validate_text("base_unit", fields["base_unit"])
        if "pcs_per_base_unit" in fields:
            product.pcs_per_base_unit = _validate_factor(fields["pcs_per_base_unit"])
        if "price" in fields:
            product.price = _validate_money("price", fields["price"])
        if "price_per_piece" in fields:
            product.price_per_piece = _validate_money("price_per_piece", fields["price_per_piece"])
        if "min_stock_level" in fields:
            product.min_stock_level = _validate_count("min_stock_level", fields["min_stock_level"])

        # Base-unit edit recomputes pieces unless pieces were entered too
        if "stock_quantity" in fields:
            product.stock_quantity = _validate_count("stock_quantity", fields["stock_quantity"])
            if "stock_pcs" not in fields:
                product.stock_pcs = to_pieces(product.stock_quantity, product.pcs_per_base_unit)
        if "stock_pcs" in fields:
            product.stock_pcs = _validate_count("stock_pcs", fields["stock_pcs"])

        await self.session.flush()
        logger.info("Product updated", product_id=str(product.id), fields=sorted(fields))
        return product

    async def soft_delete(self, actor: Actor, product_id: UUID) -> Product:
        """Hide the product from the catalog. Its history is kept."""
        require_writer(actor, "delete products")
        product = await self.get(product_id)
        product.is_active = False
        await self.session.flush()
        logger.info("Product deactivated", product_id=str(product.id), sku=product.sku)
        return product

    async def get(self, product_id: UUID) -> Product:
        product = await self.session.get(Product, product_id)
        if product is None or not product.is_active:
            raise ProductNotFound(product_id)
        return product

    async def list(
        self,
        search: Optional[str] = None,
        category_id: Optional[UUID] = None,
        low_stock_only: bool = False,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Product], int]:
        """Active products ordered by name, with the total match count."""
        conditions = [Product.is_active.is_(True)]
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(or_(func.lower(Product.name).like(pattern), func.lower(Product.sku).like(pattern)))
        if category_id:
            conditions.append(Product.category_id == category_id)
        if low_stock_only:
            conditions.append(Product.stock_pcs <= Product.min_stock_level)

        where = and_(*conditions)
        total = (await self.session.execute(select(func.count(Product.id)).where(where))).scalar() or 0

        result = await self.session.execute(
            select(Product)
            .where(where)
            .order_by(Product.name)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def low_stock(self, limit: int = 100) -> List[Product]:
        """Active products at or below their own threshold, emptiest first."""
        result = await self.session.execute(
            select(Product)
            .where(
                and_(
                    Product.is_active.is_(True),
                    Product.stock_pcs <= Product.min_stock_level,
                )
            )
            .order_by(Product.stock_pcs)
            .limit(limit)
        )
        return list(result.scalars().all())
