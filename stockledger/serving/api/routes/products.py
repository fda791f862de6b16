"""
Products API Endpoints

Catalog records with their cached stock snapshot and low-stock status.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, computed_field
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.database.connection import get_db_dependency
from stockledger.inventory.catalog import ProductCatalog
from stockledger.inventory.evaluator import StockStatus, evaluate
from stockledger.inventory.identity import Actor
from stockledger.serving.api.dependencies import get_actor
from stockledger.serving.cache import products_cache

router = APIRouter()


class ProductSummary(BaseModel):
    """Product summary response"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sku: str
    name: str
    category_id: Optional[UUID] = None
    base_unit: str
    pcs_per_base_unit: int
    stock_quantity: int
    stock_pcs: int
    min_stock_level: int
    stock_movement_count: int

    @computed_field
    @property
    def stock_status(self) -> StockStatus:
        return evaluate(self.stock_pcs, self.min_stock_level)


class ProductDetail(ProductSummary):
    """Detailed product response"""
    description: Optional[str] = None
    price: float
    price_per_piece: float
    initial_stock_quantity: int
    initial_stock_pcs: int
    total_stock_added: int
    total_stock_reduced: int
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductListResponse(BaseModel):
    """Paginated product list"""
    items: List[ProductSummary]
    total: int
    page: int
    page_size: int


class ProductCreate(BaseModel):
    name: str
    sku: str
    price: float
    price_per_piece: float = 0
    base_unit: Optional[str] = None
    pcs_per_base_unit: int = 1
    stock_quantity: int = 0
    stock_pcs: Optional[int] = None
    min_stock_level: Optional[int] = None
    description: Optional[str] = None
    category_id: Optional[UUID] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    price_per_piece: Optional[float] = None
    base_unit: Optional[str] = None
    pcs_per_base_unit: Optional[int] = None
    stock_quantity: Optional[int] = None
    stock_pcs: Optional[int] = None
    min_stock_level: Optional[int] = None
    description: Optional[str] = None
    category_id: Optional[UUID] = None


@router.get("", response_model=ProductListResponse)
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    search: Optional[str] = None,
    category_id: Optional[UUID] = None,
    low_stock_only: bool = False,
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductListResponse:
    """List active products with search and filters."""
    products, total = await ProductCatalog(db).list(
        search=search,
        category_id=category_id,
        low_stock_only=low_stock_only,
        page=page,
        page_size=page_size,
    )
    return ProductListResponse(
        items=[ProductSummary.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=ProductDetail, status_code=201)
async def create_product(
    payload: ProductCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductDetail:
    """Create a product with its opening stock."""
    product = await ProductCatalog(db).create(actor, **payload.model_dump())
    await db.commit()
    return ProductDetail.model_validate(product)


@router.get("/low-stock", response_model=List[ProductSummary])
async def get_low_stock_products(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db_dependency),
) -> List[ProductSummary]:
    """Products at or below their own minimum stock level."""
    products = await ProductCatalog(db).low_stock(limit=limit)
    return [ProductSummary.model_validate(p) for p in products]


@router.get("/{product_id}", response_model=ProductDetail)
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductDetail:
    """Get product details."""
    cached = await products_cache.get(str(product_id))
    if cached:
        return ProductDetail(**cached)

    product = await ProductCatalog(db).get(product_id)
    detail = ProductDetail.model_validate(product)
    await products_cache.set(str(product_id), detail.model_dump(mode="json"))
    return detail


@router.patch("/{product_id}", response_model=ProductDetail)
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductDetail:
    """Edit catalog fields or the manually entered stock."""
    product = await ProductCatalog(db).update(actor, product_id, payload.model_dump(exclude_unset=True))
    await db.commit()
    await products_cache.delete(str(product_id))
    return ProductDetail.model_validate(product)


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db_dependency),
) -> Response:
    """Soft-delete a product; its movement history is kept."""
    await ProductCatalog(db).soft_delete(actor, product_id)
    await db.commit()
    await products_cache.delete(str(product_id))
    return Response(status_code=204)
