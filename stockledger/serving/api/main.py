"""
FastAPI Application Factory

Creates and configures the main API application.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from prometheus_client import make_asgi_app

from stockledger.config import get_settings
from stockledger.serving.api.errors import register_exception_handlers
from stockledger.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from stockledger.serving.api.routes import (
    conversions_router,
    health_router,
    product_units_router,
    products_router,
    stock_router,
    units_router,
)

settings = get_settings()


def create_api_app(lifespan=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Optional lifespan context manager for startup and shutdown

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Stock Ledger API",
        description="Product catalog, stock movement ledger and unit conversion",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Add CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(products_router, prefix="/api/v1/products", tags=["Products"])
    app.include_router(stock_router, prefix="/api/v1/products", tags=["Stock"])
    app.include_router(product_units_router, prefix="/api/v1/products", tags=["Units"])
    app.include_router(units_router, prefix="/api/v1/units", tags=["Units"])
    app.include_router(conversions_router, prefix="/api/v1/conversions", tags=["Conversions"])

    app.mount("/metrics", make_asgi_app())

    return app
