"""
FastAPI Production Application

Main entry point for the Stock Ledger API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from stockledger.config import get_settings
from stockledger.config.logging import configure_logging
from stockledger.database.connection import init_database, close_database
from stockledger.serving.cache import init_redis, close_redis
from stockledger.serving.api.main import create_api_app

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Stock Ledger API", environment=settings.app_env)

    await init_database()

    # The product cache is optional, serve uncached if it is unreachable
    try:
        await init_redis()
    except Exception as e:
        logger.warning("Redis init failed, serving without cache", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_redis()
    await close_database()


app = create_api_app(lifespan=lifespan)


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }
