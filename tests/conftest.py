"""
Test Suite Configuration
"""
import pytest
from typing import AsyncGenerator

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.config import Settings
from stockledger.database.connection import build_session_factory, get_db_dependency
from stockledger.database.models import Base
from stockledger.inventory.catalog import ProductCatalog
from stockledger.inventory.identity import Actor, Role


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(test_engine)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="user-admin", role=Role.ADMIN)


@pytest.fixture
def stockist() -> Actor:
    return Actor(user_id="user-stockist", role=Role.STOCKIST)


@pytest.fixture
def cashier() -> Actor:
    return Actor(user_id="user-cashier", role=Role.CASHIER)


@pytest.fixture
async def product(test_db, admin):
    """A product sold by the box of 12 with 5 boxes on hand"""
    return await ProductCatalog(test_db).create(
        admin,
        name="Teh Botol 350ml",
        sku="TB-350",
        price=60000,
        price_per_piece=5000,
        base_unit="dus",
        pcs_per_base_unit=12,
        stock_quantity=5,
    )


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the API with the test database wired in"""
    from stockledger.serving.api.main import create_api_app

    app = create_api_app()

    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_dependency] = override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

