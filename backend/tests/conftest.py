import os

# 必须在导入 app 之前设置，Settings 在导入时读取环境变量
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["LOG_FILE"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.deps import get_payment_gateway
from app.core.database import Base, get_db
from app.initial_data import seed_plans
from app.main import app
from app.services.payment_gateway import MockPaymentGateway
from tests.utils import make_gateway


@pytest_asyncio.fixture
async def engine():
    """每个测试独立的内存库"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def plans(session_factory):
    """默认套餐 {name: Plan}"""
    async with session_factory() as db:
        created = await seed_plans(db)
    return {p.name: p for p in created}


@pytest_asyncio.fixture
async def db(session_factory, plans):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> MockPaymentGateway:
    return make_gateway()


@pytest_asyncio.fixture
async def client(session_factory, plans, gateway):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
