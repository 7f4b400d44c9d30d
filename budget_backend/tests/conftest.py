"""
Pytest configuration and fixtures for backend tests
"""
import pytest
from datetime import date
from typing import AsyncGenerator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from budget_backend.main import create_app
from budget_backend.core.config import settings
from budget_backend.core.deps import get_today
from budget_backend.db.base import Base
from budget_backend.db.session import get_db
from budget_backend.models.recurring_rule import RecurringRule
from budget_backend.models.transaction import Transaction
from budget_backend.repositories.recurring_rule_repository import RecurringRuleRepository


# Test database URL - use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_TODAY = date(2024, 4, 1)
WORKSPACE_ID = 1
RUN_SECRET = "test-run-secret"


@pytest.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session with in-memory SQLite.
    Each test gets a fresh database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def today() -> date:
    return TEST_TODAY


@pytest.fixture
def run_secret(monkeypatch) -> str:
    monkeypatch.setattr(settings, "RECURRING_RUN_SECRET", RUN_SECRET)
    return RUN_SECRET


@pytest.fixture
def workspace_headers() -> dict:
    return {"X-Workspace-Id": str(WORKSPACE_ID)}


@pytest.fixture
async def test_client(test_db: AsyncSession, today: date) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client with the database and "today" overridden.
    """
    app = create_app()

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: today

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_rule(test_db: AsyncSession):
    """Insert a rule row directly, bypassing cursor resolution"""
    async def _make(**overrides) -> RecurringRule:
        data = {
            "workspace_id": WORKSPACE_ID,
            "name": "Rent",
            "amount_minor": 5000,
            "currency": "USD",
            "kind": "expense",
            "category_id": 7,
            "merchant_id": None,
            "frequency": "monthly",
            "interval": 1,
            "day_of_month": 1,
            "start_date": date(2024, 1, 1),
            "next_run_on": date(2024, 1, 1),
            "is_archived": False,
        }
        data.update(overrides)
        return await RecurringRuleRepository(test_db).create(data)
    return _make


@pytest.fixture
def count_transactions(test_db: AsyncSession):
    async def _count(**filters) -> int:
        stmt = select(func.count()).select_from(Transaction)
        for field, value in filters.items():
            stmt = stmt.where(getattr(Transaction, field) == value)
        res = await test_db.execute(stmt)
        return res.scalar_one()
    return _count
