"""Pytest configuration and fixtures for VestKeeper backend tests"""
import os

# Point the application at an in-memory database before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from vestkeeper.main import app
from vestkeeper.models.database import Base, get_db
from vestkeeper.services.capabilities import AdminAuthorizer, InMemoryAssetLedger
from vestkeeper.services.engine import DAY, EngineConfig, VestingEngine, get_engine

ADMIN = "admin-wallet"
CUSTODY = "custody-wallet"
ALICE = "alice-wallet"
BOB = "bob-wallet"

# 2024-01-01
T0 = 1704067200


class ManualClock:
    """Engine clock that only moves when a test moves it."""

    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def set(self, now: int) -> None:
        self.now = now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def assets() -> InMemoryAssetLedger:
    return InMemoryAssetLedger(CUSTODY, balances={ADMIN: 10**12})


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(period_length=DAY, min_period=7 * DAY, batch_size=10)


@pytest.fixture
def engine(assets, config, clock) -> VestingEngine:
    return VestingEngine(
        assets=assets,
        authorizer=AdminAuthorizer(ADMIN),
        config=config,
        clock=clock,
    )


@pytest.fixture
def create(engine):
    """Create a schedule with defaults relative to the clock"""

    async def _create(
        beneficiary: str = ALICE,
        start: int = None,
        cliff_days: int = 7,
        duration_days: int = 70,
        total_amount: int = 700,
    ) -> int:
        start = engine.now() if start is None else start
        return await engine.create_schedule(
            caller=ADMIN,
            beneficiary=beneficiary,
            start_time=start,
            cliff_time=start + cliff_days * DAY,
            end_time=start + duration_days * DAY,
            total_amount=total_amount,
        )

    return _create


def assert_ledger_invariants(engine: VestingEngine) -> None:
    """Per-schedule bounds and custody conservation"""
    for schedule in engine.store:
        assert 0 <= schedule.withdrawn_amount <= schedule.released_amount <= schedule.total_amount
    assert engine.custodial_balance == engine.store.total_committed() - engine.store.total_withdrawn()
    assert engine.custodial_balance == engine.assets.balance_of(CUSTODY)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a database session backed by a fresh in-memory SQLite database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestSessionLocal = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    session = TestSessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, engine: VestingEngine) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client wired to the test engine and database"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_engine] = lambda: engine

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
