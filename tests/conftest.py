"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from typing import AsyncIterator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from household_ledger.api.main import create_app
from household_ledger.domain.models import Account, CreditCard
from household_ledger.infrastructure.database.session import (
    build_engine,
    build_session_factory,
    create_schema,
    drop_schema,
)
from household_ledger.services.container import LedgerServices, build_services


# Frozen "now" for every service clock: 2024-01-15 falls in the cycle
# closing 2024-02-10 for a card closing on the 10th
TEST_NOW = datetime(2024, 1, 15, 12, 0, 0)
HOUSEHOLD_ID = "household_1"
USER_ID = "user_alice"
OTHER_USER_ID = "user_bob"


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """Create test database (one SQLite file per test)"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    await create_schema(engine)
    try:
        yield engine
    finally:
        await drop_schema(engine)
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def services(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[LedgerServices]:
    """Ledger services wired to the test database with a frozen clock"""
    services = build_services(session_factory, clock=lambda: TEST_NOW)
    yield services
    await services.feed.wait_idle()


@pytest.fixture
async def client(services: LedgerServices) -> AsyncIterator[AsyncClient]:
    """Create FastAPI test client with test database"""
    app = create_app(services=services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def account(services: LedgerServices) -> Account:
    """Checking account holding $100.00"""
    return await services.accounts.create_account(
        user_id=USER_ID,
        household_id=HOUSEHOLD_ID,
        name="Checking",
        initial_balance_cents=10000,
    )


@pytest.fixture
async def card(services: LedgerServices) -> CreditCard:
    """Card closing on the 10th, due on the 20th, $5000 limit"""
    return await services.cards.create_card(
        user_id=USER_ID,
        household_id=HOUSEHOLD_ID,
        name="Visa",
        last_four_digits="1234",
        limit_cents=500000,
        closing_day=10,
        due_day=20,
    )
