"""
Shared fixtures for the matching engine test suite.

Every test gets its own file-backed SQLite database (aiosqlite) with the full
schema created from the ORM metadata. Factories in tests.factories insert trips
and requests directly so each test controls the exact ledger state it starts from.
"""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.database import Base
from app.schemas.auth import Principal
from tests.factories import make_principal


# =============================================================================
# Database fixtures
# =============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'carryon.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def shopper() -> Principal:
    return make_principal("shopper")


@pytest.fixture
def traveler() -> Principal:
    return make_principal("traveler")
