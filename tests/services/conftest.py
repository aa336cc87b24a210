"""Service test fixtures — async DB, FastAPI test client and seed factories.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched so readiness probes see the test engine
    - The process-wide entry lock registry is empty between tests

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests;
      FOR UPDATE is a no-op there, so races are covered by the in-process locks
    - Seed factories go through the real services: seeded rows obey the ledger
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from kinstone.db.base import Base
from kinstone.infrastructure.database import get_db, unit_of_work, DatabaseSessionManager
from kinstone.infrastructure.entry_locks import entry_locks
from kinstone.services.catalog import CatalogService
from kinstone.services.inventory_ledger import InventoryLedger
import kinstone.infrastructure.database as db_module
import kinstone.models  # noqa: F401
from kinstone.main import app


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture(autouse=True)
def _no_leaked_entry_locks():
    yield
    assert len(entry_locks) == 0


@pytest.fixture
def make_user(test_session_factory):
    """Create a user with an empty inventory; returns the user id."""
    async def _make(capacity: int = 50, handle: str | None = None):
        async with test_session_factory() as db:
            user = await CatalogService(db).create_user(
                handle=handle, inventory_capacity=capacity,
            )
            return user.id
    return _make


@pytest.fixture
def make_piece(test_session_factory):
    """Create a catalog piece; returns the piece id."""
    async def _make(shape_family: str, half: str, rarity: str = "common"):
        async with test_session_factory() as db:
            piece = await CatalogService(db).create_piece(
                name=f"{shape_family.title()} {half}",
                shape_family=shape_family, half=half, rarity=rarity,
            )
            return piece.id
    return _make


@pytest.fixture
def grant(test_session_factory):
    """Add one entry of piece_id to user_id's inventory; returns the entry id."""
    async def _grant(user_id, piece_id, provenance: str = "drop"):
        async with test_session_factory() as db:
            async with unit_of_work(db):
                entry = await InventoryLedger(db).add_entry(
                    user_id, piece_id, provenance,
                )
            return entry.id
    return _grant
