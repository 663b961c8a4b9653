"""Service test fixtures — async DB, engines over it, and a FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db and get_lock_registry are overridden so routes share the test
      database and a fresh lock registry
    - Engines under test share one session, as a request's engines do

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for ledger
      semantics (PostgreSQL-specific features are not exercised here)
    - Seeded tree built through RecordService, so fixtures exercise the
      real creation pipeline
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)

import tierledger.infrastructure.database as db_module
from tierledger.api.dependencies import get_lock_registry
from tierledger.config import Settings
from tierledger.core.domain_types import ScopeMode, Tier
from tierledger.core.records import ParsedComponents
from tierledger.db.base import Base
from tierledger.infrastructure.database import DatabaseSessionManager, get_db
from tierledger.infrastructure.record_locks import RecordLockRegistry
from tierledger.main import app
from tierledger.services.citation_tracker import CitationTracker
from tierledger.services.record_creation import RecordService
from tierledger.services.rollback_engine import RollbackEngine
from tierledger.services.scope_engine import ScopeEngine

FEATURE = "auth-revamp"


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
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        scope_enforcement_mode=ScopeMode.WARN,
        lock_timeout_seconds=0.5,
    )


@pytest.fixture
def locks(settings):
    return RecordLockRegistry(settings.lock_timeout_seconds)


@pytest.fixture
def record_service(test_db, locks, settings):
    return RecordService(test_db, locks, settings)


@pytest.fixture
def scope_engine(test_db, locks, settings):
    return ScopeEngine(test_db, locks, settings)


@pytest.fixture
def rollback_engine(test_db, locks, settings):
    return RollbackEngine(test_db, locks, settings)


@pytest.fixture
def citation_tracker(test_db, locks, settings):
    return CitationTracker(test_db, locks, settings)


@pytest.fixture
async def seed_tree(record_service):
    """feature → phase → session → task, created through the real pipeline."""
    created = {}
    for tier, record_id, parent_id, title in (
        (Tier.FEATURE, FEATURE, None, "Auth revamp"),
        (Tier.PHASE, "phase-1", FEATURE, "Foundations"),
        (Tier.SESSION, "session-1", "phase-1", "Schema work"),
        (Tier.TASK, "task-1", "session-1", "Write migration"),
    ):
        outcome = await record_service.create_record(
            FEATURE,
            ParsedComponents(
                title=title, tier=tier, parent_id=parent_id, record_id=record_id,
                planning_doc_path="docs/plan.md",
            ),
        )
        created[record_id] = outcome.record
    return created


@pytest.fixture
async def client(test_engine, test_session_factory, settings):
    """FastAPI test client with DB and lock registry overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    registry = RecordLockRegistry(settings.lock_timeout_seconds)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lock_registry] = lambda: registry

    # Health checks read db_manager directly
    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    fake_manager.is_sqlite = True
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
